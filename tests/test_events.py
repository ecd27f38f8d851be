from classwall import socketio
from fakes import login


def _events(socket_client, name):
    return [e['args'][0] for e in socket_client.get_received() if e['name'] == name]


def test_connect_greets_signed_in_viewer(app, repo):
    client = app.test_client()
    login(client, 'U1')
    sock = socketio.test_client(app, flask_test_client=client)
    assert _events(sock, 'connected') == [{'user_id': 'U1', 'display_name': 'Ana'}]
    sock.disconnect()


def test_join_wall_requires_login(app):
    sock = socketio.test_client(app, flask_test_client=app.test_client())
    sock.emit('join_wall')
    assert _events(sock, 'error') == [{'message': 'Authentication required'}]
    sock.disconnect()


def test_join_wall_sends_feed_and_pushes_changes(app, repo):
    repo.seed_post('p1', author_id='U2')
    client = app.test_client()
    login(client, 'U1')
    sock = socketio.test_client(app, flask_test_client=client)
    sock.get_received()

    sock.emit('join_wall')
    feeds = _events(sock, 'feed')
    assert [p['id'] for p in feeds[-1]['posts']] == ['p1']

    client.post('/wall/posts', data={'message': 'Hello class', 'audience': 'World'})
    feeds = _events(sock, 'feed')
    assert feeds
    assert [p['id'] for p in feeds[-1]['posts']] == ['post1', 'p1']

    sock.emit('leave_wall')
    sock.disconnect()


def test_each_tab_gets_one_copy_of_each_push(app, repo):
    client = app.test_client()
    login(client, 'U1')
    tabs = [socketio.test_client(app, flask_test_client=client) for _ in range(2)]
    for tab in tabs:
        tab.emit('join_wall')
        tab.get_received()

    changes = []
    app.extensions['classwall'].registry.get('U1').on('feed_changed', changes.append)
    client.post('/wall/posts', data={'message': 'Hello class', 'audience': 'World'})

    assert changes
    for tab in tabs:
        assert len(_events(tab, 'feed')) == len(changes)
        tab.disconnect()
