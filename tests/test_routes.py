from classwall.errors import PermissionDeniedError
from classwall.firestore_models import Audience, SectionRef
from fakes import login


class TestAuth:

    def test_wall_requires_login(self, client):
        response = client.get('/wall/')
        assert response.status_code == 401
        assert response.get_json()['error'] == 'Please log in to continue'

    def test_mutations_require_login(self, client):
        assert client.post('/wall/posts', data={'message': 'hi'}).status_code == 401

    def test_session_exchange_signs_in(self, app, client):
        app.extensions['classwall'].backend.id_tokens['id-token-ana'] = 'U1'
        response = client.post('/auth/session', data={'id_token': 'id-token-ana'})
        assert response.status_code == 200
        assert response.get_json() == {'user_id': 'U1', 'display_name': 'Ana', 'role': 'student'}
        assert client.get('/wall/').status_code == 200

    def test_invalid_id_token_is_rejected(self, client):
        response = client.post('/auth/session', data={'id_token': 'forged'})
        assert response.status_code == 401
        assert client.get('/wall/').status_code == 401

    def test_missing_id_token_is_rejected(self, client):
        assert client.post('/auth/session', data={}).status_code == 400

    def test_logout_releases_wall(self, app, client, repo):
        login(client, 'U1')
        client.get('/wall/')
        assert len(repo.watchers) == 1

        assert client.post('/auth/logout').get_json() == {'ok': True}

        assert repo.watchers == []
        assert app.extensions['classwall'].registry.get('U1') is None
        assert client.get('/wall/').status_code == 401

    def test_shutdown_closes_walls_and_backend(self, app, repo):
        for uid in ('U1', 'U2', 'T1'):
            client = app.test_client()
            login(client, uid)
            client.get('/wall/')
        assert len(repo.watchers) == 3

        ext = app.extensions['classwall']
        ext.shutdown()

        assert repo.watchers == []
        assert ext.backend.connected is False


class TestPosts:

    def test_create_and_list(self, client, repo):
        login(client, 'U1')
        response = client.post('/wall/posts', data={'message': 'Hello class', 'audience': 'World'})
        assert response.status_code == 201
        body = response.get_json()
        assert body == {'id': 'post1', 'ok': True}

        posts = client.get('/wall/').get_json()['posts']
        assert [p['id'] for p in posts] == ['post1']
        assert posts[0]['message'] == 'Hello class'
        assert posts[0]['author'] == 'Ana'

    def test_empty_post_is_rejected(self, client, repo):
        login(client, 'U1')
        response = client.post('/wall/posts', data={'message': '  ', 'audience': 'World'})
        assert response.status_code == 400
        assert 'content' in response.get_json()['error']
        assert repo.posts == {}

    def test_class_post_with_sections(self, client, repo):
        login(client, 'U1')
        response = client.post('/wall/posts', data={
            'message': 'Study group tonight',
            'audience': 'Class',
            'sections': ['C1:A'],
        })
        assert response.status_code == 201
        stored = repo.posts['post1']
        assert stored.audience is Audience.CLASS
        assert stored.selected_sections == (SectionRef('C1', 'A'),)

    def test_class_post_hidden_from_other_section(self, client, repo):
        repo.add_profile('U3', name='Cara')
        repo.seed_post('p1', author_id='T1', audience=Audience.CLASS,
                       selected_sections=(SectionRef('C1', 'A'),))
        login(client, 'U3')
        assert client.get('/wall/').get_json()['posts'] == []

    def test_edit_keeps_existing_media(self, client, repo):
        repo.seed_post('p1', author_id='U1', image='classWall/U1/cat.png')
        login(client, 'U1')
        response = client.post('/wall/posts/p1/edit', data={'message': 'new caption', 'audience': 'World'})
        assert response.status_code == 200
        assert repo.posts['p1'].message == 'new caption'
        assert repo.posts['p1'].image == 'classWall/U1/cat.png'

    def test_cannot_delete_others_post(self, client, repo):
        repo.seed_post('p1', author_id='U2')
        login(client, 'U1')
        response = client.post('/wall/posts/p1/delete')
        assert response.status_code == 403
        assert 'p1' in repo.posts

    def test_delete_own_post(self, client, repo):
        repo.seed_post('p1', author_id='U1')
        login(client, 'U1')
        assert client.post('/wall/posts/p1/delete').get_json() == {'id': 'p1', 'ok': True}
        assert 'p1' not in repo.posts

    def test_sync_failure_is_reported(self, client, repo):
        repo.fail('create_post', PermissionDeniedError('denied'))
        login(client, 'U1')
        body = client.post('/wall/posts', data={'message': 'hi', 'audience': 'World'}).get_json()
        assert body['ok'] is False
        assert body['id'].startswith('local_post_')
        assert 'permissions' in body['warning']


class TestEngagement:

    def test_like_and_unlike(self, client, repo):
        repo.seed_post('p1', author_id='U2')
        login(client, 'U1')
        body = client.post('/wall/posts/p1/like').get_json()
        assert body['likes'] == 1
        assert body['liked'] is True
        body = client.post('/wall/posts/p1/like').get_json()
        assert body['likes'] == 0
        assert body['liked'] is False

    def test_comments(self, client, repo):
        repo.seed_post('p1', author_id='U2')
        login(client, 'U1')
        assert client.get('/wall/posts/p1/comments').get_json() == {'comments': []}

        response = client.post('/wall/posts/p1/comments', data={'message': 'Nice!'})
        assert response.status_code == 201
        assert response.get_json()['comments'] == 1

        comments = client.get('/wall/posts/p1/comments').get_json()['comments']
        assert [c['message'] for c in comments] == ['Nice!']

    def test_empty_comment_is_rejected(self, client, repo):
        repo.seed_post('p1', author_id='U2')
        login(client, 'U1')
        response = client.post('/wall/posts/p1/comments', data={'message': ''})
        assert response.status_code == 400
        assert 'create_comment' not in repo.calls
