from flask import request
from flask_socketio import emit, join_room, leave_room
from classwall import socketio
from classwall.decorators import get_current_wall
from classwall.firestore_models import post_view

# sid -> callbacks that detach the socket from its wall's events
wall_subscriptions = {}


def _room(uid):
    return f'wall_{uid}'


def _feed_payload(wall):
    viewer_id = wall.viewer.id if wall.viewer else None
    return {'posts': [post_view(p, viewer_id) for p in wall.visible_posts()]}


def _release(sid):
    for off in wall_subscriptions.pop(sid, []):
        off()


@socketio.on('connect')
def handle_connect(auth=None):
    wall = get_current_wall()
    if wall and wall.viewer:
        emit('connected', {'user_id': wall.viewer.id, 'display_name': wall.viewer.display_name})


@socketio.on('disconnect')
def handle_disconnect(reason=None):
    _release(request.sid)


@socketio.on('join_wall')
def handle_join_wall(data=None):
    wall = get_current_wall()
    if wall is None or wall.viewer is None:
        emit('error', {'message': 'Authentication required'})
        return

    room = _room(wall.viewer.id)
    join_room(room)

    sid = request.sid
    if sid not in wall_subscriptions:
        # Each socket pushes only to itself; several tabs share one wall
        def push_feed(_):
            socketio.emit('feed', _feed_payload(wall), to=sid)

        def push_warning(warning):
            socketio.emit('sync_warning', {
                'operation': warning.operation,
                'message': warning.message,
                'id': warning.item_id,
            }, to=sid)

        wall_subscriptions[sid] = [
            wall.on('feed_changed', push_feed),
            wall.on('sync_warning', push_warning),
        ]

    emit('feed', _feed_payload(wall))


@socketio.on('leave_wall')
def handle_leave_wall(data=None):
    wall = get_current_wall()
    _release(request.sid)
    if wall is not None and wall.viewer is not None:
        leave_room(_room(wall.viewer.id))
