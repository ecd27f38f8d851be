from functools import wraps
from flask import current_app, g, session


def _verify_session():
    """Verify the Firebase session cookie and return the viewer's uid."""
    session_cookie = session.get('firebase_session')
    if not session_cookie:
        return None
    return current_app.extensions['classwall'].backend.verify_session_cookie(session_cookie)


def load_current_wall():
    """Load the current viewer's wall into g before each request."""
    if hasattr(g, '_current_wall'):
        return
    uid = _verify_session()
    if not uid:
        g._current_wall = None
        return
    registry = current_app.extensions['classwall'].registry
    g._current_wall = registry.open(uid, session.get('display_name', ''))


def get_current_wall():
    if not hasattr(g, '_current_wall'):
        load_current_wall()
    return g._current_wall


def get_current_user():
    wall = get_current_wall()
    return wall.viewer if wall is not None else None


def auth_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        wall = get_current_wall()
        if wall is None or wall.viewer is None:
            return {'error': 'Please log in to continue'}, 401
        g.current_wall = wall
        return f(*args, **kwargs)
    return decorated
