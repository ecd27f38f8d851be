from datetime import timedelta

from flask import Blueprint, current_app, g, session
from classwall.decorators import auth_required
from classwall.errors import StoreError
from classwall.forms import SessionForm

bp = Blueprint('auth', __name__, url_prefix='/auth')


@bp.errorhandler(StoreError)
def handle_store_error(error):
    return {'error': 'Sign-in is temporarily unavailable, please try again.'}, 503


@bp.route('/session', methods=['POST'])
def login():
    """Exchange the ID token from a client-side Firebase sign-in for a session cookie."""
    form = SessionForm()
    if not form.validate_on_submit():
        return {'error': 'Invalid submission', 'fields': form.errors}, 400

    ext = current_app.extensions['classwall']
    expires_in = timedelta(days=current_app.config.get('SESSION_COOKIE_DAYS', 5))
    session_cookie = ext.backend.create_session_cookie(form.id_token.data, expires_in)
    uid = ext.backend.verify_session_cookie(session_cookie) if session_cookie else None
    if not uid:
        return {'error': 'Sign-in failed, please try again'}, 401

    session['firebase_session'] = session_cookie
    session['display_name'] = form.display_name.data or ''
    wall = ext.registry.open(uid, session['display_name'])
    return {'user_id': uid, 'display_name': wall.viewer.display_name, 'role': wall.viewer.role}


@bp.route('/logout', methods=['POST'])
@auth_required
def logout():
    uid = g.current_wall.viewer.id
    session.pop('firebase_session', None)
    session.pop('display_name', None)
    current_app.extensions['classwall'].registry.close(uid)
    return {'ok': True}
