import logging
from flask import Flask
from flask_socketio import SocketIO
from flask_wtf.csrf import CSRFProtect
from config import Config

socketio = SocketIO()
csrf = CSRFProtect()


class ClassWallExtension:
    """Per-app state: the Firebase backend, repository and open walls."""

    def __init__(self, backend, repository, registry):
        self.backend = backend
        self.repository = repository
        self.registry = registry

    def shutdown(self):
        """Close every open wall and its live query, then drop the Firebase app."""
        self.registry.close_all()
        self.backend.disconnect()


def create_app(config_class=Config, repository=None, backend=None):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    csrf.init_app(app)

    # Firebase is connected lazily on first use
    from classwall.firebase_init import FirebaseBackend
    from classwall.firestore_dao import FirestoreRepository
    from classwall.wall import WallRegistry

    if backend is None:
        backend = FirebaseBackend(app.config)
    if repository is None:
        repository = FirestoreRepository(backend, app.config)
    registry = WallRegistry(repository, local_prefix=app.config.get('LOCAL_ID_PREFIX', 'local_post_'))
    app.extensions['classwall'] = ClassWallExtension(backend, repository, registry)

    # CORS origins
    allowed_origins = []
    cors_origins = app.config.get('CORS_ALLOWED_ORIGINS', '')
    if cors_origins:
        for origin in cors_origins.split(','):
            origin = origin.strip()
            if origin:
                allowed_origins.append(origin)

    # Import before init_app so the handlers are re-registered on every app's server
    from classwall import events  # noqa: F401

    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins if allowed_origins else None,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'threading')
    )

    from classwall.decorators import load_current_wall

    @app.before_request
    def before_request():
        load_current_wall()

    from classwall.routes import auth, wall
    app.register_blueprint(auth.bp)
    app.register_blueprint(wall.bp)

    return app
