import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('true', '1', 'yes')


class Config:
    SECRET_KEY = os.environ.get('SESSION_SECRET') or os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    WTF_CSRF_ENABLED = _env_flag('WTF_CSRF_ENABLED', True)
    WTF_CSRF_TIME_LIMIT = None

    GOOGLE_APPLICATION_CREDENTIALS = os.environ.get('GOOGLE_APPLICATION_CREDENTIALS', './firebase-service-account.json')
    FIREBASE_STORAGE_BUCKET = os.environ.get('FIREBASE_STORAGE_BUCKET', '')
    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS', '')
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'threading')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Firestore document layout
    CLASSWALL_COLLECTION = os.environ.get('CLASSWALL_COLLECTION', 'classWall')
    CLASSES_COLLECTION = os.environ.get('CLASSES_COLLECTION', 'classes')
    USERS_COLLECTION = os.environ.get('USERS_COLLECTION', 'users')
    COMMENTS_SUBCOLLECTION = os.environ.get('COMMENTS_SUBCOLLECTION', 'comments')

    LOCAL_ID_PREFIX = os.environ.get('LOCAL_ID_PREFIX', 'local_post_')

    # Firebase session cookie lifetime
    SESSION_COOKIE_DAYS = int(os.environ.get('SESSION_COOKIE_DAYS', 5))
