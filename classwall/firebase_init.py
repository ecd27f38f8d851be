import logging
import os
import uuid

import firebase_admin
from firebase_admin import credentials, firestore, storage, auth
from firebase_admin import exceptions as firebase_exceptions

from classwall.errors import StoreError

logger = logging.getLogger(__name__)


class FirebaseBackend:
    """Owns one firebase_admin app plus its Firestore client and bucket.

    Nothing is created until `connect()`; `disconnect()` deletes the app so
    a fresh backend can be connected again.
    """

    def __init__(self, app_config=None):
        self.config = app_config or {}
        self._app = None
        self._db = None
        self._bucket = None

    @property
    def connected(self):
        return self._app is not None

    def connect(self):
        if self._app is not None:
            return self

        cred_path = (self.config.get('GOOGLE_APPLICATION_CREDENTIALS')
                     or os.environ.get('GOOGLE_APPLICATION_CREDENTIALS', './firebase-service-account.json'))

        if os.path.exists(cred_path):
            cred = credentials.Certificate(cred_path)
        else:
            cred = credentials.ApplicationDefault()

        bucket_name = self.config.get('FIREBASE_STORAGE_BUCKET', '')
        if not bucket_name:
            bucket_name = os.environ.get('FIREBASE_STORAGE_BUCKET', '')

        options = {}
        if bucket_name:
            options['storageBucket'] = bucket_name

        # Named apps so several backends can coexist in one process
        name = f'classwall-{uuid.uuid4().hex[:8]}'
        self._app = firebase_admin.initialize_app(cred, options=options if options else None, name=name)
        self._db = firestore.client(app=self._app)

        if bucket_name:
            self._bucket = storage.bucket(app=self._app)

        logger.info('Connected Firebase app %s', name)
        return self

    def disconnect(self):
        if self._app is None:
            return
        firebase_admin.delete_app(self._app)
        logger.info('Disconnected Firebase app %s', self._app.name)
        self._app = None
        self._db = None
        self._bucket = None

    @property
    def db(self):
        if self._db is None:
            self.connect()
        return self._db

    @property
    def bucket(self):
        if self._bucket is None:
            self.connect()
        return self._bucket

    def verify_session_cookie(self, session_cookie):
        """Return the uid behind a Firebase session cookie, or None."""
        if self._app is None:
            self.connect()
        try:
            decoded = auth.verify_session_cookie(session_cookie, check_revoked=True, app=self._app)
        except (auth.InvalidSessionCookieError, auth.RevokedSessionCookieError,
                auth.ExpiredSessionCookieError, auth.UserDisabledError, ValueError):
            return None
        return decoded['uid']

    def create_session_cookie(self, id_token, expires_in):
        """Exchange a client ID token for a session cookie.

        Returns None when the token is invalid or expired; other Firebase
        failures raise StoreError.
        """
        if self._app is None:
            self.connect()
        try:
            return auth.create_session_cookie(id_token, expires_in=expires_in, app=self._app)
        except (auth.InvalidIdTokenError, auth.ExpiredIdTokenError, ValueError):
            return None
        except firebase_exceptions.FirebaseError as e:
            raise StoreError(f'create_session_cookie failed: {e}') from e
