"""
Firestore Data Access Object (DAO) layer.

`FirestoreRepository` is the persistent-store and profile collaborator of the
class wall. Controllers receive it at construction time instead of reaching
for a process-wide client, so tests can hand them an in-memory fake with the
same methods.

Every method either returns plain models or raises a
`classwall.errors.StoreError` (`PermissionDeniedError` when the security
rules reject the caller). Not-found on update or delete is not an error.
"""

import logging
from contextlib import contextmanager

from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1 import FieldFilter
from firebase_admin import firestore

from classwall.engagement import LikeState, toggle_like
from classwall.errors import PermissionDeniedError, StoreError
from classwall.firestore_models import Comment, Post

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _doc_to_dict(doc_snapshot):
    """Convert a Firestore DocumentSnapshot to a dict with 'id' field."""
    if not doc_snapshot.exists:
        return None
    d = doc_snapshot.to_dict()
    d['id'] = doc_snapshot.id
    return d


def _query_to_list(query_ref):
    """Run a query and return a list of dicts."""
    return [_doc_to_dict(doc) for doc in query_ref.stream()]


def _to_post(doc_snapshot):
    if not doc_snapshot.exists:
        return None
    return Post.from_dict(doc_snapshot.to_dict(), doc_snapshot.id)


def _to_comment(doc_snapshot):
    return Comment.from_dict(doc_snapshot.to_dict(), doc_snapshot.id)


@contextmanager
def _store_call(operation):
    """Translate google-api-core failures into the class wall taxonomy."""
    try:
        yield
    except google_exceptions.PermissionDenied as e:
        raise PermissionDeniedError(f'{operation}: permission denied') from e
    except google_exceptions.GoogleAPIError as e:
        raise StoreError(f'{operation} failed: {e}') from e


class FirestoreRepository:

    def __init__(self, backend, config=None):
        config = config or {}
        self.backend = backend
        self.posts_collection = config.get('CLASSWALL_COLLECTION', 'classWall')
        self.classes_collection = config.get('CLASSES_COLLECTION', 'classes')
        self.users_collection = config.get('USERS_COLLECTION', 'users')
        self.comments_collection = config.get('COMMENTS_SUBCOLLECTION', 'comments')

    @property
    def db(self):
        return self.backend.db

    def _posts(self):
        return self.db.collection(self.posts_collection)

    def _comments(self, post_id):
        return self._posts().document(post_id).collection(self.comments_collection)

    # ========================================================================
    # Users  (collection: users)
    # ========================================================================

    def get_profile(self, uid):
        """Get a user profile document by UID. Returns dict or None."""
        with _store_call('get_profile'):
            doc = self.db.collection(self.users_collection).document(uid).get()
        return _doc_to_dict(doc)

    # ========================================================================
    # Classes  (collection: classes)
    # ========================================================================

    def classes_created_by(self, uid):
        """Classes an instructor created. Returns list of dicts."""
        query = (
            self.db.collection(self.classes_collection)
            .where(filter=FieldFilter('createdBy', '==', uid))
        )
        with _store_call('classes_created_by'):
            return _query_to_list(query)

    def classes_enrolled(self, uid):
        """Classes whose roster lists the student. Returns list of dicts."""
        query = (
            self.db.collection(self.classes_collection)
            .where(filter=FieldFilter('students', 'array_contains', uid))
        )
        with _store_call('classes_enrolled'):
            return _query_to_list(query)

    # ========================================================================
    # Wall posts  (collection: classWall)
    # ========================================================================

    def list_posts(self):
        with _store_call('list_posts'):
            return [_to_post(doc) for doc in self._posts().stream()]

    def get_post(self, post_id):
        with _store_call('get_post'):
            return _to_post(self._posts().document(post_id).get())

    def create_post(self, post):
        """Persist a post and return it as stored (server timestamp resolved)."""
        data = post.to_dict()
        data['createdAt'] = firestore.SERVER_TIMESTAMP
        with _store_call('create_post'):
            _, doc_ref = self._posts().add(data)
            stored = _to_post(doc_ref.get())
        logger.info('Created post %s', doc_ref.id)
        return stored

    def update_post(self, post_id, fields):
        """Update fields on a post. Returns False when the post is gone."""
        data = dict(fields)
        data['updatedAt'] = firestore.SERVER_TIMESTAMP
        with _store_call('update_post'):
            try:
                self._posts().document(post_id).update(data)
            except google_exceptions.NotFound:
                logger.info('Post %s already gone; update skipped', post_id)
                return False
        return True

    def delete_post(self, post_id):
        """Delete a post together with its comment sub-collection."""
        post_ref = self._posts().document(post_id)
        with _store_call('delete_post'):
            batch = self.db.batch()
            for comment in post_ref.collection(self.comments_collection).stream():
                batch.delete(comment.reference)
            batch.delete(post_ref)
            batch.commit()
        logger.info('Deleted post %s', post_id)

    def toggle_like(self, post_id, viewer_id):
        """Flip the viewer's like inside a transaction.

        `likes` is rewritten from `likedBy` on every toggle so the two fields
        cannot drift apart. Returns the new LikeState, or None if the post is
        gone.
        """
        post_ref = self._posts().document(post_id)

        @firestore.transactional
        def _toggle(transaction):
            snapshot = post_ref.get(transaction=transaction)
            post = _to_post(snapshot)
            if post is None:
                return None
            state = toggle_like(post, viewer_id)
            transaction.update(post_ref, {
                'likedBy': list(state.liked_by),
                'likes': state.likes,
            })
            return state

        with _store_call('toggle_like'):
            return _toggle(self.db.transaction())

    def watch_posts(self, callback, on_error=None):
        """Call `callback(posts)` with the full post list on every change.

        A snapshot that cannot be read is reported to `on_error` as a
        StoreError instead. Returns a zero-argument unsubscribe function.
        """
        def on_snapshot(docs, changes, read_time):
            try:
                posts = [_to_post(doc) for doc in docs]
            except (google_exceptions.GoogleAPIError, ValueError, TypeError) as e:
                logger.warning('Unreadable wall snapshot: %s', e)
                if on_error is not None:
                    on_error(StoreError(f'watch_posts failed: {e}'))
                return
            callback(posts)

        with _store_call('watch_posts'):
            watch = self._posts().on_snapshot(on_snapshot)
        return watch.unsubscribe

    # ========================================================================
    # Comments  (sub-collection: classWall/{post}/comments)
    # ========================================================================

    def list_comments(self, post_id):
        with _store_call('list_comments'):
            return [_to_comment(doc) for doc in self._comments(post_id).stream()]

    def create_comment(self, post_id, comment):
        """Add a comment and bump the post's comment count in one batch."""
        data = comment.to_dict()
        data['createdAt'] = firestore.SERVER_TIMESTAMP
        comment_ref = self._comments(post_id).document()
        with _store_call('create_comment'):
            batch = self.db.batch()
            batch.set(comment_ref, data)
            batch.update(self._posts().document(post_id), {'comments': firestore.Increment(1)})
            batch.commit()
            return _to_comment(comment_ref.get())
