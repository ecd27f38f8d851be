"""
Class wall controller.

Ties the viewer's identity, class membership, the feed store and the
engagement ledger to a persistent-store repository. Every mutation is
validated first, applied optimistically to the feed, then persisted; a failed
write keeps the local change and surfaces a SyncWarning instead of rolling
back.
"""

from __future__ import annotations

import dataclasses
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Set, Tuple, Union

from classwall.audience import visible_posts
from classwall.engagement import EngagementLedger, LikeState
from classwall.errors import (
    OwnershipError, PermissionDeniedError, StoreError, SyncWarning, ValidationError,
)
from classwall.feed import WALL_SCOPE, FeedStore, comments_scope
from classwall.firestore_models import (
    Attachment, Audience, Comment, Identity, ItemRef, Post, SectionRef, as_ref,
    new_local_id,
)
from classwall.identity import IdentityContext, identity_changed
from classwall.membership import MembershipResolver

logger = logging.getLogger(__name__)

EVENTS = ('post_created', 'post_deleted', 'feed_changed', 'sync_warning')

_SYNC_MESSAGES = {
    'create_post': 'Post added locally but not synced to server.',
    'edit_post': 'Post updated locally but not synced to server.',
    'delete_post': 'Post removed locally but not deleted on the server.',
    'toggle_like': 'Like updated locally but not synced to server.',
    'add_comment': 'Comment added locally but not synced to server.',
}


def _now():
    return datetime.now(timezone.utc)


class SyncResult(NamedTuple):
    ref: Optional[ItemRef]
    warning: Optional[SyncWarning] = None

    @property
    def ok(self) -> bool:
        return self.warning is None


def _audience_and_sections(audience, selected_sections) -> Tuple[Audience, Tuple[SectionRef, ...]]:
    parsed = Audience.parse(audience) or Audience.WORLD
    if not isinstance(parsed, Audience):
        raise ValidationError(f'Unknown audience: {audience}')
    if parsed != Audience.CLASS:
        return parsed, ()
    sections = tuple(SectionRef.from_value(s) for s in selected_sections or ())
    if not sections:
        raise ValidationError('Select at least one class for a class post')
    return parsed, sections


def _attachments(files) -> Tuple[Attachment, ...]:
    return tuple(f if isinstance(f, Attachment) else Attachment.from_dict(f) for f in files or ())


class ClassWall:
    """One viewer's wall: feed state plus the operations that change it."""

    def __init__(self, repository, identity: Optional[IdentityContext] = None, *,
                 local_prefix: str = 'local_post_'):
        self.repository = repository
        self.identity = identity or IdentityContext()
        self.local_prefix = local_prefix
        self.feed = FeedStore(local_prefix)
        self.ledger = EngagementLedger(self.feed)
        self.membership = MembershipResolver(repository)
        self._listeners: Dict[str, List[Callable[[Any], None]]] = defaultdict(list)
        self._unsubscribers: List[Callable[[], None]] = []
        # Placeholders deleted before their create returned
        self._cancelled: Set[str] = set()
        self._running = False

    # -- Lifecycle -----------------------------------------------------------

    def start(self) -> ClassWall:
        if self._running:
            return self
        self._running = True
        self.feed.open(WALL_SCOPE)
        self._unsubscribers.append(self.identity.subscribe(self._on_identity))
        if self.identity.current is not None:
            self.membership.refresh(self.identity.current)
        try:
            self._unsubscribers.append(self.repository.watch_posts(self._on_snapshot, self._on_watch_error))
        except StoreError:
            logger.warning('Live query unavailable, falling back to a one-off fetch', exc_info=True)
            self.refresh()
        return self

    def close(self) -> None:
        """Tear down; completions that arrive afterwards are ignored."""
        self._running = False
        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()
        self.feed.close_all()
        self.membership.invalidate()

    @property
    def running(self) -> bool:
        return self._running

    # -- Events --------------------------------------------------------------

    def on(self, event: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        if event not in EVENTS:
            raise ValueError(f'Unknown event: {event}')
        self._listeners[event].append(callback)

        def off():
            if callback in self._listeners[event]:
                self._listeners[event].remove(callback)
        return off

    def _emit(self, event: str, payload: Any = None) -> None:
        if not self._running:
            return
        for callback in list(self._listeners[event]):
            try:
                callback(payload)
            except Exception:
                logger.exception('%s listener failed', event)

    def _warn(self, operation: str, error: StoreError, ref: Optional[ItemRef]) -> SyncResult:
        denied = isinstance(error, PermissionDeniedError)
        message = _SYNC_MESSAGES[operation]
        if denied:
            message += ' Please check your permissions or contact support.'
        warning = SyncWarning(operation, message, ref.value if ref else None, denied)
        logger.warning('%s failed for %s: %s', operation, warning.item_id, error)
        self._emit('sync_warning', warning)
        return SyncResult(ref, warning)

    # -- Inbound updates -----------------------------------------------------

    def _on_identity(self, old: Optional[Identity], new: Optional[Identity]) -> None:
        if identity_changed(old, new):
            self.membership.refresh(new)
        self._emit('feed_changed')

    def _on_snapshot(self, posts: Iterable[Post]) -> None:
        if self.identity.current is None:
            logger.debug('Signed out, skipping wall snapshot')
            return
        if self.feed.replace_snapshot(WALL_SCOPE, posts):
            self._emit('feed_changed')

    def _on_watch_error(self, error: StoreError) -> None:
        if not self._running:
            return
        logger.warning('Live query failed, falling back to a one-off fetch: %s', error)
        self.refresh()

    def refresh(self) -> bool:
        """Fetch the whole wall once and merge it."""
        try:
            posts = self.repository.list_posts()
        except StoreError:
            logger.warning('Wall fetch failed', exc_info=True)
            return False
        self._on_snapshot(posts)
        return True

    # -- Reads ---------------------------------------------------------------

    @property
    def viewer(self) -> Optional[Identity]:
        return self.identity.current

    def posts(self) -> List[Post]:
        return self.feed.items(WALL_SCOPE)

    def visible_posts(self) -> List[Post]:
        return visible_posts(self.posts(), self.viewer, self.membership.current)

    def get_post(self, post_id: Union[ItemRef, str]) -> Optional[Post]:
        return self.feed.get(WALL_SCOPE, post_id)

    def comments(self, post_id: str) -> List[Comment]:
        return self.feed.items(comments_scope(post_id))

    # -- Guards --------------------------------------------------------------

    def _require_viewer(self) -> Identity:
        viewer = self.identity.current
        if viewer is None:
            raise ValidationError('Please log in to continue')
        return viewer

    @staticmethod
    def _check_owner(post: Post, viewer: Identity, action: str) -> None:
        if post.author_id and post.author_id == viewer.id:
            return
        if viewer.is_instructor():
            return
        raise OwnershipError(f'You do not have permission to {action} this post.')

    @staticmethod
    def _require_confirmed(post: Post) -> None:
        if post.is_pending:
            raise ValidationError('This post is still being saved, try again in a moment')

    # -- Posts ---------------------------------------------------------------

    def create_post(self, message: str = '', *, audience=Audience.WORLD, selected_sections=(),
                    image: Optional[str] = None, files=(), is_announcement: bool = False) -> SyncResult:
        viewer = self._require_viewer()
        if is_announcement and not viewer.is_instructor():
            raise OwnershipError('Only instructors can post announcements.')
        audience, sections = _audience_and_sections(audience, selected_sections)
        draft = Post(
            author_id=viewer.id,
            author=viewer.display_name,
            role=viewer.role_label,
            message=message or '',
            audience=audience,
            selected_sections=sections,
            image=image,
            files=_attachments(files),
            is_announcement=is_announcement,
            author_avatar=viewer.avatar,
        )
        if not draft.has_content:
            raise ValidationError('Please add some content to your post')

        placeholder = self.feed.insert_optimistic(WALL_SCOPE, draft)
        self._emit('feed_changed')

        try:
            stored = self.repository.create_post(dataclasses.replace(draft, local_id=placeholder.local_id))
        except StoreError as e:
            if placeholder.local_id in self._cancelled:
                self._cancelled.discard(placeholder.local_id)
                logger.info('Create of cancelled post %s failed: %s', placeholder.local_id, e)
                return SyncResult(placeholder)
            return self._warn('create_post', e, placeholder)

        if placeholder.local_id in self._cancelled:
            self._cancelled.discard(placeholder.local_id)
            self.feed.remove(WALL_SCOPE, stored.ref)
            return self._delete_remote(stored)

        if self.feed.reconcile(WALL_SCOPE, placeholder, stored):
            self._emit('feed_changed')
        self._emit('post_created', stored)
        return SyncResult(stored.ref)

    def edit_post(self, post_id: Union[ItemRef, str], message: str = '', *, audience=Audience.WORLD,
                  selected_sections=(), image: Optional[str] = None, files=()) -> SyncResult:
        viewer = self._require_viewer()
        post = self.get_post(post_id)
        if post is None:
            return SyncResult(as_ref(post_id))
        self._check_owner(post, viewer, 'edit')
        self._require_confirmed(post)
        audience, sections = _audience_and_sections(audience, selected_sections)
        files = _attachments(files)
        edited = dataclasses.replace(post, message=message or '', image=image, files=files,
                                     audience=audience, selected_sections=sections, updated_at=_now())
        if not edited.has_content:
            raise ValidationError('Please add some content to your post')

        self.feed.update(WALL_SCOPE, post.ref, {
            'message': edited.message,
            'image': edited.image,
            'files': edited.files,
            'audience': edited.audience,
            'selected_sections': edited.selected_sections,
            'updated_at': edited.updated_at,
        })
        self._emit('feed_changed')

        document = edited.to_dict()
        fields = {k: document[k] for k in ('message', 'image', 'files', 'audience', 'selectedSections')}
        try:
            self.repository.update_post(post.id, fields)
        except StoreError as e:
            return self._warn('edit_post', e, post.ref)
        return SyncResult(post.ref)

    def delete_post(self, post_id: Union[ItemRef, str]) -> SyncResult:
        viewer = self._require_viewer()
        post = self.get_post(post_id)
        if post is None:
            return SyncResult(as_ref(post_id))
        self._check_owner(post, viewer, 'delete')

        self.feed.remove(WALL_SCOPE, post.ref)
        self.feed.close(comments_scope(post.id))
        self._emit('feed_changed')
        self._emit('post_deleted', post)

        if post.is_pending:
            self._cancelled.add(post.ref.local_id)
            return SyncResult(post.ref)
        return self._delete_remote(post)

    def _delete_remote(self, post: Post) -> SyncResult:
        try:
            self.repository.delete_post(post.id)
        except StoreError as e:
            return self._warn('delete_post', e, post.ref)
        return SyncResult(post.ref)

    # -- Engagement ----------------------------------------------------------

    def toggle_like(self, post_id: Union[ItemRef, str]) -> SyncResult:
        viewer = self._require_viewer()
        post = self.get_post(post_id)
        if post is None:
            return SyncResult(as_ref(post_id))
        self._require_confirmed(post)

        local = self.ledger.toggle_like(WALL_SCOPE, post.ref, viewer.id)
        self._emit('feed_changed')

        try:
            stored = self.repository.toggle_like(post.id, viewer.id)
        except StoreError as e:
            return self._warn('toggle_like', e, post.ref)
        if isinstance(stored, LikeState) and stored.liked_by != local.liked_by:
            # Another device toggled in between; the transaction result wins
            self.feed.update(WALL_SCOPE, post.ref, {'liked_by': stored.liked_by})
            self._emit('feed_changed')
        return SyncResult(post.ref)

    def open_comments(self, post_id: str) -> List[Comment]:
        scope = comments_scope(post_id)
        self.feed.open(scope)
        try:
            comments = self.repository.list_comments(post_id)
        except StoreError:
            logger.warning('Could not load comments for %s', post_id, exc_info=True)
        else:
            self.feed.replace_snapshot(scope, comments)
        return self.feed.items(scope)

    def close_comments(self, post_id: str) -> None:
        self.feed.close(comments_scope(post_id))

    def add_comment(self, post_id: Union[ItemRef, str], message: str) -> SyncResult:
        viewer = self._require_viewer()
        message = (message or '').strip()
        if not message:
            raise ValidationError('Please enter a comment')
        post = self.get_post(post_id)
        if post is None:
            raise ValidationError('This post is no longer available')
        self._require_confirmed(post)

        draft = Comment(
            author_id=viewer.id,
            author=viewer.display_name,
            role=viewer.role_label,
            message=message,
            author_avatar=viewer.avatar,
        )
        scope = comments_scope(post.id)
        placeholder = self.ledger.add_comment(WALL_SCOPE, post.ref, scope, draft)
        local_id = placeholder.local_id if placeholder else new_local_id(self.local_prefix)
        self._emit('feed_changed')

        try:
            stored = self.repository.create_comment(post.id, dataclasses.replace(draft, local_id=local_id))
        except StoreError as e:
            return self._warn('add_comment', e, placeholder)
        if placeholder is not None:
            self.feed.reconcile(scope, placeholder, stored)
        return SyncResult(stored.ref)


class WallRegistry:
    """Running walls keyed by viewer uid, for the HTTP and socket layers."""

    def __init__(self, repository, *, local_prefix: str = 'local_post_'):
        self.repository = repository
        self.local_prefix = local_prefix
        self._walls: Dict[str, ClassWall] = {}

    def get(self, uid: str) -> Optional[ClassWall]:
        return self._walls.get(uid)

    def open(self, uid: str, fallback_name: str = '') -> ClassWall:
        wall = self._walls.get(uid)
        if wall is not None and wall.running:
            return wall
        identity = IdentityContext()
        identity.sign_in(self.repository, uid, fallback_name)
        wall = ClassWall(self.repository, identity, local_prefix=self.local_prefix).start()
        self._walls[uid] = wall
        return wall

    def close(self, uid: str) -> None:
        wall = self._walls.pop(uid, None)
        if wall is not None:
            wall.close()

    def close_all(self) -> None:
        for uid in list(self._walls):
            self.close(uid)
