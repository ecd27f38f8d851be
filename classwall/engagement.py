"""
Likes and comment counts.

`likes` is never tracked on its own: it is always `len(liked_by)`, so a like
toggle only ever flips the viewer's membership in `liked_by`.
"""

from __future__ import annotations

from typing import NamedTuple, Optional, Tuple, Union

from classwall.feed import FeedStore
from classwall.firestore_models import Comment, ItemRef, PendingId, Post


class LikeState(NamedTuple):
    likes: int
    liked_by: Tuple[str, ...]


def is_liked(post: Post, viewer_id: Optional[str]) -> bool:
    return bool(viewer_id) and viewer_id in post.liked_by


def toggle_like(post: Post, viewer_id: str) -> LikeState:
    """Flip `viewer_id` in the post's likers; pure."""
    liked_by = tuple(dict.fromkeys(post.liked_by))
    if viewer_id in liked_by:
        liked_by = tuple(uid for uid in liked_by if uid != viewer_id)
    else:
        liked_by = liked_by + (viewer_id,)
    return LikeState(len(liked_by), liked_by)


class EngagementLedger:
    """Applies engagement changes optimistically to a FeedStore."""

    def __init__(self, feed: FeedStore):
        self.feed = feed

    def toggle_like(self, scope: str, ref: Union[ItemRef, str], viewer_id: str) -> Optional[LikeState]:
        post = self.feed.get(scope, ref)
        if post is None:
            return None
        state = toggle_like(post, viewer_id)
        self.feed.update(scope, post.ref, {'liked_by': state.liked_by})
        return state

    def add_comment(self, post_scope: str, ref: Union[ItemRef, str],
                    comment_scope: str, comment: Comment) -> Optional[PendingId]:
        """Bump the post's comment count and, when the thread is open, show
        the comment at the top of it."""
        post = self.feed.get(post_scope, ref)
        if post is not None:
            self.feed.update(post_scope, post.ref, {'comments': post.comments + 1})
        if self.feed.is_open(comment_scope):
            return self.feed.insert_optimistic(comment_scope, comment)
        return None
