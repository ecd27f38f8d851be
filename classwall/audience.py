"""
Per-viewer visibility of wall posts.

Display filtering only: unknown audiences fail open, and nothing here is an
access-control boundary. Evaluate on every render; membership can change
independently of the feed.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from classwall.firestore_models import Audience, ClassSection, Identity, Post


def is_visible(post: Post, viewer: Optional[Identity], memberships: Iterable[ClassSection]) -> bool:
    viewer_id = viewer.id if viewer is not None else None
    audience = Audience.parse(post.audience)

    if audience is None or audience == Audience.WORLD:
        return True

    if audience == Audience.ONLY_ME:
        return viewer_id is not None and post.author_id == viewer_id

    if audience == Audience.CLASS:
        if viewer_id is not None and post.author_id == viewer_id:
            return True
        # Untagged class posts stay open
        if not post.selected_sections:
            return True
        memberships = list(memberships)
        return any(s.matches(m) for s in post.selected_sections for m in memberships)

    return True


def visible_posts(posts: Iterable[Post], viewer: Optional[Identity],
                  memberships: Iterable[ClassSection]) -> List[Post]:
    memberships = list(memberships)
    return [post for post in posts if is_visible(post, viewer, memberships)]
