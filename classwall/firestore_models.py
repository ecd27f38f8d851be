"""
Firestore document models using Python dataclasses.

Each document model includes:
  - A `ref` field carrying its identity as a tagged variant:
    `PendingId` before the store confirms the write, `ConfirmedId` after
  - A `to_dict()` instance method producing the camelCase document shape
  - A `from_dict(data, doc_id)` classmethod for deserialization
  - Sensible defaults for all fields

Datetime fields are kept as timezone-aware datetime objects since Firestore
handles them natively. A `created_at` of None means the server timestamp has
not been resolved yet.
"""

from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Tuple, Union


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_datetime(value) -> Optional[datetime]:
    """Convert a value to an aware datetime. Accepts datetime objects,
    ISO-format strings, epoch seconds and `{seconds, nanoseconds}` maps as
    produced by the JavaScript SDK."""
    if value is None:
        return None
    if isinstance(value, datetime):
        # Firestore DatetimeWithNanoseconds is a datetime subclass
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, str):
        value = value.replace("Z", "+00:00")
        try:
            return _parse_datetime(datetime.fromisoformat(value))
        except (ValueError, TypeError):
            return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, dict) and "seconds" in value:
        seconds = value.get("seconds") or 0
        nanos = value.get("nanoseconds") or 0
        return datetime.fromtimestamp(seconds + nanos / 1e9, tz=timezone.utc)
    return None


def _unique(values: Iterable[Any]) -> Tuple[str, ...]:
    seen = []
    for value in values or ():
        if value and value not in seen:
            seen.append(value)
    return tuple(seen)


def new_local_id(prefix: str = "local_post_") -> str:
    """Generate a locally-unique placeholder id."""
    return f"{prefix}{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


# ===========================================================================
# Item identity
# ===========================================================================

@dataclass(frozen=True)
class PendingId:
    """Placeholder identity of an item the store has not confirmed yet."""
    local_id: str

    @property
    def value(self) -> str:
        return self.local_id


@dataclass(frozen=True)
class ConfirmedId:
    """Server-assigned identity of a persisted item."""
    server_id: str

    @property
    def value(self) -> str:
        return self.server_id


ItemRef = Union[PendingId, ConfirmedId]


def as_ref(value: Union[ItemRef, str]) -> ItemRef:
    """Plain strings name confirmed documents."""
    if isinstance(value, (PendingId, ConfirmedId)):
        return value
    return ConfirmedId(str(value))


# ===========================================================================
# Identity & membership
# ===========================================================================

INSTRUCTOR = "instructor"
STUDENT = "student"


@dataclass(frozen=True)
class Identity:
    id: str
    display_name: str = ""
    role: str = STUDENT
    avatar: Optional[str] = None

    def is_instructor(self) -> bool:
        return self.role == INSTRUCTOR

    def is_student(self) -> bool:
        return self.role != INSTRUCTOR

    @property
    def role_label(self) -> str:
        return "Instructor" if self.is_instructor() else "Student"

    @classmethod
    def from_profile(cls, uid: str, data: Optional[Dict[str, Any]],
                     fallback_name: str = "") -> Identity:
        data = data or {}
        name = (data.get("displayName") or data.get("fullName")
                or data.get("name") or fallback_name or "You")
        role = INSTRUCTOR if data.get("role") == INSTRUCTOR else STUDENT
        return cls(
            id=uid,
            display_name=name,
            role=role,
            avatar=data.get("photoURL") or data.get("avatar"),
        )


@dataclass(frozen=True)
class ClassSection:
    class_id: str
    class_name: str = ""
    section: str = ""

    @property
    def label(self) -> str:
        return f"{self.class_name} - {self.section}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> ClassSection:
        return cls(
            class_id=doc_id or data.get("id", ""),
            class_name=data.get("className") or data.get("subject") or "",
            section=str(data.get("section") or ""),
        )


@dataclass(frozen=True)
class SectionRef:
    """One entry of a post's `selectedSections`.

    Older class posts stored a plain "<className> - <section>" label instead
    of a map; those keep the text in `label` and leave `class_id` empty.
    """
    class_id: str = ""
    section: str = ""
    label: Optional[str] = None

    def matches(self, membership: ClassSection) -> bool:
        if self.label is not None:
            return self.label == membership.label
        return self.class_id == membership.class_id and self.section == membership.section

    def to_dict(self) -> Union[Dict[str, Any], str]:
        if self.label is not None:
            return self.label
        return {"classId": self.class_id, "section": self.section}

    @classmethod
    def from_value(cls, value: Any) -> SectionRef:
        if isinstance(value, SectionRef):
            return value
        if isinstance(value, str):
            return cls(label=value)
        value = value or {}
        return cls(
            class_id=value.get("classId") or value.get("id") or "",
            section=str(value.get("section") or ""),
        )


# ===========================================================================
# Posts
# ===========================================================================

class Audience(str, enum.Enum):
    WORLD = "World"
    CLASS = "Class"
    ONLY_ME = "OnlyMe"

    @classmethod
    def parse(cls, value: Any) -> Union[Audience, str, None]:
        """Known values (and their legacy spellings) map to members; unknown
        values are returned as-is."""
        if value is None or isinstance(value, Audience):
            return value
        text = str(value).strip()
        if not text:
            return None
        return _AUDIENCE_ALIASES.get(text.lower(), text)


_AUDIENCE_ALIASES = {
    "world": Audience.WORLD,
    "class": Audience.CLASS,
    "classmates": Audience.CLASS,
    "onlyme": Audience.ONLY_ME,
    "only me": Audience.ONLY_ME,
}


@dataclass(frozen=True)
class Attachment:
    name: str = ""
    size: int = 0
    type: str = "application/octet-stream"
    uri: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "size": self.size, "type": self.type, "uri": self.uri}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Attachment:
        data = data or {}
        return cls(
            name=data.get("name", ""),
            size=int(data.get("size") or 0),
            type=data.get("type") or data.get("mimeType") or "application/octet-stream",
            uri=data.get("uri", ""),
        )


@dataclass(frozen=True)
class Post:
    ref: Optional[ItemRef] = None
    author_id: str = ""
    author: str = ""
    role: str = ""
    message: str = ""
    created_at: Optional[datetime] = None
    audience: Union[Audience, str, None] = Audience.WORLD
    selected_sections: Tuple[SectionRef, ...] = ()
    liked_by: Tuple[str, ...] = ()
    comments: int = 0
    image: Optional[str] = None
    files: Tuple[Attachment, ...] = ()
    is_announcement: bool = False
    author_avatar: Optional[str] = None
    local_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    # -- Properties ----------------------------------------------------------

    @property
    def id(self) -> Optional[str]:
        return self.ref.value if self.ref is not None else None

    @property
    def likes(self) -> int:
        return len(self.liked_by)

    @property
    def is_pending(self) -> bool:
        return isinstance(self.ref, PendingId)

    @property
    def has_content(self) -> bool:
        return bool(self.message.strip() or self.image or self.files)

    # -- Serialization -------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        audience = self.audience.value if isinstance(self.audience, Audience) else self.audience
        return {
            "authorId": self.author_id,
            "author": self.author,
            "authorAvatar": self.author_avatar,
            "role": self.role,
            "message": self.message,
            "createdAt": self.created_at,
            "audience": audience or Audience.WORLD.value,
            "selectedSections": [s.to_dict() for s in self.selected_sections],
            "likes": self.likes,
            "likedBy": list(self.liked_by),
            "comments": self.comments,
            "image": self.image,
            "files": [f.to_dict() for f in self.files],
            "isAnnouncement": self.is_announcement,
            "localId": self.local_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Post:
        return cls(
            ref=ConfirmedId(doc_id) if doc_id else None,
            author_id=data.get("authorId", ""),
            author=data.get("author", ""),
            role=data.get("role", ""),
            message=data.get("message") or "",
            created_at=_parse_datetime(data.get("createdAt")),
            audience=Audience.parse(data.get("audience")),
            selected_sections=tuple(SectionRef.from_value(s) for s in data.get("selectedSections") or ()),
            liked_by=_unique(data.get("likedBy") or ()),
            comments=max(int(data.get("comments") or 0), 0),
            image=data.get("image"),
            files=tuple(Attachment.from_dict(f) for f in data.get("files") or ()),
            is_announcement=bool(data.get("isAnnouncement", False)),
            author_avatar=data.get("authorAvatar"),
            local_id=data.get("localId"),
            updated_at=_parse_datetime(data.get("updatedAt")),
        )


# ===========================================================================
# Comments
# ===========================================================================

@dataclass(frozen=True)
class Comment:
    ref: Optional[ItemRef] = None
    author_id: str = ""
    author: str = ""
    role: str = ""
    message: str = ""
    created_at: Optional[datetime] = None
    author_avatar: Optional[str] = None
    local_id: Optional[str] = None

    @property
    def id(self) -> Optional[str]:
        return self.ref.value if self.ref is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "authorId": self.author_id,
            "author": self.author,
            "authorAvatar": self.author_avatar,
            "role": self.role,
            "message": self.message,
            "createdAt": self.created_at,
            "localId": self.local_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Comment:
        return cls(
            ref=ConfirmedId(doc_id) if doc_id else None,
            author_id=data.get("authorId", ""),
            author=data.get("author", ""),
            role=data.get("role", ""),
            message=data.get("message") or "",
            created_at=_parse_datetime(data.get("createdAt")),
            author_avatar=data.get("authorAvatar"),
            local_id=data.get("localId"),
        )


def post_view(post: Post, viewer_id: Optional[str] = None) -> Dict[str, Any]:
    """JSON-friendly rendering of a post for the presentation layer."""
    data = post.to_dict()
    data["id"] = post.id
    data["pending"] = post.is_pending
    data["createdAt"] = post.created_at.isoformat() if post.created_at else None
    data["likedByViewer"] = bool(viewer_id) and viewer_id in post.liked_by
    data.pop("localId", None)
    return data


def comment_view(comment: Comment) -> Dict[str, Any]:
    data = comment.to_dict()
    data["id"] = comment.id
    data["pending"] = isinstance(comment.ref, PendingId)
    data["createdAt"] = comment.created_at.isoformat() if comment.created_at else None
    data.pop("localId", None)
    return data


FeedItem = Union[Post, Comment]