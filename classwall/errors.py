from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class ClassWallError(RuntimeError):
    """Base class for every error raised by the class wall core."""


class ValidationError(ClassWallError):
    """Raised before any network call when a submission is incomplete."""


class OwnershipError(ClassWallError):
    """Raised when a viewer edits or deletes a post they may not touch."""


class StoreError(ClassWallError):
    """Raised when a read or write against the document store fails."""


class PermissionDeniedError(StoreError):
    """Raised when the document store rejects an operation for the viewer."""


@dataclass(frozen=True)
class SyncWarning:
    """A mutation was kept locally but could not be persisted."""

    operation: str
    message: str
    item_id: Optional[str] = None
    permission_denied: bool = False
