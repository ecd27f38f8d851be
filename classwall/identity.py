from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from classwall.errors import StoreError
from classwall.firestore_models import Identity

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Optional[Identity], Optional[Identity]], None]


class IdentityContext:
    """Who is viewing. Listeners get `(old, new)` on every change."""

    def __init__(self, identity: Optional[Identity] = None):
        self._current = identity
        self._listeners: List[IdentityListener] = []
        self._lock = threading.Lock()

    @property
    def current(self) -> Optional[Identity]:
        return self._current

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    def set(self, identity: Optional[Identity]) -> None:
        with self._lock:
            old = self._current
            if old == identity:
                return
            self._current = identity
            listeners = list(self._listeners)
        for listener in listeners:
            listener(old, identity)

    def clear(self) -> None:
        self.set(None)

    def sign_in(self, repository, uid: str, fallback_name: str = '') -> Identity:
        """Load the viewer's profile and make them current.

        A profile that cannot be read leaves the viewer as a student under
        the fallback name.
        """
        try:
            profile = repository.get_profile(uid)
        except StoreError:
            logger.warning('Could not load profile for %s', uid, exc_info=True)
            profile = None
        identity = Identity.from_profile(uid, profile, fallback_name)
        self.set(identity)
        return identity


def identity_changed(old: Optional[Identity], new: Optional[Identity]) -> bool:
    """True when the change affects membership (id or role)."""
    if old is None or new is None:
        return old is not new
    return old.id != new.id or old.role != new.role
