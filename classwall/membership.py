"""
Class/section membership of the current viewer.

Instructors belong to the classes they created, students to the classes whose
roster lists them. Membership only drives display filtering, so lookups fail
soft to an empty set.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import FrozenSet, Optional, Tuple

from classwall.errors import StoreError
from classwall.firestore_models import ClassSection, Identity

logger = logging.getLogger(__name__)

EMPTY: FrozenSet[ClassSection] = frozenset()


def _key(identity: Optional[Identity]) -> Optional[Tuple[str, str]]:
    if identity is None:
        return None
    return (identity.id, identity.role)


class MembershipResolver:

    def __init__(self, repository):
        self.repository = repository
        self._current: FrozenSet[ClassSection] = EMPTY
        self._current_key = None
        self._generation = itertools.count(1)
        self._latest = 0
        self._lock = threading.Lock()

    @property
    def current(self) -> FrozenSet[ClassSection]:
        return self._current

    def resolve(self, identity: Optional[Identity]) -> FrozenSet[ClassSection]:
        if identity is None:
            return EMPTY
        try:
            if identity.is_instructor():
                docs = self.repository.classes_created_by(identity.id)
            else:
                docs = self.repository.classes_enrolled(identity.id)
        except StoreError:
            logger.warning('Membership lookup failed for %s (%s)', identity.id, identity.role,
                           exc_info=True)
            return EMPTY
        return frozenset(ClassSection.from_dict(doc, doc.get('id')) for doc in docs)

    def refresh(self, identity: Optional[Identity]) -> Optional[FrozenSet[ClassSection]]:
        """Resolve and apply membership for `identity`.

        A refresh started later supersedes this one; a superseded result is
        discarded and None is returned.
        """
        key = _key(identity)
        with self._lock:
            generation = next(self._generation)
            self._latest = generation
            if key != self._current_key:
                self._current = EMPTY
                self._current_key = key

        result = self.resolve(identity)

        with self._lock:
            if generation != self._latest:
                logger.debug('Discarding superseded membership for %s', key)
                return None
            self._current = result
            return result

    def invalidate(self) -> None:
        with self._lock:
            self._latest = next(self._generation)
            self._current = EMPTY
            self._current_key = None
