"""
Ordered, de-duplicated feed state.

A FeedStore keeps one ordered collection per scope (the wall, or one post's
comment thread). Live-query snapshots are merged into it rather than replacing
it, so optimistic entries that the server has not confirmed yet survive.

Ordering: `created_at` descending, ties broken newest-inserted first. Pending
items and items whose server timestamp is unresolved sort as "now".
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

from classwall.firestore_models import (
    ConfirmedId, FeedItem, ItemRef, PendingId, as_ref, new_local_id,
)

logger = logging.getLogger(__name__)

WALL_SCOPE = 'wall'


def comments_scope(post_id: str) -> str:
    return f'comments:{post_id}'


@dataclass
class _Entry:
    item: FeedItem
    seq: int


@dataclass
class _Scope:
    entries: List[_Entry] = field(default_factory=list)
    # Confirmed ids removed locally; kept out of snapshots until the
    # server stops listing them.
    removed: Set[ConfirmedId] = field(default_factory=set)
    # Local ids of entries removed locally; a confirmed copy carrying one is
    # never merged back in.
    removed_local: Set[str] = field(default_factory=set)

    def index_of(self, ref: ItemRef) -> Optional[int]:
        for i, entry in enumerate(self.entries):
            if entry.item.ref == ref:
                return i
        return None


def _sort_key(entry: _Entry):
    item = entry.item
    if isinstance(item.ref, PendingId) or item.created_at is None:
        ts = float('inf')
    else:
        ts = item.created_at.timestamp()
    return (ts, entry.seq)


def _fingerprint(item: FeedItem):
    return (item.author_id, item.created_at, item.message)


class FeedStore:
    """Holds feed items per scope. All operations are serialised."""

    def __init__(self, local_prefix: str = 'local_post_'):
        self._local_prefix = local_prefix
        self._scopes: Dict[str, _Scope] = {}
        self._seq = itertools.count(1)
        self._lock = threading.RLock()

    # -- Scope lifecycle -----------------------------------------------------

    def open(self, scope: str) -> None:
        with self._lock:
            self._scopes.setdefault(scope, _Scope())

    def close(self, scope: str) -> None:
        with self._lock:
            self._scopes.pop(scope, None)

    def close_all(self) -> None:
        with self._lock:
            self._scopes.clear()

    def is_open(self, scope: str) -> bool:
        with self._lock:
            return scope in self._scopes

    def items(self, scope: str) -> List[FeedItem]:
        with self._lock:
            state = self._scopes.get(scope)
            if state is None:
                return []
            return [entry.item for entry in state.entries]

    def get(self, scope: str, ref: Union[ItemRef, str]) -> Optional[FeedItem]:
        ref = as_ref(ref)
        with self._lock:
            state = self._scopes.get(scope)
            if state is None:
                return None
            i = state.index_of(ref)
            return state.entries[i].item if i is not None else None

    def _scope(self, scope: str, operation: str) -> Optional[_Scope]:
        state = self._scopes.get(scope)
        if state is None:
            logger.debug('Dropping %s on closed scope %s', operation, scope)
        return state

    # -- Mutations -----------------------------------------------------------

    def replace_snapshot(self, scope: str, items: Iterable[FeedItem]) -> bool:
        """Merge a full server snapshot into the scope.

        Returns False when the scope is not open and the snapshot was dropped.
        """
        with self._lock:
            state = self._scope(scope, 'snapshot')
            if state is None:
                return False

            incoming: Dict[ConfirmedId, FeedItem] = {}
            for item in items:
                if not isinstance(item.ref, ConfirmedId):
                    continue
                if item.local_id and item.local_id in state.removed_local:
                    continue
                incoming.pop(item.ref, None)
                incoming[item.ref] = item

            state.removed &= set(incoming)
            for ref in state.removed:
                incoming.pop(ref, None)

            seqs = {entry.item.ref: entry.seq for entry in state.entries}
            merged: List[_Entry] = []
            claimed: Set[ConfirmedId] = set()
            for entry in state.entries:
                if not isinstance(entry.item.ref, PendingId):
                    continue
                match = self._find_confirmed(entry.item, incoming, claimed)
                if match is None:
                    merged.append(entry)
                else:
                    claimed.add(match.ref)
                    seqs.setdefault(match.ref, entry.seq)

            for ref, item in incoming.items():
                seq = seqs.get(ref)
                if seq is None:
                    seq = next(self._seq)
                merged.append(_Entry(item, seq))

            merged.sort(key=_sort_key, reverse=True)
            state.entries = merged
            return True

    @staticmethod
    def _find_confirmed(pending: FeedItem, incoming: Mapping[ConfirmedId, FeedItem],
                        claimed: Set[ConfirmedId]) -> Optional[FeedItem]:
        local_id = pending.local_id or pending.ref.local_id
        for ref, item in incoming.items():
            if ref not in claimed and item.local_id and item.local_id == local_id:
                return item
        if pending.created_at is None:
            return None
        wanted = _fingerprint(pending)
        for ref, item in incoming.items():
            if ref not in claimed and _fingerprint(item) == wanted:
                return item
        return None

    def insert_optimistic(self, scope: str, draft: FeedItem) -> PendingId:
        """Prepend a draft under a fresh placeholder id and return that id."""
        with self._lock:
            local_id = draft.local_id or new_local_id(self._local_prefix)
            ref = PendingId(local_id)
            state = self._scope(scope, 'optimistic insert')
            if state is not None:
                item = dataclasses.replace(draft, ref=ref, local_id=local_id)
                state.entries.insert(0, _Entry(item, next(self._seq)))
            return ref

    def reconcile(self, scope: str, placeholder: PendingId, confirmed: FeedItem) -> bool:
        """Swap a placeholder for its confirmed item, in place.

        Returns False when the placeholder is no longer there (removed
        locally, already merged from a snapshot, or the scope was closed).
        """
        with self._lock:
            state = self._scope(scope, 'reconcile')
            if state is None:
                return False
            i = state.index_of(placeholder)
            if i is None:
                logger.debug('Placeholder %s already gone from %s', placeholder.local_id, scope)
                return False
            if state.index_of(confirmed.ref) is not None:
                del state.entries[i]
                return True
            item = dataclasses.replace(confirmed, local_id=confirmed.local_id or placeholder.local_id)
            state.entries[i] = _Entry(item, state.entries[i].seq)
            return True

    def remove(self, scope: str, ref: Union[ItemRef, str]) -> bool:
        ref = as_ref(ref)
        with self._lock:
            state = self._scope(scope, 'remove')
            if state is None:
                return False
            kept = []
            for entry in state.entries:
                if entry.item.ref != ref:
                    kept.append(entry)
                elif entry.item.local_id:
                    state.removed_local.add(entry.item.local_id)
            found = len(kept) != len(state.entries)
            state.entries = kept
            if isinstance(ref, ConfirmedId):
                state.removed.add(ref)
            elif isinstance(ref, PendingId):
                state.removed_local.add(ref.local_id)
            return found

    def update(self, scope: str, ref: Union[ItemRef, str], patch: Mapping[str, Any]) -> Optional[FeedItem]:
        """Apply a partial update; returns the updated item, or None if absent."""
        ref = as_ref(ref)
        with self._lock:
            state = self._scope(scope, 'update')
            if state is None:
                return None
            i = state.index_of(ref)
            if i is None:
                return None
            entry = state.entries[i]
            entry.item = dataclasses.replace(entry.item, **patch)
            return entry.item
