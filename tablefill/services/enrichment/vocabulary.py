"""Serialized access to categorical column vocabularies.

Concurrent fills of the same column must not overwrite each other's new
select items. Reconciliation for a column therefore runs under a per-column
lock and writes through ``VocabularyStore.add_if_absent``.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable, List, Sequence, Tuple

from tablefill.schemas.table import Column, SelectItem
from tablefill.utils.logging import get_logger

LOGGER = get_logger(__name__)


class KeyedLockRegistry:
    """One asyncio.Lock per key, discarded once nobody holds or awaits it."""

    def __init__(self) -> None:
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


def _merge_absent(current: List[SelectItem], candidates: Sequence[SelectItem]) -> List[SelectItem]:
    """Append candidates whose name is not present yet; return the appended ones."""
    known = {item.name.casefold() for item in current}
    added: List[SelectItem] = []
    for item in candidates:
        key = item.name.casefold()
        if key in known:
            continue
        current.append(item)
        known.add(key)
        added.append(item)
    return added


class VocabularyStore(ABC):
    """Source of truth for a column's select items."""

    @abstractmethod
    async def load(self, table_id: str, column: Column) -> List[SelectItem]:
        """Current select items of the column."""

    @abstractmethod
    async def add_if_absent(
        self, table_id: str, column: Column, items: Sequence[SelectItem]
    ) -> List[SelectItem]:
        """Atomically append items whose name (case-insensitive) is not present.

        Returns:
            The full vocabulary after the update
        """

    @asynccontextmanager
    async def session(self, table_id: str, column_id: str) -> AsyncIterator[None]:
        """Scope during which the caller has not yet persisted returned items.

        Stores that persist ``add_if_absent`` themselves need no scope.
        """
        yield


class InMemoryVocabularyStore(VocabularyStore):
    """Vocabulary taken from the incoming column plus not-yet-persisted additions.

    The column on each request is authoritative: items removed from it are
    never offered again. Items created during an open ``session`` are kept as
    a pending overlay so that concurrent or sequential fills in the same batch
    reuse them; the overlay is dropped when the last session for the column
    closes, by which time the caller holds every result.
    """

    def __init__(self) -> None:
        self._pending: Dict[Tuple[str, str], List[SelectItem]] = {}
        self._sessions: Dict[Tuple[str, str], int] = {}

    @asynccontextmanager
    async def session(self, table_id: str, column_id: str) -> AsyncIterator[None]:
        key = (table_id, column_id)
        self._sessions[key] = self._sessions.get(key, 0) + 1
        try:
            yield
        finally:
            self._sessions[key] -= 1
            if self._sessions[key] == 0:
                del self._sessions[key]
                self._pending.pop(key, None)

    def _current(self, table_id: str, column: Column) -> List[SelectItem]:
        current = list(column.select_items)
        _merge_absent(current, self._pending.get((table_id, column.id), []))
        return current

    async def load(self, table_id: str, column: Column) -> List[SelectItem]:
        return self._current(table_id, column)

    async def add_if_absent(
        self, table_id: str, column: Column, items: Sequence[SelectItem]
    ) -> List[SelectItem]:
        key = (table_id, column.id)
        current = self._current(table_id, column)
        added = _merge_absent(current, items)
        if added and key in self._sessions:
            self._pending.setdefault(key, []).extend(added)
        LOGGER.debug(f"Vocabulary {table_id}/{column.id}: added {len(added)} of {len(items)} item(s)")
        return current

    def __len__(self) -> int:
        return len(self._pending)
