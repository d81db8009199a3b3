from __future__ import annotations

import asyncio
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Generic, Hashable, Iterator, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class MemoCache(Generic[K, V]):
    """In-memory key/value store with an optional LRU bound.

    max_entries <= 0 keeps every entry for the life of the cache. Entries are
    never invalidated when the underlying file changes.
    """

    def __init__(self, max_entries: int = 0) -> None:
        self.max_entries = max_entries
        self._entries: "OrderedDict[K, V]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: K) -> Optional[V]:
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def put_if_absent(self, key: K, value: V) -> V:
        """Store value unless key is present; return the stored value."""
        if key in self._entries:
            self._entries.move_to_end(key)
            return self._entries[key]
        self._entries[key] = value
        self._evict_overflow()
        return value

    def _evict_overflow(self) -> None:
        if self.max_entries <= 0:
            return
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def values(self) -> Iterator[V]:
        return iter(list(self._entries.values()))

    def clear(self) -> None:
        self._entries.clear()


class KeyedLocks(Generic[K]):
    """One asyncio.Lock per key, dropped once no task holds or awaits it."""

    def __init__(self) -> None:
        self._locks: dict[K, asyncio.Lock] = {}
        self._users: dict[K, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: K) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]
