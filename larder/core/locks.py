"""In-process locks for serializing read-modify-write sequences."""

import asyncio
import contextlib
from collections.abc import AsyncIterator, Hashable


class KeyedLock:
    """A registry of asyncio locks, one per key.

    Entries are dropped once no task holds or waits on them, so the registry
    stays proportional to the number of keys currently in use.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @contextlib.asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def is_locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


# Per-item locks for direct edits and reconciliation writes
item_locks = KeyedLock()

# Serializes whole reconciliation batches so fuzzy resolution sees a stable item set
batch_lock = KeyedLock()
