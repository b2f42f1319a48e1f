"""Keyed mutual exclusion for read-modify-write cycles on one aggregate."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class KeyedLock:
    """
    One ``asyncio.Lock`` per key, created on demand and dropped when idle.

    Holders of different keys never wait on each other. Hold a key only for
    the load-mutate-commit cycle, never across publishing.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key) -> AsyncIterator[None]:
        key = str(key)
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

    def is_held(self, key) -> bool:
        lock = self._locks.get(str(key))
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


chat_locks = KeyedLock()
