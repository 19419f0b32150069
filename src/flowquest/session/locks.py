"""Per-session mutual exclusion."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from .models import SessionKey


class SessionLocks:
    """Serializes work on a session within one process.

    A chat or initialize call holds the lock of its session for the whole
    read, generate and write sequence, so two turns on the same session
    apply one after the other. Different sessions never block each other.
    """

    def __init__(self) -> None:
        self._locks: dict[SessionKey, asyncio.Lock] = {}
        self._busy: set[SessionKey] = set()

    def get_lock(self, key: SessionKey) -> asyncio.Lock:
        """Get the lock for a session, creating it on first use."""
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def is_busy(self, key: SessionKey) -> bool:
        """Check if a session is currently processing a request."""
        return key in self._busy

    @asynccontextmanager
    async def hold(self, key: SessionKey) -> AsyncIterator[None]:
        """Hold the session's lock for the duration of the block.

        Waits for any turn already running on the session.
        """
        lock = self.get_lock(key)
        async with lock:
            self._busy.add(key)
            try:
                yield
            finally:
                self._busy.discard(key)

    def discard(self, key: SessionKey) -> bool:
        """Drop the lock of an idle session.

        Returns:
            True if a lock was removed.
        """
        lock = self._locks.get(key)
        if lock is None or lock.locked():
            return False
        del self._locks[key]
        return True

    def __len__(self) -> int:
        return len(self._locks)
