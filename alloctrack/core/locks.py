"""Per-resource exclusive locks.

Mutations of one resource's allocation set run one at a time inside a
process; different resources never wait on each other. A lock lives only
while some task holds or waits for it.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class ResourceLocks:
    """Registry of ``asyncio.Lock`` objects keyed by resource id."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, resource_id: str) -> AsyncIterator[None]:
        """Hold the lock for ``resource_id`` for the duration of the block."""
        lock = self._locks.get(resource_id)
        if lock is None:
            lock = self._locks[resource_id] = asyncio.Lock()
        self._holders[resource_id] = self._holders.get(resource_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[resource_id] -= 1
            if self._holders[resource_id] == 0:
                del self._holders[resource_id]
                del self._locks[resource_id]

    def is_locked(self, resource_id: str) -> bool:
        lock = self._locks.get(resource_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
