"""Per-branch mutual exclusion."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class BranchLocks:
    """
    One asyncio.Lock per branch name.

    Fast-forwards and reverts that write to the same branch share a lock.
    Locks for several branches are always taken in sorted order.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def for_branch(self, branch: str) -> asyncio.Lock:
        if branch not in self._locks:
            self._locks[branch] = asyncio.Lock()
        return self._locks[branch]

    def is_locked(self, branch: str) -> bool:
        lock = self._locks.get(branch)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, *branches: str) -> AsyncIterator[None]:
        """Hold the locks of all given branches."""
        ordered = sorted(set(branches))
        acquired = []
        try:
            for branch in ordered:
                lock = self.for_branch(branch)
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
