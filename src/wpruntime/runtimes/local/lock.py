"""Per-app locks for supervisor operations."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class AppLocks:
    """Per-app locks that exist only while in use.

    Serializes start/stop for one app_id while different apps proceed
    concurrently. An entry is dropped once no caller holds or waits on it,
    so stopped apps leave nothing behind. Owned by a supervisor instance so
    independent supervisors never share locks.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, app_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(app_id, asyncio.Lock())
        self._users[app_id] = self._users.get(app_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[app_id] -= 1
            if self._users[app_id] == 0:
                del self._users[app_id]
                del self._locks[app_id]
