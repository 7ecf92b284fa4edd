"""Reader/writer lock pausing live processing during periodic syncs."""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import contextlib


class PauseLock:
    """Writer-preferring asyncio reader/writer lock.

    Live handlers hold the lock shared for one message each, so they run in
    parallel. The periodic sync takes it exclusively: it waits for in-flight
    handlers to finish, and from the moment it starts waiting no new handler
    may enter.
    """

    def __init__(self) -> None:
        """Create an unlocked lock."""
        self._condition = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @property
    def readers(self) -> int:
        """Return how many holders currently share the lock."""
        return self._readers

    @property
    def exclusively_held(self) -> bool:
        """Return True while a writer holds the lock."""
        return self._writer

    def _can_read(self) -> bool:
        return not self._writer and self._waiting_writers == 0

    def _can_write(self) -> bool:
        return not self._writer and self._readers == 0

    @contextlib.asynccontextmanager
    async def shared(self) -> cabc.AsyncIterator[None]:
        """Hold the lock alongside other shared holders."""
        async with self._condition:
            await self._condition.wait_for(self._can_read)
            self._readers += 1
        try:
            yield
        finally:
            async with self._condition:
                self._readers -= 1
                self._condition.notify_all()

    @contextlib.asynccontextmanager
    async def exclusive(self) -> cabc.AsyncIterator[None]:
        """Hold the lock alone, once every shared holder has released it."""
        async with self._condition:
            self._waiting_writers += 1
            try:
                await self._condition.wait_for(self._can_write)
            finally:
                self._waiting_writers -= 1
                self._condition.notify_all()
            self._writer = True
        try:
            yield
        finally:
            async with self._condition:
                self._writer = False
                self._condition.notify_all()
