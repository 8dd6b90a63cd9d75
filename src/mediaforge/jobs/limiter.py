"""Per-family concurrency limiter.

Bounded admission control on top of asyncio.Semaphore. Waiters are served
in arrival order; a waiter can give up early when its cancel event fires
without ever consuming a slot.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class ConcurrencyLimiter:
    """At most ``capacity`` permits held at once."""

    def __init__(self, capacity: int, name: str = "") -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.name = name
        self._semaphore = asyncio.Semaphore(capacity)
        self._in_use = 0
        self._waiting = 0
        self.peak_in_use = 0

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def waiting(self) -> int:
        return self._waiting

    async def acquire(self, cancel_event: asyncio.Event | None = None) -> bool:
        """Wait for a permit.

        Args:
            cancel_event: If given and set before a permit is granted, stop
                waiting and return False without holding a permit.

        Returns:
            True if a permit is now held and must be released.
        """
        if cancel_event is not None and cancel_event.is_set():
            return False

        self._waiting += 1
        try:
            if cancel_event is None:
                await self._semaphore.acquire()
                acquired = True
            else:
                acquired = await self._acquire_unless_cancelled(cancel_event)
        finally:
            self._waiting -= 1

        if acquired:
            self._in_use += 1
            self.peak_in_use = max(self.peak_in_use, self._in_use)
            logger.debug(
                "%s permit acquired (%d/%d)", self.name, self._in_use, self.capacity
            )
        return acquired

    async def _acquire_unless_cancelled(self, cancel_event: asyncio.Event) -> bool:
        acquire_task = asyncio.ensure_future(self._semaphore.acquire())
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait(
                {acquire_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        except BaseException:
            cancel_task.cancel()
            self._abandon(acquire_task)
            await asyncio.wait({acquire_task})
            if not acquire_task.cancelled() and acquire_task.exception() is None:
                self._semaphore.release()
            raise

        cancel_task.cancel()
        if acquire_task.done():
            return True

        self._abandon(acquire_task)
        await asyncio.wait({acquire_task})
        if not acquire_task.cancelled() and acquire_task.exception() is None:
            # Granted between the cancel firing and the abandon taking effect
            self._semaphore.release()
        return False

    @staticmethod
    def _abandon(task: asyncio.Future) -> None:
        if not task.done():
            task.cancel()

    def release(self) -> None:
        """Return a permit acquired with ``acquire``."""
        if self._in_use <= 0:
            raise RuntimeError(f"{self.name} limiter released more than acquired")
        self._in_use -= 1
        self._semaphore.release()
        logger.debug(
            "%s permit released (%d/%d)", self.name, self._in_use, self.capacity
        )

    @asynccontextmanager
    async def permit(
        self, cancel_event: asyncio.Event | None = None
    ) -> AsyncIterator[bool]:
        """Hold a permit for the duration of the ``async with`` block.

        Yields:
            True if a permit is held, False if ``cancel_event`` fired first.
            The permit is released on exit however the block ends.
        """
        acquired = await self.acquire(cancel_event)
        try:
            yield acquired
        finally:
            if acquired:
                self.release()

    def stats(self) -> dict[str, int]:
        return {
            "capacity": self.capacity,
            "in_use": self._in_use,
            "waiting": self._waiting,
        }
