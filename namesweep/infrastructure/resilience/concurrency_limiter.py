"""Implementation of a concurrency limiter.

Admits at most ``max_concurrent`` logical tasks at once. Extra callers wait in
FIFO order; each release hands its slot directly to the oldest waiter.
Knows nothing about the network, so it can be tested in isolation.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConcurrencyLimiter:
    """FIFO admission-control gate with an explicit acquire/release contract."""

    def __init__(self, max_concurrent: int):
        """Initializes the limiter.

        Args:
            max_concurrent: Maximum number of tasks admitted at the same time.
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.max_concurrent = max_concurrent
        self._active = 0
        self._peak_active = 0
        self._waiters: Deque[asyncio.Future] = deque()
        logger.debug(f"ConcurrencyLimiter initialized: max_concurrent={max_concurrent}")

    @property
    def active(self) -> int:
        """Number of tasks currently holding a slot."""
        return self._active

    @property
    def waiting(self) -> int:
        """Number of callers queued for a slot."""
        return sum(1 for w in self._waiters if not w.done())

    @property
    def peak_active(self) -> int:
        """Highest number of simultaneously admitted tasks seen so far."""
        return self._peak_active

    async def acquire(self) -> None:
        """Waits until a slot is free, then takes it."""
        if self._active < self.max_concurrent and not self._waiters:
            self._take_slot()
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            # The releasing task transfers its slot to us before waking us up
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over just before cancellation; pass it on
                self.release()
            else:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            raise

    def release(self) -> None:
        """Releases a slot, admitting the next queued caller if there is one."""
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Hand over: active count stays the same
                waiter.set_result(None)
                return
        if self._active <= 0:
            raise RuntimeError("ConcurrencyLimiter released more times than acquired")
        self._active -= 1

    async def run(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Runs ``func(*args, **kwargs)`` while holding a slot."""
        async with self:
            return await func(*args, **kwargs)

    async def __aenter__(self) -> "ConcurrencyLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()

    def _take_slot(self) -> None:
        self._active += 1
        if self._active > self._peak_active:
            self._peak_active = self._active
