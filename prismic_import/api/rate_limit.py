"""Request throttling for the Prismic write APIs.

Both write APIs reject bursts, so every request passes through a
``RateLimiter`` before dispatch. Callers may fan out freely; the limiter
serializes dispatch to ``max_requests`` per ``per_seconds`` sliding window
and optionally bounds the number of requests in flight.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class RateLimiter:
    def __init__(
        self,
        *,
        max_requests: int = 1,
        per_seconds: float = 2.5,
        max_concurrency: int | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if per_seconds < 0:
            raise ValueError("per_seconds must be >= 0")
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")

        self.max_requests = max_requests
        self.per_seconds = per_seconds
        self.max_concurrency = max_concurrency
        self._clock = clock
        self._sleep = sleep
        self._dispatched: deque[float] = deque()
        self._lock = asyncio.Lock()
        self._inflight = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    @classmethod
    def unlimited(cls) -> RateLimiter:
        """A limiter that never waits (tests, local mocks)."""
        return cls(max_requests=1, per_seconds=0)

    async def _wait_for_window(self) -> None:
        async with self._lock:
            while True:
                now = self._clock()
                while self._dispatched and now - self._dispatched[0] >= self.per_seconds:
                    self._dispatched.popleft()
                if len(self._dispatched) < self.max_requests:
                    self._dispatched.append(now)
                    return
                delay = self.per_seconds - (now - self._dispatched[0])
                logger.debug("Rate limit reached; waiting %.2fs", delay)
                await self._sleep(delay)

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold a dispatch slot for the duration of one request."""
        if self._inflight is None:
            await self._wait_for_window()
            yield
            return

        async with self._inflight:
            await self._wait_for_window()
            yield
