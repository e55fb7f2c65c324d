"""
Sliding-window rate limiting for outbound API calls.

One limiter instance is shared by every HTTP client in the process. Each
request calls ``acquire()`` first; once the window's budget is spent, the
caller waits until the oldest request leaves the window.
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """
    Limit requests to ``max_requests`` per ``window_seconds``.

    Attributes:
        max_requests: Request budget per window
        window_seconds: Window length in seconds
    """

    def __init__(
        self,
        max_requests: int = 300,
        window_seconds: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._timestamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _evict(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window_seconds:
            self._timestamps.popleft()

    @property
    def in_window(self) -> int:
        """Number of requests currently counted in the window."""
        self._evict(self._clock())
        return len(self._timestamps)

    async def acquire(self) -> None:
        """Wait until a request slot is free, then claim it."""
        async with self._lock:
            now = self._clock()
            self._evict(now)

            while len(self._timestamps) >= self.max_requests:
                wait = self.window_seconds - (now - self._timestamps[0])
                logger.warning(f"Rate limit reached. Waiting {wait:.1f}s...")
                await self._sleep(wait)
                now = self._clock()
                self._evict(now)

            self._timestamps.append(now)


__all__ = ["SlidingWindowRateLimiter"]
