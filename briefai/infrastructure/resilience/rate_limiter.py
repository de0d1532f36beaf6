"""Sliding window rate limiter for outgoing API requests.

Allows at most ``max_requests`` acquisitions in any ``time_window`` seconds;
callers beyond that wait until the oldest request leaves the window.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Deque

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 30
DEFAULT_TIME_WINDOW_SECONDS = 60.0


class RateLimiter:
    """Simple sliding window rate limiter."""

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        time_window: float = DEFAULT_TIME_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.time_window = time_window
        self.timestamps: Deque[float] = deque()
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        logger.info(f"RateLimiter initialized: {max_requests} requests / {time_window} seconds")

    def _cleanup_timestamps(self, now: float) -> None:
        while self.timestamps and now - self.timestamps[0] >= self.time_window:
            self.timestamps.popleft()

    def wait_time(self) -> float:
        """Seconds until the next request would be admitted (0 if now)."""
        now = self._clock()
        self._cleanup_timestamps(now)
        if len(self.timestamps) < self.max_requests:
            return 0.0
        return max(0.0, self.timestamps[0] + self.time_window - now)

    async def acquire(self) -> None:
        """Waits until a request is permitted, then records it."""
        while True:
            async with self._lock:
                wait = self.wait_time()
                if wait == 0.0:
                    self.timestamps.append(self._clock())
                    return
            logger.debug(f"Rate limit reached. Waiting for {wait:.2f} seconds.")
            await self._sleep(wait)
