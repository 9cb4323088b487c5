"""Rate limiter per host."""
import asyncio
import logging
import time
from typing import Dict
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


class RateLimiter:
    """Spaces requests to one host at a fixed rate.

    Waiters queue on an asyncio.Lock, which wakes them in arrival order,
    so permits are granted FIFO.
    """

    def __init__(self, requests_per_minute: float, clock=time.monotonic, sleep=asyncio.sleep):
        self.requests_per_minute = requests_per_minute
        self.min_interval = 60.0 / requests_per_minute if requests_per_minute > 0 else 0
        self._clock = clock
        self._sleep = sleep
        self._last_request: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> float:
        """Wait if necessary to respect rate limit. Returns the grant time."""
        async with self._lock:
            now = self._clock()
            if self._last_request is not None:
                elapsed = now - self._last_request
                if elapsed < self.min_interval:
                    wait_time = self.min_interval - elapsed
                    logger.debug(f"Rate limit: waiting {wait_time:.2f}s")
                    await self._sleep(wait_time)
                    now = self._clock()

            self._last_request = now
            return now


class RateLimiterRegistry:
    """Hands out one shared RateLimiter per scheme://host."""

    def __init__(self, requests_per_minute: float, clock=time.monotonic, sleep=asyncio.sleep):
        self.requests_per_minute = requests_per_minute
        self._clock = clock
        self._sleep = sleep
        self._limiters: Dict[str, RateLimiter] = {}

    @staticmethod
    def host_key(url: str) -> str:
        """Extract scheme://host from URL."""
        parsed = urlparse(url)
        return f"{parsed.scheme}://{parsed.netloc}"

    def for_url(self, url: str) -> RateLimiter:
        key = self.host_key(url)
        limiter = self._limiters.get(key)
        if limiter is None:
            limiter = RateLimiter(self.requests_per_minute, clock=self._clock, sleep=self._sleep)
            self._limiters[key] = limiter
            logger.debug(f"Created rate limiter for {key} ({self.requests_per_minute}/min)")
        return limiter

    def hosts(self) -> list[str]:
        return sorted(self._limiters)
