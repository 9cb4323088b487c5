"""HTTP client with rate limiting, retries and typed errors."""
import asyncio
import logging
from typing import Optional

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from enforcement_scraper.config import config
from enforcement_scraper.fetch.rate_limit import RateLimiterRegistry

logger = logging.getLogger(__name__)

USER_AGENT = "enforcement-scraper/0.1 (+https://github.com/enforcement-scraper)"


class FetchError(Exception):
    """A fetch that failed for a reason other than status, timeout or rate limiting."""

    def __init__(self, url: str, message: str = ""):
        self.url = url
        super().__init__(message or f"Fetch failed for {url}")


class HttpStatusError(FetchError):
    def __init__(self, url: str, status_code: int):
        self.status_code = status_code
        super().__init__(url, f"HTTP {status_code} for {url}")


class RateLimitedError(HttpStatusError):
    def __init__(self, url: str):
        super().__init__(url, 429)


class FetchTimeoutError(FetchError):
    def __init__(self, url: str, timeout: float | None = None):
        self.timeout = timeout
        super().__init__(url, f"Timeout after {timeout}s for {url}")


def is_retryable(exc: BaseException) -> bool:
    """Timeouts, 5xx, 429 and transport failures are worth another attempt."""
    if isinstance(exc, RateLimitedError):
        return True
    if isinstance(exc, HttpStatusError):
        return exc.status_code >= 500
    return isinstance(exc, FetchError)


class HttpFetcher:
    """Fetches page bodies through a per-host rate limiter."""

    def __init__(
        self,
        limiters: Optional[RateLimiterRegistry] = None,
        max_retries: int = config.MAX_RETRIES,
        retry_delay: float = config.RETRY_DELAY,
        timeout: float = config.TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep=asyncio.sleep,
    ):
        self.limiters = limiters or RateLimiterRegistry(config.REQUESTS_PER_MINUTE)
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._sleep = sleep
        self.client = httpx.AsyncClient(
            http2=transport is None,
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        )
        self.request_count = 0
        self.retry_count = 0
        self.backoff_time_total = 0.0

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    def _backoff(self, retry_state: RetryCallState) -> float:
        """Fixed delay, tripled when the server said we are going too fast."""
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        return self.retry_delay * 3 if isinstance(exc, RateLimitedError) else self.retry_delay

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        self.retry_count += 1
        self.backoff_time_total += retry_state.next_action.sleep
        exc = retry_state.outcome.exception()
        logger.warning(
            f"Attempt {retry_state.attempt_number}/{self.max_retries} failed: {exc}; "
            f"retrying in {retry_state.next_action.sleep:.1f}s"
        )

    async def fetch(self, url: str) -> str:
        """Fetch a URL and return its body, raising a FetchError subclass on failure."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=self._backoff,
            retry=retry_if_exception(is_retryable),
            before_sleep=self._before_sleep,
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._fetch_once(url)

    async def _fetch_once(self, url: str) -> str:
        await self.limiters.for_url(url).acquire()
        self.request_count += 1

        try:
            response = await self.client.get(url)
        except httpx.TimeoutException as e:
            logger.warning(f"Network timeout for {url}: {e}")
            raise FetchTimeoutError(url, self.timeout) from e
        except httpx.TransportError as e:
            logger.warning(f"Network error for {url}: {e}")
            raise FetchError(url, f"{type(e).__name__}: {e}") from e

        status = response.status_code
        if status == 429:
            raise RateLimitedError(url)
        if status >= 400:
            if status >= 500:
                logger.error(f"Server error HTTP {status} for URL: {url}")
            else:
                logger.warning(f"Client error HTTP {status} for URL: {url}")
            raise HttpStatusError(url, status)

        return response.text
