"""Shared fixtures: a temporary SQLite store and fetchers backed by httpx.MockTransport."""
import asyncio

import httpx
import pytest

from enforcement_scraper.fetch.client import HttpFetcher
from enforcement_scraper.fetch.rate_limit import RateLimiterRegistry
from enforcement_scraper.store.state import EnforcementStore


async def no_sleep(seconds):
    return None


@pytest.fixture
def store(tmp_path):
    db = EnforcementStore(tmp_path / "state.db")
    asyncio.run(db.initialize())
    return db


@pytest.fixture
def make_fetcher():
    """Build an HttpFetcher whose requests go to `handler` and never really sleep."""

    def _make(handler, max_retries=1, retry_delay=0.0, sleep=no_sleep):
        return HttpFetcher(
            limiters=RateLimiterRegistry(60_000, sleep=no_sleep),
            max_retries=max_retries,
            retry_delay=retry_delay,
            transport=httpx.MockTransport(handler),
            sleep=sleep,
        )

    return _make
