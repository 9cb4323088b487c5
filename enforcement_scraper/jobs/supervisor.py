"""Runs each scrape session as its own asyncio task."""
import asyncio
import logging
from typing import Callable, Optional

from enforcement_scraper.config import config
from enforcement_scraper.fetch.client import HttpFetcher
from enforcement_scraper.fetch.rate_limit import RateLimiterRegistry
from enforcement_scraper.jobs.progress import ProgressBroadcaster
from enforcement_scraper.jobs.run_control import RunControl
from enforcement_scraper.jobs.runner import ScrapeCoordinator
from enforcement_scraper.jobs.session import RunConfig, ScrapeSession

logger = logging.getLogger(__name__)


class SessionSupervisor:
    """Owns the session tasks and the rate limiters they share.

    A crash inside one session is logged and marks that session failed;
    other sessions keep running.
    """

    def __init__(
        self,
        store,
        limiters: Optional[RateLimiterRegistry] = None,
        broadcaster: Optional[ProgressBroadcaster] = None,
        fetcher_factory: Optional[Callable[[RunConfig], HttpFetcher]] = None,
    ):
        self.store = store
        self.limiters = limiters or RateLimiterRegistry(config.REQUESTS_PER_MINUTE)
        self.broadcaster = broadcaster
        self.fetcher_factory = fetcher_factory or self._default_fetcher
        self._tasks: dict[str, asyncio.Task] = {}
        self._controls: dict[str, RunControl] = {}

    def _default_fetcher(self, run_config: RunConfig) -> HttpFetcher:
        return HttpFetcher(
            limiters=self.limiters,
            max_retries=run_config.max_retries,
            retry_delay=run_config.retry_delay,
            timeout=run_config.timeout,
        )

    async def start(self, run_config: RunConfig) -> ScrapeSession:
        session = ScrapeSession.for_config(run_config)
        await self.store.save_session(session)
        control = RunControl.from_config(run_config)
        self._controls[session.id] = control
        self._tasks[session.id] = asyncio.create_task(
            self._run(session, control), name=f"scrape-{session.id}"
        )
        logger.info(f"Started session {session.id} ({run_config.agency.value} {run_config.data_type.value})")
        return session

    async def _run(self, session: ScrapeSession, control: RunControl) -> ScrapeSession:
        try:
            async with self.fetcher_factory(session.run_config) as fetcher:
                coordinator = ScrapeCoordinator(
                    self.store, fetcher, control=control, broadcaster=self.broadcaster
                )
                return await coordinator.run(session)
        except asyncio.CancelledError:
            if not session.is_terminal:
                session.cancel("task cancelled")
                await self.store.save_session(session)
            raise
        except Exception as e:
            logger.error(f"Session {session.id} crashed: {e}", exc_info=True)
            if not session.is_terminal:
                session.fail(f"{type(e).__name__}: {e}")
            await self.store.save_session(session)
            return session
        finally:
            self._tasks.pop(session.id, None)
            self._controls.pop(session.id, None)

    def cancel(self, session_id: str, reason: str = "cancelled by request") -> bool:
        control = self._controls.get(session_id)
        if control is None:
            return False
        control.cancel(reason)
        return True

    def is_running(self, session_id: str) -> bool:
        return session_id in self._tasks

    def running(self) -> list[str]:
        return list(self._tasks)

    async def wait(self, session_id: str) -> Optional[ScrapeSession]:
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return await self.store.get_session(session_id)

    async def shutdown(self) -> None:
        """Ask every session to stop and wait for them."""
        for control in list(self._controls.values()):
            control.cancel("shutdown")
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
