"""Scrape coordinator: drives one session page by page."""
import logging
from typing import Optional

from enforcement_scraper.fetch.client import FetchError, HttpFetcher
from enforcement_scraper.jobs.metrics import Metrics
from enforcement_scraper.jobs.processing_log import ProcessingLogRecorder, item_snapshot
from enforcement_scraper.jobs.progress import ProgressBroadcaster
from enforcement_scraper.jobs.run_control import RunControl
from enforcement_scraper.jobs.session import ScrapeSession
from enforcement_scraper.jobs.sources import ListingSource, build_source
from enforcement_scraper.parse.html_parser import ParseError
from enforcement_scraper.parse.models import ScrapedSummaryRecord
from enforcement_scraper.store.dev_storage import DevStorage
from enforcement_scraper.store.gateway import PersistenceGateway

logger = logging.getLogger(__name__)


class PageOutcome:
    def __init__(self, page: int):
        self.page = page
        self.found = 0
        self.created = 0
        self.existing = 0
        self.failed = 0
        self.errors: list[str] = []
        self.items: list[dict] = []
        self.processed = []


class ScrapeCoordinator:
    """Fetch, parse, process, persist and log each configured page in order.

    Page-level fetch or parse failures are logged and skipped until
    max_page_errors is reached or the failing page is the last one; then
    the session fails. Everything else raised here propagates to the
    supervisor.
    """

    def __init__(
        self,
        store,
        fetcher: HttpFetcher,
        source: Optional[ListingSource] = None,
        control: Optional[RunControl] = None,
        broadcaster: Optional[ProgressBroadcaster] = None,
    ):
        self.store = store
        self.fetcher = fetcher
        self.source = source
        self.control = control
        self.broadcaster = broadcaster

    async def run(self, session: ScrapeSession) -> ScrapeSession:
        run_config = session.run_config
        source = self.source or build_source(run_config)
        control = self.control or RunControl.from_config(run_config)
        recorder = ProcessingLogRecorder(self.store, self.broadcaster)
        processor = source.processor(self.fetcher)
        gateway = PersistenceGateway(self.store)
        dev_storage = DevStorage(session.id) if run_config.dev_mode else None

        pages = source.pages()
        metrics = Metrics(len(pages))
        seen_ids: set[str] = set()

        session.start()
        await self.store.save_session(session)
        logger.info(f"Session {session.id}: scraping {source.name} pages {pages[0]}-{pages[-1]}")

        for index, page in enumerate(pages):
            if control.cancelled:
                session.cancel(control.cancel_reason)
                break

            session.current_page = page
            is_last_page = index == len(pages) - 1

            try:
                html = await self.fetcher.fetch(source.page_url(page))
                scraped = source.parse_listing(html, page)
            except (FetchError, ParseError) as e:
                error = f"{type(e).__name__}: {e}"
                logger.error(f"Session {session.id} page {page} failed: {error}")
                session.total_errors += 1
                control.record_page_error()
                metrics.increment("page_errors")
                await recorder.record_error(session, page, error)
                if is_last_page or control.page_errors_exhausted:
                    session.fail(f"Page {page}: {error}")
                    break
                await self.store.save_session(session)
                continue

            outcome = await self._process_page(page, scraped, processor, gateway, run_config.batch_size)
            await recorder.record(
                session,
                page,
                found=outcome.found,
                created=outcome.created,
                existing=outcome.existing,
                failed=outcome.failed,
                errors=outcome.errors,
                scraped_items=outcome.items,
            )
            if dev_storage is not None:
                dev_storage.save_page(page, scraped, outcome.processed, outcome.errors)

            seen_ids.update(r.external_id for r in scraped if r.external_id)
            session.pages_scraped += 1
            session.total_found = len(seen_ids)
            session.total_created += outcome.created
            session.total_existing += outcome.existing
            session.total_failed += outcome.failed
            await self.store.save_session(session)

            for key in ("found", "created", "existing", "failed"):
                metrics.increment(key, getattr(outcome, key))
            metrics.increment("pages")
            metrics.report()

            if not source.paginated:
                continue

            if not scraped:
                session.complete(f"Page {page} returned no records")
                break

            control.record_page(outcome.created, outcome.existing)
            should_stop, reason = control.should_stop(outcome.found, outcome.created, outcome.existing)
            if should_stop and not is_last_page:
                logger.info(f"Session {session.id}: stopping early: {reason}")
                session.complete(reason)
                break

        if not session.is_terminal:
            session.complete()
        await self.store.save_session(session)
        self._final_report(session, metrics, control)
        return session

    async def _process_page(
        self,
        page: int,
        scraped: list[ScrapedSummaryRecord],
        processor,
        gateway: PersistenceGateway,
        batch_size: int,
    ) -> PageOutcome:
        outcome = PageOutcome(page)
        outcome.found = len(scraped)

        for start in range(0, len(scraped), batch_size):
            chunk = scraped[start:start + batch_size]
            batch = await processor.process_batch(chunk)
            persisted = await gateway.persist_batch(batch.processed)

            outcome.created += len(persisted.created)
            outcome.existing += len(persisted.existing)
            outcome.failed += len(batch.errors) + len(persisted.failed)
            outcome.errors.extend(f"{ext_id}: {reason}" for ext_id, reason in batch.errors + persisted.failed)
            outcome.processed.extend(batch.processed)

            by_id = {r.external_id: r for r in batch.processed}
            outcome.items.extend(item_snapshot(s, by_id.get(s.external_id)) for s in chunk)
        return outcome

    def _final_report(self, session: ScrapeSession, metrics: Metrics, control: RunControl) -> None:
        summary = session.summary()
        run_summary = control.get_summary()

        logger.info("=" * 60)
        logger.info("FINAL REPORT")
        logger.info(f"Session ID: {session.id}")
        logger.info(f"Source: {session.agency.value} {session.data_type.value}")
        logger.info(f"Status: {summary['status']}")
        if summary["stop_reason"]:
            logger.info(f"Stop reason: {summary['stop_reason']}")
        if summary["error"]:
            logger.info(f"Error: {summary['error']}")
        logger.info(f"Duration: {summary['duration_seconds']:.2f}s")
        logger.info(f"Pages: {summary['pages_scraped']}/{metrics.total_pages}")
        logger.info(f"Found: {summary['total_found']}")
        logger.info(f"Created: {summary['total_created']}")
        logger.info(f"Existing: {summary['total_existing']}")
        logger.info(f"Failed: {summary['total_failed']}")
        logger.info(f"Page errors: {run_summary['page_errors']}")
        logger.info(f"Success rate: {summary['success_rate']:.1f}%")
        logger.info("=" * 60)
