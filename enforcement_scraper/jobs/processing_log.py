"""Append-only audit entries, one per processed page or batch."""
import logging
from typing import Optional

from enforcement_scraper.jobs.progress import ProgressBroadcaster, ProgressEvent
from enforcement_scraper.jobs.session import ScrapeSession
from enforcement_scraper.parse.models import ProcessedRecord, ProcessingLogEntry, ScrapedSummaryRecord

logger = logging.getLogger(__name__)


def item_snapshot(summary: ScrapedSummaryRecord, processed: Optional[ProcessedRecord] = None) -> dict:
    snapshot = summary.snapshot()
    if processed is not None and processed.fine is not None:
        snapshot["fine_amount"] = str(processed.fine)
    return snapshot


class ProcessingLogRecorder:
    def __init__(self, store, broadcaster: Optional[ProgressBroadcaster] = None):
        self.store = store
        self.broadcaster = broadcaster

    async def record(
        self,
        session: ScrapeSession,
        page: int,
        found: int = 0,
        created: int = 0,
        existing: int = 0,
        failed: int = 0,
        errors: Optional[list[str]] = None,
        scraped_items: Optional[list[dict]] = None,
    ) -> ProcessingLogEntry:
        entry = ProcessingLogEntry(
            session_id=session.id,
            agency=session.agency,
            batch_or_page=page,
            items_found=found,
            items_created=created,
            items_existing=existing,
            items_failed=failed,
            errors=errors or [],
            scraped_items=scraped_items or [],
        )
        if not entry.is_balanced:
            logger.warning(
                f"Session {session.id} page {page}: found={found} but "
                f"created={created} + existing={existing} + failed={failed}"
            )

        entry = await self.store.append_processing_log(entry)

        if self.broadcaster is not None:
            await self.broadcaster.publish(
                ProgressEvent(
                    session_id=session.id,
                    agency=session.agency,
                    data_type=session.data_type,
                    page=page,
                    found=found,
                    created=created,
                    existing=existing,
                    failed=failed,
                    errors=len(entry.errors),
                    status=session.status.value,
                )
            )
        return entry

    async def record_error(self, session: ScrapeSession, page: int, error: str) -> ProcessingLogEntry:
        """Entry for a page that could not be fetched or parsed at all."""
        return await self.record(session, page, errors=[error])
