"""Turns scraped summary records into ProcessedRecords, one source at a time."""
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Optional, TypeVar

from pydantic import ValidationError

from enforcement_scraper.fetch.client import FetchError, HttpFetcher
from enforcement_scraper.parse.html_parser import ParseError
from enforcement_scraper.parse.models import ProcessedRecord, ScrapedDetailRecord, ScrapedSummaryRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

ACT_RE = re.compile(r"([A-Z][A-Za-z()&,' ]*? (?:Act|Regulations) \d{4})")
PENNY = Decimal("0.01")


class ProcessingError(Exception):
    def __init__(self, external_id: Optional[str], reason: str):
        self.external_id = external_id
        self.reason = reason
        super().__init__(f"{external_id}: {reason}")


@dataclass
class BatchResult:
    processed: list[ProcessedRecord] = field(default_factory=list)
    errors: list[tuple[Optional[str], str]] = field(default_factory=list)


def normalize_money(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(value).quantize(PENNY)


def link_legislation(record: ProcessedRecord) -> ProcessedRecord:
    """Default enrichment: collect Act and Regulations titles cited by the record."""
    sources = [record.breaches, record.legal_reference, record.notice_body]
    refs = []
    for text in sources:
        for match in ACT_RE.findall(text or ""):
            title = match.strip()
            if title not in refs:
                refs.append(title)
    return record.model_copy(update={"legislation_refs": refs})


class RecordProcessor:
    """Base processor: detail enrichment, record building and batch fail-soft.

    Subclasses implement `build` and may override `collect_sub_records` to
    follow links found on the detail page.
    """

    def __init__(
        self,
        parser,
        fetcher: Optional[HttpFetcher] = None,
        fetch_details: bool = True,
        enrich: Callable[[ProcessedRecord], ProcessedRecord] = link_legislation,
    ):
        self.parser = parser
        self.fetcher = fetcher
        self.fetch_details = fetch_details
        self.enrich = enrich

    async def process(self, summary: ScrapedSummaryRecord) -> ProcessedRecord:
        if not summary.external_id:
            raise ProcessingError(None, "missing external id")

        try:
            detail = await self.collect_detail(summary)
            record = self.build(summary, detail)
            record = record.model_copy(
                update={"fine": normalize_money(record.fine), "costs": normalize_money(record.costs)}
            )
            return self.enrich(record)
        except (ValidationError, ValueError, TypeError) as e:
            raise ProcessingError(summary.external_id, str(e)) from e
        except Exception as e:
            raise ProcessingError(summary.external_id, f"{type(e).__name__}: {e}") from e

    async def process_batch(self, records: list[ScrapedSummaryRecord]) -> BatchResult:
        """Process every record; failures are collected, never raised."""
        result = BatchResult()
        for summary in records:
            try:
                result.processed.append(await self.process(summary))
            except ProcessingError as e:
                logger.warning(f"Failed to process {e.external_id}: {e.reason}")
                result.errors.append((e.external_id, e.reason))
        return result

    async def collect_detail(self, summary: ScrapedSummaryRecord) -> ScrapedDetailRecord:
        if not self.fetch_details or self.fetcher is None or not summary.detail_url:
            return ScrapedDetailRecord()

        detail = await self.fetch_optional(summary.detail_url, self.parser.parse_detail)
        if detail is None:
            # Degrade to the summary data
            return ScrapedDetailRecord()
        return await self.collect_sub_records(summary, detail)

    async def collect_sub_records(
        self, summary: ScrapedSummaryRecord, detail: ScrapedDetailRecord
    ) -> ScrapedDetailRecord:
        return detail

    async def fetch_optional(self, url: str, parse: Callable[[str], T]) -> Optional[T]:
        """Fetch and parse a page, logging and returning None on failure."""
        try:
            html = await self.fetcher.fetch(url)
            return parse(html)
        except (FetchError, ParseError) as e:
            logger.warning(f"Detail fetch failed for {url}: {e}")
            return None

    def build(self, summary: ScrapedSummaryRecord, detail: ScrapedDetailRecord) -> ProcessedRecord:
        raise NotImplementedError

    @staticmethod
    def source_metadata(summary: ScrapedSummaryRecord, source: str) -> dict:
        return {
            "scraped_at": summary.scraped_at.isoformat(),
            "source_page": summary.page_number,
            "source": source,
        }

