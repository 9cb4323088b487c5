"""Bindings from (agency, data type) to listing URLs, parsers and processors."""
import logging
from datetime import date, timedelta
from typing import Optional

from enforcement_scraper.fetch.client import HttpFetcher
from enforcement_scraper.fetch.endpoints import (
    EA_ACTION_TYPES,
    get_ea_search_url,
    get_hse_case_list_url,
    get_hse_notice_list_url,
)
from enforcement_scraper.jobs.session import RunConfig
from enforcement_scraper.parse.extractors.ea import EaCaseParser
from enforcement_scraper.parse.extractors.hse import HseCaseParser, HseNoticeParser
from enforcement_scraper.parse.models import Agency, DataType, ScrapedSummaryRecord
from enforcement_scraper.process.base import RecordProcessor
from enforcement_scraper.process.ea import EaCaseProcessor
from enforcement_scraper.process.hse import HseCaseProcessor, HseNoticeProcessor

logger = logging.getLogger(__name__)

HSE_COUNTRIES = ("England", "Scotland", "Wales")
EA_DEFAULT_WINDOW_DAYS = 30


class ListingSource:
    """One paginated listing: which pages to walk, how to fetch and read them."""

    agency: Agency
    data_type: DataType
    processor_cls: type[RecordProcessor]
    # False when each page is an independent search rather than the next slice of one listing
    paginated = True

    def __init__(self, run_config: RunConfig, parser):
        self.run_config = run_config
        self.parser = parser

    @property
    def name(self) -> str:
        return f"{self.agency.value}_{self.data_type.value}"

    def pages(self) -> list[int]:
        return list(range(self.run_config.start_page, self.run_config.end_page + 1))

    def page_url(self, page: int) -> str:
        raise NotImplementedError

    def parse_listing(self, html: str, page: int) -> list[ScrapedSummaryRecord]:
        return self.parser.parse_listing(html, page)

    def processor(self, fetcher: Optional[HttpFetcher]) -> RecordProcessor:
        return self.processor_cls(self.parser, fetcher, fetch_details=self.run_config.fetch_details)


class HseCaseSource(ListingSource):
    agency = Agency.HSE
    data_type = DataType.CASE
    processor_cls = HseCaseProcessor

    def __init__(self, run_config: RunConfig):
        super().__init__(run_config, HseCaseParser(run_config.database))

    def page_url(self, page: int) -> str:
        return get_hse_case_list_url(page, self.run_config.database)


class HseNoticeSource(ListingSource):
    agency = Agency.HSE
    data_type = DataType.NOTICE
    processor_cls = HseNoticeProcessor

    def __init__(self, run_config: RunConfig):
        if run_config.country not in HSE_COUNTRIES:
            raise ValueError(f"country must be one of {', '.join(HSE_COUNTRIES)}, got {run_config.country!r}")
        super().__init__(run_config, HseNoticeParser(run_config.country))

    def page_url(self, page: int) -> str:
        return get_hse_notice_list_url(page, self.run_config.country)


class EaCaseSource(ListingSource):
    """EA returns a whole search on one page, so each batch is one action type."""

    agency = Agency.EA
    data_type = DataType.CASE
    processor_cls = EaCaseProcessor
    paginated = False

    def __init__(self, run_config: RunConfig):
        unknown = [a for a in run_config.action_types if a not in EA_ACTION_TYPES]
        if unknown or not run_config.action_types:
            raise ValueError(f"action types must be among {sorted(EA_ACTION_TYPES)}, got {run_config.action_types}")
        super().__init__(run_config, EaCaseParser(run_config.action_types[0]))
        self.date_to = run_config.date_to or date.today()
        self.date_from = run_config.date_from or self.date_to - timedelta(days=EA_DEFAULT_WINDOW_DAYS)

    def pages(self) -> list[int]:
        return list(range(1, len(self.run_config.action_types) + 1))

    def action_type(self, page: int) -> str:
        return self.run_config.action_types[page - 1]

    def page_url(self, page: int) -> str:
        return get_ea_search_url(self.action_type(page), self.date_from, self.date_to)

    def parse_listing(self, html: str, page: int) -> list[ScrapedSummaryRecord]:
        self.parser.action_type = self.action_type(page)
        return self.parser.parse_listing(html, page)


SOURCES = {
    (Agency.HSE, DataType.CASE): HseCaseSource,
    (Agency.HSE, DataType.NOTICE): HseNoticeSource,
    (Agency.EA, DataType.CASE): EaCaseSource,
}


def build_source(run_config: RunConfig) -> ListingSource:
    source_cls = SOURCES.get((run_config.agency, run_config.data_type))
    if source_cls is None:
        raise ValueError(f"No source for {run_config.agency.value} {run_config.data_type.value}")
    return source_cls(run_config)
