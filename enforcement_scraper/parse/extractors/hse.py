"""Parsers for HSE convictions and notices pages."""
import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

from selectolax.parser import Node

from enforcement_scraper.config import config
from enforcement_scraper.fetch.endpoints import (
    get_hse_breach_list_url,
    get_hse_case_details_url,
    get_hse_notice_details_url,
    get_hse_related_cases_url,
)
from enforcement_scraper.parse.html_parser import (
    clean_text,
    first_link,
    load_document,
    node_text,
    parse_date,
    parse_money,
    table_rows,
    title_case_upper,
)
from enforcement_scraper.parse.models import Agency, DataType, ScrapedDetailRecord, ScrapedSummaryRecord

logger = logging.getLogger(__name__)

BREACH_LINK_TEXTS = ("Breach involved in this Case", "Breaches involved in this Case")
RELATED_LINK_TEXT = "Related Cases"
BREACH_ID_SUFFIX_RE = re.compile(r"\d{3}$")


def _search_value(href: str) -> Optional[str]:
    """The SV= parameter of an HSE search link."""
    values = parse_qs(urlparse(href).query).get("SV")
    return values[0].strip() if values and values[0].strip() else None


def _row_labels(row: list[Node]) -> dict[str, Optional[str]]:
    """Map each cell's text to the text of the cell after it."""
    pairs = {}
    for index, cell in enumerate(row[:-1]):
        label = node_text(cell)
        if label and label not in pairs:
            pairs[label] = node_text(row[index + 1])
    return pairs


class HseCaseParser:
    """Convictions listing, case details, breach list and related cases."""

    agency = Agency.HSE
    data_type = DataType.CASE

    def __init__(self, database: str = config.HSE_DATABASE):
        self.database = database

    def parse_listing(self, html: str, page: int) -> list[ScrapedSummaryRecord]:
        parser = load_document(html)
        records = []
        for cells in table_rows(parser):
            if len(cells) != 5:
                continue
            link = first_link(cells[0])
            regulator_id = node_text(link) if link is not None else None
            if not regulator_id:
                continue
            records.append(
                ScrapedSummaryRecord(
                    agency=self.agency,
                    data_type=self.data_type,
                    external_id=regulator_id,
                    offender_name=node_text(cells[1]),
                    action_date=parse_date(node_text(cells[2])),
                    action_type="Court Case",
                    local_authority=node_text(cells[3]),
                    main_activity=node_text(cells[4]),
                    detail_url=get_hse_case_details_url(regulator_id, self.database),
                    page_number=page,
                )
            )
        logger.debug(f"HSE cases page {page}: {len(records)} rows")
        return records

    def parse_detail(self, html: str) -> ScrapedDetailRecord:
        parser = load_document(html)
        detail = ScrapedDetailRecord()

        for link in parser.css("a[href]"):
            text = node_text(link)
            href = link.attributes.get("href") or ""
            case_number = _search_value(href)
            if not case_number:
                continue
            if text in BREACH_LINK_TEXTS:
                if "breach_details.asp" in href:
                    # Single breach links carry the breach id: case number plus a 3 digit suffix
                    case_number = BREACH_ID_SUFFIX_RE.sub("", case_number)
                detail.breach_link = get_hse_breach_list_url(case_number, self.database)
            elif text == RELATED_LINK_TEXT:
                detail.related_link = get_hse_related_cases_url(case_number, self.database)

        for row in table_rows(parser):
            labels = _row_labels(row)
            if "HSE Directorate" in labels:
                detail.regulator_function = title_case_upper(labels["HSE Directorate"])
            if "Main Activity" in labels:
                detail.main_activity = labels["Main Activity"]
            if "Industry" in labels:
                detail.industry = labels["Industry"]
            if "Local Authority" in labels:
                detail.local_authority = labels["Local Authority"]
            if "Total Fine" in labels:
                detail.fine = parse_money(labels["Total Fine"])
            if "Total Costs Awarded to HSE" in labels:
                detail.costs = parse_money(labels["Total Costs Awarded to HSE"])
        return detail

    def parse_breaches(self, html: str) -> ScrapedDetailRecord:
        """Breach list: one six-cell row per offence."""
        parser = load_document(html)
        breaches = []
        hearing_date = None
        result = None
        for cells in table_rows(parser):
            if len(cells) != 6:
                continue
            breach = node_text(cells[5])
            if not breach:
                continue
            breaches.append(breach)
            hearing_date = parse_date(node_text(cells[2])) or hearing_date
            result = node_text(cells[3]) or result
        return ScrapedDetailRecord(
            breaches=breaches,
            offence_count=len(breaches),
            hearing_date=hearing_date,
            result=result,
        )

    def parse_related_cases(self, html: str) -> Optional[str]:
        """Comma joined HSE_<number> references, or None."""
        parser = load_document(html)
        related = []
        for cells in table_rows(parser):
            if len(cells) != 5:
                continue
            link = first_link(cells[0])
            number = node_text(link) if link is not None else None
            if number:
                related.append(f"HSE_{number}")
        return ",".join(related) or None


class HseNoticeParser:
    """Notice listing (per country), notice details and notice breaches."""

    agency = Agency.HSE
    data_type = DataType.NOTICE

    def __init__(self, country: str = "England"):
        self.country = country

    def parse_listing(self, html: str, page: int) -> list[ScrapedSummaryRecord]:
        parser = load_document(html)
        records = []
        for cells in table_rows(parser):
            if len(cells) != 6:
                continue
            link = first_link(cells[0])
            notice_number = node_text(link) if link is not None else None
            if not notice_number:
                continue
            records.append(
                ScrapedSummaryRecord(
                    agency=self.agency,
                    data_type=self.data_type,
                    external_id=notice_number,
                    offender_name=node_text(cells[1]),
                    action_type=node_text(cells[2]),
                    action_date=parse_date(node_text(cells[3])),
                    local_authority=node_text(cells[4]),
                    sic_code=node_text(cells[5]),
                    country=self.country,
                    detail_url=get_hse_notice_details_url(notice_number),
                    page_number=page,
                )
            )
        logger.debug(f"HSE notices page {page} ({self.country}): {len(records)} rows")
        return records

    def parse_detail(self, html: str) -> ScrapedDetailRecord:
        parser = load_document(html)
        detail = ScrapedDetailRecord()
        for row in table_rows(parser):
            labels = _row_labels(row)
            if "HSE Directorate" in labels:
                detail.regulator_function = title_case_upper(labels["HSE Directorate"])
            if "Compliance Date" in labels:
                detail.compliance_date = parse_date(labels["Compliance Date"])
            if "Revised Compliance Date" in labels:
                detail.revised_compliance_date = parse_date(labels["Revised Compliance Date"])
            if "Description" in labels:
                detail.notice_body = clean_text(labels["Description"])
            if "Main Activity" in labels:
                detail.main_activity = labels["Main Activity"]
            if "Industry" in labels:
                detail.industry = labels["Industry"]
            if "Result" in labels:
                detail.result = labels["Result"]
        return detail

    def parse_breaches(self, html: str) -> ScrapedDetailRecord:
        parser = load_document(html)
        breaches = []
        for cells in table_rows(parser):
            if len(cells) != 5:
                continue
            breach = node_text(cells[3])
            if breach:
                breaches.append(breach)
        return ScrapedDetailRecord(breaches=breaches, offence_count=len(breaches) or None)
