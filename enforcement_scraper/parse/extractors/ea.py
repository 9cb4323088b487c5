"""Parser for Environment Agency enforcement action search results and detail pages."""
import hashlib
import logging
import re
from typing import Optional

from enforcement_scraper.fetch.endpoints import absolute_ea_url
from enforcement_scraper.parse.html_parser import (
    labelled_value,
    link_href,
    load_document,
    node_text,
    parse_date,
    parse_money,
)
from enforcement_scraper.parse.models import Agency, DataType, ScrapedDetailRecord, ScrapedSummaryRecord

logger = logging.getLogger(__name__)

RECORD_ID_RE = re.compile(r"registration/(\d+)")

EA_ACTION_TYPE_LABELS = {
    "court_case": "Court Case",
    "caution": "Caution",
    "enforcement_notice": "Enforcement Notice",
}


def record_id_from_url(url: Optional[str]) -> Optional[str]:
    """Numeric id from /registration/<id>, else the first 8 hex chars of the URL's SHA-256."""
    if not url:
        return None
    match = RECORD_ID_RE.search(url)
    if match:
        return match.group(1)
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:8].upper()


def legal_reference(act: Optional[str], section: Optional[str]) -> Optional[str]:
    if act and section:
        return f"{act} - {section}"
    return act or None


class EaCaseParser:
    """Search results table plus per-action detail pages.

    EA search results are deduplicated by record id for the lifetime of
    the parser, so one instance should be used per run.
    """

    agency = Agency.EA
    data_type = DataType.CASE

    def __init__(self, action_type: str = "court_case"):
        self.action_type = action_type
        self.seen_ids: set[str] = set()

    def parse_listing(self, html: str, page: int) -> list[ScrapedSummaryRecord]:
        parser = load_document(html)
        records = []
        for row in parser.css("table tbody tr"):
            cells = row.css("td")
            if len(cells) >= 3:
                name_cell, address_cell, date_cell = cells[0], cells[1], cells[2]
                address = node_text(address_cell)
            elif len(cells) == 2:
                name_cell, date_cell = cells
                address = None
            else:
                continue

            name = node_text(name_cell)
            action_date = parse_date(node_text(date_cell))
            href = link_href(name_cell)
            detail_url = absolute_ea_url(href) if href else None
            record_id = record_id_from_url(detail_url)

            if not (name and action_date and detail_url and record_id):
                logger.debug(f"Skipping EA row: name={name!r} date={action_date} url={detail_url}")
                continue
            if record_id in self.seen_ids:
                continue
            self.seen_ids.add(record_id)

            records.append(
                ScrapedSummaryRecord(
                    agency=self.agency,
                    data_type=self.data_type,
                    external_id=record_id,
                    offender_name=name,
                    address=address,
                    action_date=action_date,
                    action_type=EA_ACTION_TYPE_LABELS.get(self.action_type, self.action_type),
                    detail_url=detail_url,
                    page_number=page,
                )
            )
        logger.debug(f"EA {self.action_type} page {page}: {len(records)} new rows")
        return records

    def parse_detail(self, html: str) -> ScrapedDetailRecord:
        parser = load_document(html)
        act = labelled_value(parser, "Act")
        section = labelled_value(parser, "Section")
        return ScrapedDetailRecord(
            company_registration_number=labelled_value(parser, "Company No."),
            industry=labelled_value(parser, "Industry Sector"),
            address=labelled_value(parser, "Address"),
            town=labelled_value(parser, "Town"),
            county=labelled_value(parser, "County"),
            postcode=labelled_value(parser, "Postcode"),
            fine=parse_money(labelled_value(parser, "Total Fine")),
            notice_body=labelled_value(parser, "Offence"),
            case_reference=labelled_value(parser, "Case Reference"),
            event_reference=labelled_value(parser, "Event Reference"),
            regulator_function=labelled_value(parser, "Agency Function"),
            water_impact=labelled_value(parser, "Water Impact"),
            land_impact=labelled_value(parser, "Land Impact"),
            air_impact=labelled_value(parser, "Air Impact"),
            act=act,
            section=section,
            legal_reference=legal_reference(act, section),
        )
