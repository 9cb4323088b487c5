"""Environment Agency enforcement action processor."""
from typing import Optional

from enforcement_scraper.parse.models import (
    Agency,
    DataType,
    ProcessedRecord,
    ScrapedDetailRecord,
    ScrapedSummaryRecord,
)
from enforcement_scraper.process.base import RecordProcessor
from enforcement_scraper.process.offenders import build_offender_attrs


def _impact_levels(detail: ScrapedDetailRecord) -> list[Optional[str]]:
    return [(level or "").strip().lower() or None for level in (detail.water_impact, detail.land_impact, detail.air_impact)]


def assess_environmental_impact(detail: ScrapedDetailRecord) -> str:
    """Worst of the water, land and air impacts: major, minor or none."""
    levels = _impact_levels(detail)
    if "major" in levels:
        return "major"
    if "minor" in levels:
        return "minor"
    return "none"


def detect_primary_receptor(detail: ScrapedDetailRecord) -> str:
    """Receptor of the worst impact, water before land before air; land when nothing is recorded."""
    levels = _impact_levels(detail)
    for severity in ("major", "minor"):
        for receptor, level in zip(("water", "land", "air"), levels):
            if level == severity:
                return receptor
    return "land"


def full_address(detail: ScrapedDetailRecord, fallback: Optional[str]) -> Optional[str]:
    parts = [p for p in (detail.address, detail.town, detail.county, detail.postcode) if p]
    return ", ".join(parts) if parts else fallback


class EaCaseProcessor(RecordProcessor):
    def build(self, summary: ScrapedSummaryRecord, detail: ScrapedDetailRecord) -> ProcessedRecord:
        offender = build_offender_attrs(
            summary.offender_name,
            address=full_address(detail, summary.address),
            postcode=detail.postcode,
            industry=detail.industry,
            company_registration_number=detail.company_registration_number,
        )
        return ProcessedRecord(
            external_id=summary.external_id,
            agency_code=Agency.EA,
            data_type=DataType.CASE,
            offender=offender,
            action_type=summary.action_type,
            fine=detail.fine,
            action_date=summary.action_date,
            notice_body=detail.notice_body,
            regulator_function=detail.regulator_function,
            regulator_url=summary.detail_url,
            legal_reference=detail.legal_reference,
            environmental_impact=assess_environmental_impact(detail),
            environmental_receptor=detect_primary_receptor(detail),
            source_metadata={
                **self.source_metadata(summary, "ea_enforcement_actions"),
                "case_reference": detail.case_reference,
                "event_reference": detail.event_reference,
            },
        )
