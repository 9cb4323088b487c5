"""Data models for scraped, processed and persisted enforcement records."""
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Agency(str, Enum):
    HSE = "hse"
    EA = "ea"


class DataType(str, Enum):
    CASE = "case"
    NOTICE = "notice"


class ScrapedSummaryRecord(BaseModel):
    """Row from a listing page, tagged with the agency it came from."""

    agency: Agency
    data_type: DataType = DataType.CASE
    external_id: Optional[str] = None
    offender_name: Optional[str] = None
    action_date: Optional[date] = None
    action_type: Optional[str] = None
    local_authority: Optional[str] = None
    main_activity: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None
    sic_code: Optional[str] = None
    detail_url: Optional[str] = None
    page_number: Optional[int] = None
    scraped_at: datetime = Field(default_factory=utcnow)

    def snapshot(self) -> dict[str, Any]:
        """Compact JSON-safe view kept in processing logs."""
        return self.model_dump(
            mode="json",
            include={"external_id", "offender_name", "action_date", "action_type", "local_authority"},
        )


class ScrapedDetailRecord(BaseModel):
    """Fields found on detail and sub-pages. Every field is optional."""

    fine: Optional[Decimal] = None
    costs: Optional[Decimal] = None
    result: Optional[str] = None
    hearing_date: Optional[date] = None
    breaches: list[str] = Field(default_factory=list)
    offence_count: Optional[int] = None
    compliance_date: Optional[date] = None
    revised_compliance_date: Optional[date] = None
    notice_body: Optional[str] = None
    related_cases: Optional[str] = None
    regulator_function: Optional[str] = None
    main_activity: Optional[str] = None
    industry: Optional[str] = None
    local_authority: Optional[str] = None
    company_registration_number: Optional[str] = None
    address: Optional[str] = None
    town: Optional[str] = None
    county: Optional[str] = None
    postcode: Optional[str] = None
    case_reference: Optional[str] = None
    event_reference: Optional[str] = None
    act: Optional[str] = None
    section: Optional[str] = None
    legal_reference: Optional[str] = None
    water_impact: Optional[str] = None
    land_impact: Optional[str] = None
    air_impact: Optional[str] = None
    # Follow-up links found on HSE case detail pages
    breach_link: Optional[str] = None
    related_link: Optional[str] = None

    def merge(self, other: "ScrapedDetailRecord") -> "ScrapedDetailRecord":
        """Return a copy where set fields of `other` win."""
        updates = {
            key: value
            for key, value in other.model_dump(exclude_unset=True).items()
            if value not in (None, [], "")
        }
        return self.model_copy(update=updates)


class OffenderAttrs(BaseModel):
    name: str = "Unknown"
    normalized_name: Optional[str] = None
    local_authority: Optional[str] = None
    address: Optional[str] = None
    postcode: Optional[str] = None
    country: Optional[str] = None
    main_activity: Optional[str] = None
    industry: Optional[str] = None
    sic_code: Optional[str] = None
    business_type: str = "individual"
    company_registration_number: Optional[str] = None


class ProcessedRecord(BaseModel):
    """Canonical record ready for persistence; (external_id, agency_code) is the natural key."""

    external_id: Optional[str] = None
    agency_code: Optional[Agency] = None
    data_type: DataType = DataType.CASE
    offender: OffenderAttrs = Field(default_factory=OffenderAttrs)
    offender_id: Optional[str] = None
    action_type: Optional[str] = None
    result: Optional[str] = None
    fine: Optional[Decimal] = None
    costs: Optional[Decimal] = None
    action_date: Optional[date] = None
    hearing_date: Optional[date] = None
    compliance_date: Optional[date] = None
    revised_compliance_date: Optional[date] = None
    breaches: Optional[str] = None
    offence_count: Optional[int] = None
    notice_body: Optional[str] = None
    regulator_function: Optional[str] = None
    regulator_url: Optional[str] = None
    related_cases: Optional[str] = None
    legal_reference: Optional[str] = None
    legislation_refs: list[str] = Field(default_factory=list)
    environmental_impact: Optional[str] = None
    environmental_receptor: Optional[str] = None
    source_metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _natural_key_present(self) -> "ProcessedRecord":
        if self.external_id is None and self.agency_code is None:
            raise ValueError("external_id and agency_code cannot both be null")
        return self

    # Refreshed when a re-scrape hits an existing row
    MUTABLE_FIELDS: ClassVar[tuple[str, ...]] = (
        "result",
        "fine",
        "costs",
        "hearing_date",
        "compliance_date",
        "revised_compliance_date",
        "regulator_url",
        "related_cases",
    )

    def mutable_fields(self) -> dict[str, Any]:
        return self.model_dump(mode="json", include=set(self.MUTABLE_FIELDS))


class Offender(BaseModel):
    id: str
    name: str
    normalized_name: str
    postcode: Optional[str] = None
    local_authority: Optional[str] = None
    business_type: Optional[str] = None
    agencies: list[str] = Field(default_factory=list)
    total_cases: int = 0
    total_notices: int = 0
    total_fines: Decimal = Decimal("0")
    first_seen_date: Optional[date] = None
    last_seen_date: Optional[date] = None


class PersistedRecord(BaseModel):
    id: str
    external_id: str
    agency: Agency
    data_type: DataType
    offender_id: Optional[str] = None
    fields: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ProcessingLogEntry(BaseModel):
    """One audit row per processed page or batch. Never modified after creation."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    session_id: str
    agency: Agency
    batch_or_page: int = Field(ge=1)
    items_found: int = Field(default=0, ge=0)
    items_created: int = Field(default=0, ge=0)
    items_existing: int = Field(default=0, ge=0)
    items_failed: int = Field(default=0, ge=0)
    errors: list[str] = Field(default_factory=list)
    scraped_items: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_balanced(self) -> bool:
        return self.items_found == self.items_created + self.items_existing + self.items_failed
