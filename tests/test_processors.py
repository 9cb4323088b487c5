"""Tests for turning scraped summaries into processed records."""
import asyncio
from datetime import date
from decimal import Decimal

import httpx
from html_pages import EA_DETAIL, HSE_NOTICE_BREACHES, HSE_NOTICE_DETAIL, hse_breach_list, hse_case_detail, hse_related_cases

from enforcement_scraper.fetch.endpoints import get_hse_case_details_url
from enforcement_scraper.parse.extractors.ea import EaCaseParser
from enforcement_scraper.parse.extractors.hse import HseCaseParser, HseNoticeParser
from enforcement_scraper.parse.models import Agency, DataType, ProcessedRecord, ScrapedDetailRecord, ScrapedSummaryRecord
from enforcement_scraper.process.base import link_legislation
from enforcement_scraper.process.ea import (
    EaCaseProcessor,
    assess_environmental_impact,
    detect_primary_receptor,
)
from enforcement_scraper.process.hse import HseCaseProcessor, HseNoticeProcessor


def hse_summary(case_id="4481234", name="ACME LIMITED"):
    return ScrapedSummaryRecord(
        agency=Agency.HSE,
        external_id=case_id,
        offender_name=name,
        action_date=date(2024, 1, 15),
        action_type="Court Case",
        local_authority="Leeds",
        main_activity="Construction",
        detail_url=get_hse_case_details_url(case_id) if case_id else None,
        page_number=1,
    )


def hse_site(request):
    """Routes HSE case detail, breach list and related case requests."""
    path = request.url.path
    if path.endswith("case_details.asp"):
        return httpx.Response(200, text=hse_case_detail(request.url.params["SV"]))
    if path.endswith("breach_list.asp"):
        return httpx.Response(
            200,
            text=hse_breach_list(
                "Health and Safety at Work etc Act 1974 / 2 / 1",
                "Work at Height Regulations 2005 / 4",
            ),
        )
    if path.endswith("case_list.asp") and request.url.params.get("SN") == "R":
        return httpx.Response(200, text=hse_related_cases("4481300"))
    return httpx.Response(404)


def test_hse_case_follows_breach_and_related_links(make_fetcher):
    """Detail, breach list and related cases all end up on the record."""

    async def scenario():
        async with make_fetcher(hse_site) as fetcher:
            processor = HseCaseProcessor(HseCaseParser(), fetcher)
            return await processor.process(hse_summary())

    record = asyncio.run(scenario())

    assert record.external_id == "4481234"
    assert record.agency_code == Agency.HSE
    assert record.offender.name == "ACME LIMITED"
    assert record.offender.business_type == "limited_company"
    assert record.offender.industry == "Construction"
    assert record.fine == Decimal("5000.00")
    assert record.costs == Decimal("1234.50")
    assert record.result == "Guilty"
    assert record.hearing_date == date(2024, 2, 20)
    assert record.offence_count == 2
    assert record.breaches.count("; ") == 1
    assert record.related_cases == "HSE_4481300"
    assert record.regulator_function == "Field Operations Directorate"
    assert record.regulator_url == get_hse_case_details_url("4481234")
    assert record.source_metadata["source"] == "hse_convictions"
    assert "Health and Safety at Work etc Act 1974" in record.legislation_refs
    assert "Work at Height Regulations 2005" in record.legislation_refs


def test_detail_failure_degrades_to_summary_data(make_fetcher):
    """A detail page that 404s still yields a record built from the listing row."""

    async def scenario():
        async with make_fetcher(lambda request: httpx.Response(404)) as fetcher:
            processor = HseCaseProcessor(HseCaseParser(), fetcher)
            return await processor.process(hse_summary())

    record = asyncio.run(scenario())
    assert record.external_id == "4481234"
    assert record.fine is None
    assert record.breaches is None
    assert record.offender.local_authority == "Leeds"


def test_details_are_skipped_when_disabled(make_fetcher):
    calls = []

    def handler(request):
        calls.append(request.url)
        return httpx.Response(200, text="")

    async def scenario():
        async with make_fetcher(handler) as fetcher:
            processor = HseCaseProcessor(HseCaseParser(), fetcher, fetch_details=False)
            return await processor.process(hse_summary())

    asyncio.run(scenario())
    assert calls == []


def test_batch_collects_failures_and_keeps_going():
    """Records without an id fail individually; the rest of the batch is processed."""
    processor = HseCaseProcessor(HseCaseParser(), fetcher=None)
    batch = [hse_summary("1"), hse_summary(None), hse_summary("3", name=None)]

    result = asyncio.run(processor.process_batch(batch))

    assert [r.external_id for r in result.processed] == ["1", "3"]
    assert result.errors == [(None, "missing external id")]
    assert result.processed[1].offender.name == "Unknown"


def test_unexpected_errors_fail_only_their_record():
    """Arithmetic and other non-validation errors are collected like any other failure."""
    processor = HseCaseProcessor(HseCaseParser(), fetcher=None)
    details = {
        "1": ScrapedDetailRecord(fine=Decimal("1" + "0" * 30)),
        "2": ScrapedDetailRecord(fine=Decimal("250")),
    }

    async def collect_detail(summary):
        if summary.external_id == "3":
            raise RuntimeError("detail page went away")
        return details[summary.external_id]

    processor.collect_detail = collect_detail
    result = asyncio.run(processor.process_batch([hse_summary("1"), hse_summary("2"), hse_summary("3")]))

    assert [r.external_id for r in result.processed] == ["2"]
    assert result.processed[0].fine == Decimal("250.00")
    failed = dict(result.errors)
    assert failed["1"].startswith("InvalidOperation")
    assert failed["3"] == "RuntimeError: detail page went away"


def test_money_is_rounded_to_pennies():
    processor = HseCaseProcessor(HseCaseParser(), fetcher=None)
    detail = ScrapedDetailRecord(fine=Decimal("100.456"))
    record = processor.build(hse_summary(), detail)
    assert record.fine == Decimal("100.456")

    async def scenario():
        processor.collect_detail = lambda summary: _resolved(detail)
        return await processor.process(hse_summary())

    assert asyncio.run(scenario()).fine == Decimal("100.46")


async def _resolved(value):
    return value


def test_hse_notice_fetches_notice_breaches(make_fetcher):
    def handler(request):
        if request.url.path.endswith("notice_details.asp"):
            return httpx.Response(200, text=HSE_NOTICE_DETAIL)
        if request.url.path.endswith("breach_list.asp"):
            return httpx.Response(200, text=HSE_NOTICE_BREACHES)
        return httpx.Response(404)

    summary = ScrapedSummaryRecord(
        agency=Agency.HSE,
        data_type=DataType.NOTICE,
        external_id="310123456",
        offender_name="Bright Builders Ltd",
        action_type="Improvement Notice",
        action_date=date(2024, 4, 3),
        country="Wales",
        sic_code="41201",
        detail_url="https://resources.hse.gov.uk/notices/notices/notice_details.asp?SF=CN&SV=310123456",
    )

    async def scenario():
        async with make_fetcher(handler) as fetcher:
            return await HseNoticeProcessor(HseNoticeParser("Wales"), fetcher).process(summary)

    record = asyncio.run(scenario())
    assert record.data_type == DataType.NOTICE
    assert record.compliance_date == date(2024, 5, 1)
    assert record.notice_body == "Scaffolding was not adequately braced."
    assert record.breaches == "Work at Height Regulations 2005 / 8"
    assert record.offender.country == "Wales"
    assert record.offender.sic_code == "41201"
    assert record.source_metadata["source"] == "hse_notices"


def test_ea_case_uses_detail_address_and_impacts(make_fetcher):
    summary = ScrapedSummaryRecord(
        agency=Agency.EA,
        external_id="10000368",
        offender_name="Green Waste Ltd",
        address="Old address",
        action_date=date(2009, 11, 5),
        action_type="Court Case",
        detail_url="https://environment.data.gov.uk/public-register/enforcement-action/registration/10000368",
    )

    async def scenario():
        async with make_fetcher(lambda request: httpx.Response(200, text=EA_DETAIL)) as fetcher:
            return await EaCaseProcessor(EaCaseParser(), fetcher).process(summary)

    record = asyncio.run(scenario())
    assert record.agency_code == Agency.EA
    assert record.fine == Decimal("12500.00")
    assert record.offender.address == "1 High Street, Leeds, ls1 4ap"
    assert record.offender.postcode == "LS1 4AP"
    assert record.offender.company_registration_number == "01234567"
    assert record.environmental_impact == "major"
    assert record.environmental_receptor == "land"
    assert record.legal_reference == "Environmental Protection Act 1990 - 33"
    assert record.legislation_refs == ["Environmental Protection Act 1990"]
    assert record.source_metadata["case_reference"] == "CR-42"


def test_environmental_assessment():
    assert assess_environmental_impact(ScrapedDetailRecord()) == "none"
    assert detect_primary_receptor(ScrapedDetailRecord()) == "land"
    minor_air = ScrapedDetailRecord(air_impact="Minor")
    assert assess_environmental_impact(minor_air) == "minor"
    assert detect_primary_receptor(minor_air) == "air"
    both = ScrapedDetailRecord(water_impact="Major", land_impact="Major")
    assert detect_primary_receptor(both) == "water"


def test_link_legislation_dedupes_titles():
    record = ProcessedRecord(
        external_id="1",
        agency_code=Agency.HSE,
        breaches="Health and Safety at Work etc Act 1974 / 2; Health and Safety at Work etc Act 1974 / 3",
    )
    assert link_legislation(record).legislation_refs == ["Health and Safety at Work etc Act 1974"]
