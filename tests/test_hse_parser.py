"""Tests for HSE convictions and notices page parsing."""
from datetime import date
from decimal import Decimal

from html_pages import (
    HSE_NOTICE_BREACHES,
    HSE_NOTICE_DETAIL,
    hse_breach_list,
    hse_case_detail,
    hse_case_listing,
    hse_case_row,
    hse_notice_listing,
    hse_related_cases,
)

from enforcement_scraper.parse.extractors.hse import HseCaseParser, HseNoticeParser
from enforcement_scraper.parse.models import Agency, DataType


def test_case_listing_reads_five_cell_rows():
    """Header and navigation rows are skipped; each case row becomes a summary."""
    html = hse_case_listing(
        hse_case_row("4481234", "ACME LIMITED"),
        hse_case_row("4481235", "Joe Bloggs", action_date="2024-02-01", authority="York"),
    )
    records = HseCaseParser().parse_listing(html, page=3)

    assert [r.external_id for r in records] == ["4481234", "4481235"]
    first = records[0]
    assert first.agency == Agency.HSE
    assert first.data_type == DataType.CASE
    assert first.offender_name == "ACME LIMITED"
    assert first.action_date == date(2024, 1, 15)
    assert first.action_type == "Court Case"
    assert first.local_authority == "Leeds"
    assert first.main_activity == "Construction"
    assert first.page_number == 3
    assert first.detail_url.endswith("/convictions/case/case_details.asp?SF=CN&SV=4481234")
    assert records[1].action_date == date(2024, 2, 1)


def test_case_listing_without_rows_is_empty():
    assert HseCaseParser().parse_listing(hse_case_listing(), page=1) == []


def test_case_detail_reads_labels_and_follow_up_links():
    """Directorate, activity, money and breach/related links come off the detail page."""
    detail = HseCaseParser().parse_detail(hse_case_detail("4481234"))

    assert detail.regulator_function == "Field Operations Directorate"
    assert detail.main_activity == "Construction of domestic buildings"
    assert detail.industry == "Construction"
    assert detail.local_authority == "Leeds"
    assert detail.fine == Decimal("5000.00")
    assert detail.costs == Decimal("1234.50")
    # Single breach links carry a breach id; the list URL uses the case number
    assert detail.breach_link.endswith("breach_list.asp?ST=B&SN=F&EO=%3D&SF=CN&SV=4481234")
    assert detail.related_link.endswith("case_list.asp?ST=C&SN=R&EO=%3D&SF=RCN&SV=4481234")


def test_case_detail_with_multiple_breaches_keeps_case_number():
    detail = HseCaseParser().parse_detail(hse_case_detail("4481234", single_breach=False, related=False))
    assert detail.breach_link.endswith("SV=4481234")
    assert detail.related_link is None


def test_case_detail_missing_money_is_none():
    detail = HseCaseParser().parse_detail(hse_case_detail("1", fine="", costs="-"))
    assert detail.fine is None
    assert detail.costs is None


def test_breach_list_collects_offences():
    """Each six-cell row is one breach; hearing date and result come from the rows."""
    html = hse_breach_list(
        "Health and Safety at Work etc Act 1974 / 2 / 1",
        "Management of Health and Safety at Work Regulations 1999 / 3",
    )
    detail = HseCaseParser().parse_breaches(html)

    assert detail.offence_count == 2
    assert detail.breaches[0].startswith("Health and Safety at Work etc Act 1974")
    assert detail.hearing_date == date(2024, 2, 20)
    assert detail.result == "Guilty"


def test_related_cases_are_prefixed_and_joined():
    parser = HseCaseParser()
    assert parser.parse_related_cases(hse_related_cases("4481300", "4481301")) == "HSE_4481300,HSE_4481301"
    assert parser.parse_related_cases(hse_related_cases()) is None


def test_notice_listing_tags_country():
    """Notice rows carry type, date, authority and SIC code plus the searched country."""
    html = hse_notice_listing(("310123456", "Bright Builders Ltd"), ("310123457", "Jane Doe"))
    records = HseNoticeParser(country="Wales").parse_listing(html, page=1)

    assert len(records) == 2
    notice = records[0]
    assert notice.data_type == DataType.NOTICE
    assert notice.external_id == "310123456"
    assert notice.action_type == "Improvement Notice"
    assert notice.action_date == date(2024, 4, 3)
    assert notice.local_authority == "Cardiff"
    assert notice.sic_code == "41201"
    assert notice.country == "Wales"
    assert notice.detail_url.endswith("notice_details.asp?SF=CN&SV=310123456")


def test_notice_detail_reads_compliance_dates_and_body():
    detail = HseNoticeParser().parse_detail(HSE_NOTICE_DETAIL)

    assert detail.regulator_function == "Construction Division"
    assert detail.compliance_date == date(2024, 5, 1)
    assert detail.revised_compliance_date == date(2024, 5, 15)
    assert detail.notice_body == "Scaffolding was not adequately braced."
    assert detail.industry == "Construction"
    assert detail.result == "Complied"


def test_notice_breaches():
    detail = HseNoticeParser().parse_breaches(HSE_NOTICE_BREACHES)
    assert detail.breaches == ["Work at Height Regulations 2005 / 8"]
    assert detail.offence_count == 1
