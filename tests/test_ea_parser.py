"""Tests for Environment Agency search result and detail parsing."""
import hashlib
from datetime import date
from decimal import Decimal

from html_pages import EA_DETAIL, ea_listing, ea_row

from enforcement_scraper.parse.extractors.ea import EaCaseParser, legal_reference, record_id_from_url
from enforcement_scraper.parse.models import Agency


def test_listing_extracts_registration_ids():
    """Rows become summaries keyed by the numeric registration id."""
    html = ea_listing(ea_row("10000368", "Green Waste Ltd"), ea_row("10000401", "River Farms"))
    records = EaCaseParser().parse_listing(html, page=1)

    assert [r.external_id for r in records] == ["10000368", "10000401"]
    first = records[0]
    assert first.agency == Agency.EA
    assert first.offender_name == "Green Waste Ltd"
    assert first.address == "1 High St, Leeds LS1 4AP"
    assert first.action_date == date(2009, 11, 5)
    assert first.action_type == "Court Case"
    assert first.detail_url.startswith(
        "https://environment.data.gov.uk/public-register/enforcement-action/registration/10000368"
    )


def test_listing_skips_incomplete_rows():
    """Rows without a link, name or date are dropped."""
    html = ea_listing(
        '<tr><td>No link here</td><td>Somewhere</td><td>05/11/2009</td></tr>',
        ea_row("10000500", "Undated Ltd", action_date="unknown"),
        '<tr><td><a href="/registration/1">Lonely cell</a></td></tr>',
    )
    assert EaCaseParser().parse_listing(html, page=1) == []


def test_listing_deduplicates_across_pages():
    """The same record seen under another action type is only returned once."""
    parser = EaCaseParser()
    first = parser.parse_listing(ea_listing(ea_row("10000368", "Green Waste Ltd")), page=1)
    parser.action_type = "caution"
    second = parser.parse_listing(
        ea_listing(ea_row("10000368", "Green Waste Ltd"), ea_row("10000999", "Other Ltd")), page=2
    )

    assert [r.external_id for r in first] == ["10000368"]
    assert [r.external_id for r in second] == ["10000999"]
    assert second[0].action_type == "Caution"


def test_two_column_rows_have_no_address():
    html = ea_listing('<tr><td><a href="/public-register/x/abc">River Co</a></td><td>2009-11-06</td></tr>')
    records = EaCaseParser().parse_listing(html, page=1)

    assert len(records) == 1
    assert records[0].address is None
    expected = hashlib.sha256(b"https://environment.data.gov.uk/public-register/x/abc").hexdigest()[:8].upper()
    assert records[0].external_id == expected


def test_record_id_from_url():
    assert record_id_from_url("https://environment.data.gov.uk/registration/42?x=1") == "42"
    assert len(record_id_from_url("https://example.org/anything")) == 8
    assert record_id_from_url(None) is None


def test_detail_reads_definition_list():
    """Company, location, fine, impacts and legislation come from the dl."""
    detail = EaCaseParser().parse_detail(EA_DETAIL)

    assert detail.company_registration_number == "01234567"
    assert detail.industry == "Waste Management"
    assert detail.address == "1 High Street"
    assert detail.town == "Leeds"
    assert detail.county is None
    assert detail.postcode == "ls1 4ap"
    assert detail.fine == Decimal("12500")
    assert detail.notice_body == "Operating a regulated facility without a permit"
    assert detail.case_reference == "CR-42"
    assert detail.regulator_function == "Waste"
    assert detail.water_impact == "Minor"
    assert detail.land_impact == "Major"
    assert detail.air_impact is None
    assert detail.legal_reference == "Environmental Protection Act 1990 - 33"


def test_legal_reference():
    assert legal_reference("Water Resources Act 1991", "85") == "Water Resources Act 1991 - 85"
    assert legal_reference("Water Resources Act 1991", None) == "Water Resources Act 1991"
    assert legal_reference(None, "85") is None
