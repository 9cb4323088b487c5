"""Tests for offender name and business type normalization."""
import pytest

from enforcement_scraper.process.offenders import (
    build_offender_attrs,
    detect_business_type,
    extract_postcode,
    normalize_business_type,
    normalize_name,
)


@pytest.mark.parametrize(
    "name, code",
    [
        ("Acme Widgets LLC", "LLC"),
        ("Widget Inc", "INC"),
        ("Mega Corp. Holdings", "CORP"),
        ("Big Retail PLC", "PLC"),
        ("Acme Limited", "LTD"),
        ("ACME LTD", "LTD"),
        ("Smith & Jones LLP", "LLP"),
        ("Joe Bloggs", "SOLE"),
        ("", "SOLE"),
        (None, "SOLE"),
    ],
)
def test_detect_business_type(name, code):
    assert detect_business_type(name) == code


@pytest.mark.parametrize(
    "code, business_type",
    [
        ("LTD", "limited_company"),
        ("LLC", "limited_company"),
        ("PLC", "plc"),
        ("LLP", "partnership"),
        ("SOLE", "individual"),
        (None, "individual"),
        ("TRUST", "other"),
    ],
)
def test_normalize_business_type(code, business_type):
    assert normalize_business_type(code) == business_type


def test_normalize_name_gives_a_stable_matching_key():
    """Spelling variants of the same company collapse to one key."""
    assert normalize_name("Acme Limited") == "ACME LTD"
    assert normalize_name("  acme   ltd ") == "ACME LTD"
    assert normalize_name("Smith and Sons Company") == "SMITH & SONS CO"
    assert normalize_name("") == "Unknown Company"
    assert normalize_name(None) == "Unknown Company"


def test_extract_postcode_from_address_tail():
    assert extract_postcode("1 High St, Leeds ls1 4ap") == "LS1 4AP"
    assert extract_postcode("Unit 4, Cardiff CF10 1AA") == "CF10 1AA"
    assert extract_postcode("Somewhere without one") is None
    assert extract_postcode(None) is None


def test_build_offender_attrs_defaults_unknown_name():
    """A missing name never blocks a record; it becomes 'Unknown'."""
    attrs = build_offender_attrs(None, local_authority=" Leeds ")
    assert attrs.name == "Unknown"
    assert attrs.normalized_name == "Unknown Company"
    assert attrs.business_type == "individual"
    assert attrs.local_authority == "Leeds"


def test_build_offender_attrs_prefers_explicit_postcode():
    attrs = build_offender_attrs("Green Waste Ltd", address="1 High St, York YO1 7HH", postcode="ls1 4ap")
    assert attrs.postcode == "LS1 4AP"
    assert attrs.business_type == "limited_company"

    from_address = build_offender_attrs("Green Waste Ltd", address="1 High St, York YO1 7HH")
    assert from_address.postcode == "YO1 7HH"
