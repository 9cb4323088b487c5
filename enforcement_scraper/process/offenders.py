"""Offender name normalization, business type detection and attribute building."""
import re
from typing import Optional

from enforcement_scraper.parse.html_parser import clean_text
from enforcement_scraper.parse.models import OffenderAttrs

UNKNOWN_OFFENDER = "Unknown"
UNKNOWN_COMPANY = "Unknown Company"

POSTCODE_RE = re.compile(r"([A-Z]{1,2}\d[A-Z\d]?\s*\d[A-Z]{2})$", re.IGNORECASE)

# Checked in order; first match wins
BUSINESS_TYPE_PATTERNS = [
    ("LLC", re.compile(r"LLC|llc")),
    ("INC", re.compile(r"[Ii]nc$")),
    ("CORP", re.compile(r" [Cc]orp[. ]")),
    ("PLC", re.compile(r"PLC|[Pp]lc")),
    ("LTD", re.compile(r"[Ll]imited|LIMITED|Ltd|LTD")),
    ("LLP", re.compile(r"LLP|[Ll]lp")),
]

BUSINESS_TYPES = {
    "LTD": "limited_company",
    "LIMITED": "limited_company",
    "LLC": "limited_company",
    "INC": "limited_company",
    "CORP": "limited_company",
    "PLC": "plc",
    "LLP": "partnership",
    "PARTNERSHIP": "partnership",
    "SOLE": "individual",
}


def detect_business_type(name: Optional[str]) -> str:
    """Entity code from a name: LLC, INC, CORP, PLC, LTD, LLP or SOLE."""
    if not name:
        return "SOLE"
    for code, pattern in BUSINESS_TYPE_PATTERNS:
        if pattern.search(name):
            return code
    return "SOLE"


def normalize_business_type(code: Optional[str]) -> str:
    if not code:
        return "individual"
    return BUSINESS_TYPES.get(code.upper(), "other")


def normalize_name(name: Optional[str]) -> str:
    """Matching key for offender names: 'Acme Limited and Company' -> 'ACME LTD & CO'."""
    text = clean_text(name)
    if not text:
        return UNKNOWN_COMPANY
    text = text.upper()
    text = re.sub(r"\bLIMITED\b", "LTD", text)
    text = re.sub(r"\bCOMPANY\b", "CO", text)
    text = re.sub(r"\bAND\b", "&", text)
    return re.sub(r"\s+", " ", text).strip()


def normalize_postcode(postcode: Optional[str]) -> Optional[str]:
    text = clean_text(postcode)
    return text.upper() if text else None


def extract_postcode(address: Optional[str]) -> Optional[str]:
    """UK postcode at the end of an address, if any."""
    text = clean_text(address)
    if not text:
        return None
    match = POSTCODE_RE.search(text)
    return normalize_postcode(match.group(1)) if match else None


def build_offender_attrs(
    name: Optional[str],
    *,
    local_authority: Optional[str] = None,
    address: Optional[str] = None,
    postcode: Optional[str] = None,
    country: Optional[str] = None,
    main_activity: Optional[str] = None,
    industry: Optional[str] = None,
    sic_code: Optional[str] = None,
    company_registration_number: Optional[str] = None,
) -> OffenderAttrs:
    display_name = clean_text(name) or UNKNOWN_OFFENDER
    return OffenderAttrs(
        name=display_name,
        normalized_name=normalize_name(name),
        local_authority=clean_text(local_authority),
        address=clean_text(address),
        postcode=normalize_postcode(postcode) or extract_postcode(address),
        country=clean_text(country),
        main_activity=clean_text(main_activity),
        industry=clean_text(industry),
        sic_code=clean_text(sic_code),
        business_type=normalize_business_type(detect_business_type(clean_text(name))),
        company_registration_number=clean_text(company_registration_number),
    )
