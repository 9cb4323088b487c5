"""URL builders for HSE and Environment Agency endpoints."""
from datetime import date
from urllib.parse import quote, urlencode

from enforcement_scraper.config import config

EA_ACTION_TYPES = {
    "court_case": "http://environment.data.gov.uk/public-register/enforcement-action/def/action-type/court-case",
    "caution": "http://environment.data.gov.uk/public-register/enforcement-action/def/action-type/caution",
    "enforcement_notice": "http://environment.data.gov.uk/public-register/enforcement-action/def/action-type/enforcement-notice",
}


def hse_case_base(database: str = config.HSE_DATABASE) -> str:
    return f"{config.HSE_BASE_URL}/{database}/case/"


def get_hse_case_list_url(page: int, database: str = config.HSE_DATABASE) -> str:
    """Listing of cases, newest first."""
    return f"{hse_case_base(database)}case_list.asp?PN={page}&ST=C&EO=LIKE&SN=F&SF=DN&SV=&SO=DODS"


def get_hse_case_by_id_url(regulator_id: str, database: str = config.HSE_DATABASE) -> str:
    return f"{hse_case_base(database)}case_list.asp?ST=C&EO=LIKE&SN=F&SF=CN&SV={quote(regulator_id)}"


def get_hse_case_details_url(regulator_id: str, database: str = config.HSE_DATABASE) -> str:
    return f"{hse_case_base(database)}case_details.asp?SF=CN&SV={quote(regulator_id)}"


def get_hse_breach_list_url(case_number: str, database: str = config.HSE_DATABASE) -> str:
    return (
        f"{config.HSE_BASE_URL}/{database}/breach/"
        f"breach_list.asp?ST=B&SN=F&EO=%3D&SF=CN&SV={quote(case_number)}"
    )


def get_hse_related_cases_url(case_number: str, database: str = config.HSE_DATABASE) -> str:
    return f"{hse_case_base(database)}case_list.asp?ST=C&SN=R&EO=%3D&SF=RCN&SV={quote(case_number)}"


def get_hse_notice_list_url(page: int, country: str) -> str:
    return (
        f"{config.HSE_BASE_URL}/notices/notices/notice_list.asp"
        f"?PN={page}&ST=N&CO=,AND&SN=F&EO==&SF=CTR&SV={quote(country)}&SO=DNIS"
    )


def get_hse_notice_details_url(notice_number: str) -> str:
    return f"{config.HSE_BASE_URL}/notices/notices/notice_details.asp?SF=CN&SV={quote(notice_number)}"


def get_hse_notice_breaches_url(notice_number: str) -> str:
    return (
        f"{config.HSE_BASE_URL}/notices/breach/breach_list.asp"
        f"?ST=B&SN=F&EO==&SF=NN&SV={quote(notice_number)}"
    )


def get_ea_search_url(action_type: str, date_from: date, date_to: date, name_search: str = "") -> str:
    """EA returns the whole result set for a search on one page."""
    params = {
        "name-search": name_search,
        "actionType": EA_ACTION_TYPES.get(action_type, EA_ACTION_TYPES["court_case"]),
        "offenceType": "",
        "agencyFunction": "",
        "after": date_from.isoformat(),
        "before": date_to.isoformat(),
    }
    return f"{config.EA_BASE_URL}/public-register/enforcement-action/registration?{urlencode(params)}"


def absolute_ea_url(href: str) -> str:
    href = href.strip()
    if href.startswith("http"):
        return href
    return f"{config.EA_BASE_URL}/{href.lstrip('/')}"
