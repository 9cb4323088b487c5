"""Shared helpers for reading enforcement listing and detail pages."""
import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from selectolax.parser import HTMLParser, Node

logger = logging.getLogger(__name__)

LENIENT_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
MONEY_RE = re.compile(r"[^0-9.]")
WHITESPACE_RE = re.compile(r"\s+")


class ParseError(Exception):
    """Raised when a page cannot be read as HTML at all."""


def load_document(html: str) -> HTMLParser:
    if not isinstance(html, str):
        raise ParseError(f"Expected HTML text, got {type(html).__name__}")
    return HTMLParser(html)


def clean_text(value: Optional[str]) -> Optional[str]:
    """Collapse whitespace; empty strings become None."""
    if value is None:
        return None
    cleaned = WHITESPACE_RE.sub(" ", value).strip()
    return cleaned or None


def node_text(node: Optional[Node]) -> Optional[str]:
    if node is None:
        return None
    return clean_text(node.text(separator=" "))


def parse_date(value: Optional[str]) -> date | None:
    """Parse a date in the formats the agencies publish.

    Tries ISO-8601, then DD/MM/YYYY, then DD-MM-YYYY, then a lenient
    YYYY-M-D. Returns None for anything else, including impossible dates.
    """
    text = clean_text(value)
    if not text:
        return None

    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass

    for fmt in ("%d/%m/%Y", "%d-%m-%Y"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    match = LENIENT_ISO_RE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None

    logger.debug(f"Unparseable date: {text!r}")
    return None


def parse_money(value: Optional[str]) -> Decimal | None:
    """'£5,000.00' -> Decimal('5000.00'). Blank or garbled values give None."""
    if value is None:
        return None
    cleaned = MONEY_RE.sub("", str(value))
    if not cleaned:
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        logger.debug(f"Unparseable amount: {value!r}")
        return None


def title_case_upper(phrase: Optional[str]) -> Optional[str]:
    """'FIELD OPERATIONS DIRECTORATE' -> 'Field Operations Directorate'."""
    text = clean_text(phrase)
    if not text:
        return None
    return " ".join(word.capitalize() for word in text.split(" "))


def join_breaches(breaches: Iterable[Optional[str]]) -> Optional[str]:
    parts = [clean_text(b) for b in breaches]
    parts = [p for p in parts if p]
    return "; ".join(parts) if parts else None


def table_rows(parser: HTMLParser, selector: str = "tr") -> list[list[Node]]:
    """Direct td cells of every matching row."""
    rows = []
    for row in parser.css(selector):
        cells = [child for child in row.iter() if child.tag == "td"]
        rows.append(cells)
    return rows


def first_link(node: Node) -> Optional[Node]:
    return node.css_first("a[href]")


def link_href(node: Node) -> Optional[str]:
    link = first_link(node)
    if link is None:
        return None
    href = link.attributes.get("href")
    return href.strip() if href else None


def _label(node: Node) -> str:
    return (node_text(node) or "").rstrip(":").strip()


def labelled_value(parser: HTMLParser, label: str) -> Optional[str]:
    """Value next to a label, from a <dt>/<dd> list or a two-cell table row."""
    for dt in parser.css("dt"):
        if _label(dt) == label:
            sibling = dt.next
            while sibling is not None and sibling.tag != "dd":
                sibling = sibling.next
            return node_text(sibling)

    for row in table_rows(parser):
        for index, cell in enumerate(row[:-1]):
            if _label(cell) == label:
                return node_text(row[index + 1])
    return None
