"""Content freshness evaluation for SiteWatcher."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import lxml.html
from lxml import etree

from .models import Site

logger = logging.getLogger(__name__)

MAX_DELAY_UPDATE_DAYS = 2
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class FreshnessError(Exception):
    """Raised when a date cannot be extracted or parsed from a page."""

    pass


@dataclass
class FreshnessResult:
    """Result of checking a page's latest date."""

    is_updated: bool
    raw_date: Optional[str] = None
    error: Optional[str] = None


def needs_date_check(site: Site) -> bool:
    """Check whether a site has a freshness rule configured."""
    return bool(site.date_xpath or site.path)


def parse_document(content: bytes, encoding: Optional[str] = None) -> Optional[etree._Element]:
    """Parse raw response content into an HTML tree.

    Bytes are parsed so that XHTML pages carrying an XML encoding declaration
    are accepted. The encoding the body was decoded with is passed on to the
    parser when lxml knows it.

    Returns:
        The parsed tree, or None if the content holds no document
    """
    parser = None
    if encoding:
        try:
            parser = lxml.html.HTMLParser(encoding=encoding)
        except LookupError:
            logger.debug("lxml does not know encoding %s, letting it detect one", encoding)

    try:
        return lxml.html.fromstring(content, parser=parser)
    except etree.ParserError as e:
        logger.debug("Could not parse response body: %s", e)
        return None


def extract_date(document: etree._Element, xpath: Optional[str]) -> str:
    """Extract the raw date string selected by an XPath expression.

    The expression may select elements, attributes or a string value; the
    first match is used and its whitespace normalized.

    Raises:
        FreshnessError: If no expression is configured, it is invalid, or it
            selects nothing
    """
    if not xpath:
        raise FreshnessError("No date XPath configured")

    try:
        found = document.xpath(xpath)
    except etree.XPathError as e:
        raise FreshnessError(f"Invalid date XPath {xpath!r}: {e}") from e

    if isinstance(found, list):
        if not found:
            raise FreshnessError(f"Date XPath {xpath!r} matched nothing")
        found = found[0]

    if isinstance(found, etree._Element):
        text = "".join(found.itertext())
    else:
        text = str(found)

    text = " ".join(text.split())
    if not text:
        raise FreshnessError(f"Date XPath {xpath!r} matched an empty value")
    return text


def parse_date(raw_date: str, date_format: Optional[str] = None) -> datetime:
    """Parse a date string with a strptime format.

    Raises:
        FreshnessError: If the string does not match the format
    """
    fmt = date_format or DEFAULT_DATE_FORMAT
    try:
        return datetime.strptime(raw_date, fmt)
    except ValueError as e:
        raise FreshnessError(f"Date {raw_date!r} does not match {fmt!r}") from e


def is_recent(date: datetime, now: Optional[datetime] = None) -> bool:
    """Check whether a date lies within the staleness window of now.

    Dates in the future count by their distance too.
    """
    if now is None:
        now = datetime.now(date.tzinfo)
    elif (now.tzinfo is None) != (date.tzinfo is None):
        date = date.replace(tzinfo=now.tzinfo)

    return abs(now - date).days <= MAX_DELAY_UPDATE_DAYS


def evaluate_freshness(
    site: Site, document: Optional[etree._Element], now: Optional[datetime] = None
) -> FreshnessResult:
    """Decide whether a site's content has been updated recently.

    Extraction and parsing failures never raise; they yield a result that is
    not updated and carries no date.

    Args:
        site: Site whose date rule is applied
        document: Parsed response body, or None if it could not be parsed
        now: Reference time, defaults to the current time

    Returns:
        FreshnessResult with the verdict and, on success, the raw date string
    """
    try:
        if document is None:
            raise FreshnessError("Response body is not a parseable document")
        raw_date = extract_date(document, site.date_xpath)
        date = parse_date(raw_date, site.date_format)
    except FreshnessError as e:
        logger.debug("Freshness check failed for %s: %s", site.domain, e)
        return FreshnessResult(is_updated=False, error=str(e))

    return FreshnessResult(is_updated=is_recent(date, now), raw_date=raw_date)
