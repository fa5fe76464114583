"""Online status evaluation for SiteWatcher."""

from bs4 import BeautifulSoup

from .models import FetchResult, SpiderType


def extract_text(body: str) -> str:
    """Return the visible text of a response body parsed as a document."""
    if not body or not body.strip():
        return ""
    soup = BeautifulSoup(body, "lxml")
    return soup.get_text(strip=True)


def evaluate_status(result: FetchResult, spider_type: SpiderType) -> bool:
    """Decide whether a fetched site is online.

    An API endpoint is online when its body carries some text, whatever the
    status code. A content page is online when it answered 200.

    Args:
        result: The fetch outcome
        spider_type: Kind of site that was fetched

    Returns:
        True if the site is online
    """
    if spider_type == SpiderType.API:
        return bool(extract_text(result.body))
    return result.status_code == 200
