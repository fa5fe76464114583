"""Business logic controllers for SiteWatcher."""

from typing import Optional

from .db import Database
from .models import Site, SpiderType


class SiteNotFoundError(Exception):
    """Raised when a site is not found."""

    def __init__(self, site_id: int):
        self.site_id = site_id
        super().__init__(f"Site {site_id} not found")


class SiteAlreadyExistsError(Exception):
    """Raised when trying to register a site that already exists."""

    def __init__(self, domain: str, path: Optional[str] = None):
        self.domain = domain
        self.path = path
        super().__init__(f"Site '{domain}{path or ''}' already exists")


def add_site(
    db: Database,
    domain: str,
    spider_type: SpiderType = SpiderType.CONTENT,
    path: Optional[str] = None,
    date_xpath: Optional[str] = None,
    date_format: Optional[str] = None,
    need_string: Optional[str] = None,
) -> Site:
    """Register a new site to monitor.

    Args:
        db: Database instance
        domain: Base URL of the site
        spider_type: Whether the site is a content page or an API endpoint
        path: Optional sub-path appended to the domain for API requests
        date_xpath: Optional XPath locating the page's latest date
        date_format: Optional strptime format of that date
        need_string: Optional substring the page must contain

    Returns:
        The created Site

    Raises:
        SiteAlreadyExistsError: If a site with the same domain and path exists
    """
    if db.find_site(domain, path):
        raise SiteAlreadyExistsError(domain, path)

    site = Site(
        id=None,
        domain=domain,
        spider_type=SpiderType.parse(spider_type),
        path=path,
        date_xpath=date_xpath,
        date_format=date_format,
        need_string=need_string,
    )
    db.add_site(site)
    return site


def remove_site(db: Database, site_id: int) -> Site:
    """Stop monitoring a site.

    Returns:
        The removed Site

    Raises:
        SiteNotFoundError: If site not found
    """
    site = db.get_site(site_id)
    if not site:
        raise SiteNotFoundError(site_id)

    db.remove_site(site_id)
    return site


def get_sites(db: Database, failed_only: bool = False) -> list[Site]:
    """List registered sites, optionally only those last seen offline."""
    if failed_only:
        return db.list_failed_sites()
    return db.list_sites()


def edit_site(
    db: Database,
    site_id: int,
    domain: Optional[str] = None,
    spider_type: Optional[SpiderType] = None,
    path: Optional[str] = None,
    date_xpath: Optional[str] = None,
    date_format: Optional[str] = None,
    need_string: Optional[str] = None,
) -> Site:
    """Change a site's configuration.

    Arguments left as None keep their current value. An empty string clears
    one of the optional fields.

    Returns:
        The updated Site

    Raises:
        SiteNotFoundError: If site not found
        SiteAlreadyExistsError: If another site already has the new domain and path
    """
    site = db.get_site(site_id)
    if not site:
        raise SiteNotFoundError(site_id)

    if domain is not None:
        site.domain = domain
    if spider_type is not None:
        site.spider_type = SpiderType.parse(spider_type)
    if path is not None:
        site.path = path or None
    if date_xpath is not None:
        site.date_xpath = date_xpath or None
    if date_format is not None:
        site.date_format = date_format or None
    if need_string is not None:
        site.need_string = need_string or None

    existing = db.find_site(site.domain, site.path)
    if existing and existing.id != site.id:
        raise SiteAlreadyExistsError(site.domain, site.path)

    db.update_site(site)
    return site
