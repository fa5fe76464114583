"""Data models for SiteWatcher."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class SpiderType(str, Enum):
    """How a site is checked: a scraped page or an API endpoint."""

    CONTENT = "content"
    API = "api"

    @classmethod
    def parse(cls, value: "str | SpiderType") -> "SpiderType":
        """Convert a stored value to a SpiderType.

        Registries created by older tooling store content sites as "spider".
        """
        if isinstance(value, cls):
            return value
        if value == "spider":
            return cls.CONTENT
        return cls(value)


@dataclass
class Site:
    """Represents a monitored site."""

    id: Optional[int]
    domain: str
    spider_type: SpiderType = SpiderType.CONTENT
    path: Optional[str] = None
    date_xpath: Optional[str] = None
    date_format: Optional[str] = None
    need_string: Optional[str] = None
    is_online: bool = False
    is_new: bool = False
    last_updated_at: Optional[str] = None
    last_checked: Optional[datetime] = None


@dataclass
class FetchResult:
    """Outcome of a successful HTTP fetch."""

    url: str
    status_code: int
    content: bytes
    body: str
    encoding: Optional[str] = None
    insecure: bool = False
