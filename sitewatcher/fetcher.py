"""HTTP fetching for SiteWatcher."""

import logging
import warnings
from time import monotonic
from typing import Optional

import requests
from bs4 import UnicodeDammit
from requests.structures import CaseInsensitiveDict
from urllib3.exceptions import InsecureRequestWarning

from .models import FetchResult, Site, SpiderType

logger = logging.getLogger(__name__)

TIMEOUT = 30
CHUNK_SIZE = 1024

# Fragments of the OpenSSL verify error for a chain we do not trust.
UNTRUSTED_CERTIFICATE_MARKERS = (
    "unable to get local issuer certificate",
    "self signed certificate",
    "self-signed certificate",
)


class FetchError(Exception):
    """Raised when a site cannot be fetched."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(message)


def build_url(site: Site) -> str:
    """Return the URL requested for a site.

    API sites are requested at domain + path, content sites at the bare domain.
    """
    if site.spider_type == SpiderType.API:
        return site.domain + (site.path or "")
    return site.domain


def is_untrusted_certificate_error(exc: Exception) -> bool:
    """Check whether a request failed because the certificate chain is untrusted."""
    if not isinstance(exc, requests.exceptions.SSLError):
        return False
    message = str(exc).lower()
    return any(marker in message for marker in UNTRUSTED_CERTIFICATE_MARKERS)


def decode_body(content: bytes, headers) -> tuple[str, Optional[str]]:
    """Decode a response body.

    A charset from the Content-Type header wins. Without one, UTF-8 is tried
    before sniffing the document itself, rather than assuming ISO-8859-1.

    Returns:
        Tuple of (text, encoding used), the encoding being None for an empty body
    """
    if not content:
        return "", None

    headers = CaseInsensitiveDict(headers)
    declared = None
    if "charset=" in headers.get("Content-Type", "").lower():
        declared = requests.utils.get_encoding_from_headers(headers)

    dammit = UnicodeDammit(content, known_definite_encodings=[declared or "utf-8"], is_html=True)
    if dammit.unicode_markup is None:
        return content.decode("utf-8", errors="replace"), "utf-8"
    return dammit.unicode_markup, dammit.original_encoding


def _download(url: str, timeout: int, verify: bool = True) -> FetchResult:
    """GET a URL, giving up once the whole response takes longer than timeout.

    The requests timeout bounds each connect and read on its own, so the body
    is streamed and checked against an overall deadline.
    """
    deadline = monotonic() + timeout
    chunks = []

    with requests.get(url, timeout=timeout, stream=True, verify=verify) as response:
        for chunk in response.iter_content(CHUNK_SIZE):
            chunks.append(chunk)
            if monotonic() > deadline:
                raise FetchError(url, f"Failed to fetch {url}: no full response within {timeout}s")
        status_code = response.status_code
        headers = response.headers

    content = b"".join(chunks)
    body, encoding = decode_body(content, headers)
    return FetchResult(
        url=url,
        status_code=status_code,
        content=content,
        body=body,
        encoding=encoding,
        insecure=not verify,
    )


def fetch_site(site: Site, timeout: int = TIMEOUT) -> FetchResult:
    """Fetch a site's page or API endpoint.

    A request rejected for an untrusted certificate is retried once with
    certificate verification disabled.

    Args:
        site: Site to fetch
        timeout: Seconds allowed for the whole response

    Returns:
        FetchResult with the status code, raw content and decoded body

    Raises:
        FetchError: If the request fails for any other reason, runs past the
            timeout, or the unverified retry fails too
    """
    url = build_url(site)

    try:
        return _download(url, timeout)
    except requests.RequestException as e:
        if not is_untrusted_certificate_error(e):
            logger.info("Failed to fetch %s: %s", url, e)
            raise FetchError(url, f"Failed to fetch {url}: {e}") from e

    logger.warning("Untrusted certificate for %s, retrying without verification", url)
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", InsecureRequestWarning)
            return _download(url, timeout, verify=False)
    except requests.RequestException as e:
        logger.info("Unverified retry of %s failed: %s", url, e)
        raise FetchError(url, f"Failed to fetch {url}: {e}") from e
