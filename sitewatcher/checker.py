"""Site checking logic for SiteWatcher."""

import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .db import Database
from .fetcher import TIMEOUT, FetchError, fetch_site
from .freshness import evaluate_freshness, needs_date_check, parse_document
from .keywords import apply_keyword_policy
from .models import Site
from .status import evaluate_status

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 1


class Phase(str, Enum):
    """Sweeps making up one run."""

    FULL = "full"
    RETRY_FAILED = "retry_failed"


@dataclass
class CheckResult:
    """Result of checking a single site."""

    site_id: Optional[int]
    domain: str
    phase: Phase = Phase.FULL
    is_online: bool = False
    is_updated: bool = False
    last_updated_at: Optional[str] = None
    status_code: Optional[int] = None
    insecure: bool = False
    error: Optional[str] = None


def check_site(site: Site, timeout: int = TIMEOUT, phase: Phase = Phase.FULL) -> CheckResult:
    """Fetch a site and evaluate its online status, freshness and keyword.

    The site itself is not modified; see apply_result.

    Args:
        site: Site to check
        timeout: Request timeout in seconds
        phase: Sweep the check belongs to

    Returns:
        CheckResult with the verdict
    """
    result = CheckResult(site_id=site.id, domain=site.domain, phase=phase)

    try:
        fetched = fetch_site(site, timeout=timeout)
    except FetchError as e:
        result.error = str(e)
        return result

    result.status_code = fetched.status_code
    result.insecure = fetched.insecure
    result.is_online = evaluate_status(fetched, site.spider_type)

    if result.is_online and needs_date_check(site):
        try:
            document = parse_document(fetched.content, fetched.encoding)
            freshness = evaluate_freshness(site, document)
        except Exception:
            logger.exception("Freshness check crashed for %s", site.domain)
        else:
            result.is_updated = freshness.is_updated
            result.last_updated_at = freshness.raw_date

    result.is_online = apply_keyword_policy(result.is_online, fetched.body, site.need_string)
    return result


def apply_result(site: Site, result: CheckResult, checked_at: Optional[datetime] = None) -> None:
    """Copy a verdict onto a site.

    A previously extracted date is kept when this check found none.
    """
    site.is_online = result.is_online
    site.is_new = result.is_updated
    if result.last_updated_at is not None:
        site.last_updated_at = result.last_updated_at
    site.last_checked = checked_at or datetime.now()


def plan_phases(failed_only: bool = False, domain: Optional[str] = None) -> list[Phase]:
    """Return the sweeps a run performs, in order.

    Only an unrestricted run is followed by a retry over the failures.
    """
    if failed_only and domain:
        raise ValueError("A run cannot be restricted to failed sites and a domain at once")
    if failed_only:
        return [Phase.RETRY_FAILED]
    if domain:
        return [Phase.FULL]
    return [Phase.FULL, Phase.RETRY_FAILED]


def _select_sites(db: Database, phase: Phase, domain: Optional[str]) -> list[Site]:
    if phase == Phase.RETRY_FAILED:
        return db.list_failed_sites()
    if domain:
        return db.list_sites_by_domain(domain)
    return db.list_sites()


def _check_safely(site: Site, timeout: int, phase: Phase) -> CheckResult:
    try:
        return check_site(site, timeout=timeout, phase=phase)
    except Exception as e:
        logger.exception("Unexpected error checking %s", site.domain)
        return CheckResult(
            site_id=site.id,
            domain=site.domain,
            phase=phase,
            error=f"Unexpected error: {e}",
        )


def _record(
    db: Database,
    site: Site,
    result: CheckResult,
    on_result: Optional[Callable[[CheckResult], None]],
) -> None:
    apply_result(site, result)
    try:
        db.save_site(site)
    except sqlite3.Error as e:
        logger.exception("Failed to save verdict for %s", site.domain)
        result.error = f"Failed to save verdict: {e}"

    logger.info(
        "%s [%s] online=%s updated=%s",
        site.domain,
        result.phase.value,
        result.is_online,
        result.is_updated,
    )
    if on_result is not None:
        on_result(result)


def run_sweep(
    db: Database,
    sites: list[Site],
    phase: Phase = Phase.FULL,
    max_workers: int = DEFAULT_WORKERS,
    timeout: int = TIMEOUT,
    on_result: Optional[Callable[[CheckResult], None]] = None,
) -> list[CheckResult]:
    """Check a set of sites once and persist each verdict.

    Fetches run on up to max_workers threads; verdicts are saved from the
    calling thread. Returns only after every verdict has been saved.

    Args:
        db: Database instance
        sites: Sites to check
        phase: Sweep the checks belong to
        max_workers: Maximum number of sites checked at once
        timeout: Request timeout in seconds
        on_result: Called with each CheckResult once it is saved

    Returns:
        List of CheckResult, in completion order
    """
    results = []

    if max_workers <= 1:
        for site in sites:
            result = _check_safely(site, timeout, phase)
            _record(db, site, result, on_result)
            results.append(result)
        return results

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_site = {
            executor.submit(_check_safely, site, timeout, phase): site for site in sites
        }

        for future in as_completed(future_to_site):
            site = future_to_site[future]
            result = future.result()
            _record(db, site, result, on_result)
            results.append(result)

    return results


def run_checks(
    db: Database,
    failed_only: bool = False,
    domain: Optional[str] = None,
    max_workers: int = DEFAULT_WORKERS,
    timeout: int = TIMEOUT,
    on_result: Optional[Callable[[CheckResult], None]] = None,
) -> list[CheckResult]:
    """Run one evaluation: a sweep, then a retry of failures if unrestricted.

    Args:
        db: Database instance
        failed_only: Only check sites whose last verdict is offline
        domain: Only check sites registered under this domain
        max_workers: Maximum number of sites checked at once
        timeout: Request timeout in seconds
        on_result: Called with each CheckResult once it is saved

    Returns:
        List of CheckResult for every check made, across all sweeps
    """
    results = []

    for phase in plan_phases(failed_only, domain):
        sites = _select_sites(db, phase, domain)
        logger.info("Starting %s sweep over %d site(s)", phase.value, len(sites))
        results.extend(
            run_sweep(
                db,
                sites,
                phase=phase,
                max_workers=max_workers,
                timeout=timeout,
                on_result=on_result,
            )
        )

    return results
