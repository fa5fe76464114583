"""CLI commands for SiteWatcher."""

import logging
import sqlite3
from pathlib import Path
from typing import Optional

import click

from .checker import DEFAULT_WORKERS, CheckResult, Phase, run_checks
from .controllers import (
    SiteAlreadyExistsError,
    SiteNotFoundError,
    add_site,
    edit_site,
    get_sites,
    remove_site,
)
from .db import DEFAULT_DB_PATH, Database
from .fetcher import TIMEOUT
from .models import SpiderType

ONLINE_GLYPH = "✅"
OFFLINE_GLYPH = "❌"


@click.group()
@click.version_option(package_name="sitewatcher")
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="SITEWATCHER_DB",
    default=DEFAULT_DB_PATH,
    show_default=True,
    help="SQLite database holding the site registry",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output")
@click.pass_context
def cli(ctx: click.Context, db_path: Path, verbose: bool):
    """SiteWatcher - Check that sites are online, fresh and intact."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"db_path": db_path}


def _open_database(obj: dict) -> Database:
    """Open the site registry, exiting if it is unavailable."""
    try:
        return Database(obj["db_path"])
    except (sqlite3.Error, OSError) as e:
        click.echo(click.style(f"Error: Cannot open database {obj['db_path']}: {e}", fg="red"))
        raise SystemExit(1)


def _glyph(flag: bool) -> str:
    return ONLINE_GLYPH if flag else OFFLINE_GLYPH


@cli.command()
@click.option("--failed", is_flag=True, help="Only recheck sites last seen offline")
@click.option("--domain", help="Only check sites registered under this domain")
@click.option(
    "--workers",
    "-w",
    type=click.IntRange(min=1),
    default=DEFAULT_WORKERS,
    show_default=True,
    help="Number of sites checked at once",
)
@click.option(
    "--timeout",
    type=click.IntRange(min=1),
    default=TIMEOUT,
    show_default=True,
    help="Request timeout in seconds",
)
@click.pass_obj
def check(obj: dict, failed: bool, domain: Optional[str], workers: int, timeout: int):
    """Check sites and record whether each is online and up to date.

    Without options every site is checked, then the sites found offline are
    checked once more.
    """
    if failed and domain:
        raise click.UsageError("--failed and --domain cannot be used together")

    db = _open_database(obj)
    try:
        if domain:
            click.echo(click.style(f"Only checking {domain}", fg="cyan"))

        seen_phases: set[Phase] = set()

        def report(result: CheckResult) -> None:
            if result.phase == Phase.RETRY_FAILED and result.phase not in seen_phases:
                click.echo()
                click.echo(click.style("Rechecking offline sites...", fg="cyan"))
            seen_phases.add(result.phase)
            _print_check_result(result)

        results = run_checks(
            db,
            failed_only=failed,
            domain=domain,
            max_workers=workers,
            timeout=timeout,
            on_result=report,
        )

        if not results:
            if domain:
                click.echo(click.style(f"No sites registered for '{domain}'.", fg="yellow"))
            else:
                click.echo("No sites to check.")
            return

        # The last check of each site is its recorded verdict
        final = {result.site_id: result for result in results}
        online = sum(1 for result in final.values() if result.is_online)

        click.echo()
        color = "green" if online == len(final) else "yellow"
        click.echo(click.style(f"{online}/{len(final)} site(s) online", fg=color, bold=True))
    finally:
        db.close()


def _print_check_result(result: CheckResult):
    """Print a single check result."""
    click.echo(f"  {result.domain} {_glyph(result.is_online)} {_glyph(result.is_updated)}")
    if result.insecure:
        click.echo(click.style("    Certificate not trusted, checked without verification", fg="yellow"))
    if result.error:
        click.echo(click.style(f"    Error: {result.error}", fg="red"))


@cli.command()
@click.argument("domain")
@click.option(
    "--type",
    "spider_type",
    type=click.Choice([t.value for t in SpiderType]),
    default=SpiderType.CONTENT.value,
    show_default=True,
    help="Scrape a content page or call an API endpoint",
)
@click.option("--path", help="Sub-path appended to the domain for API requests")
@click.option("--date-xpath", help="XPath locating the latest update date")
@click.option("--date-format", help="strptime format of the date (default '%Y-%m-%d %H:%M:%S')")
@click.option("--need-string", help="Text the page must contain to count as online")
@click.pass_obj
def add(
    obj: dict,
    domain: str,
    spider_type: str,
    path: Optional[str],
    date_xpath: Optional[str],
    date_format: Optional[str],
    need_string: Optional[str],
):
    """Register a site to monitor."""
    db = _open_database(obj)
    try:
        site = add_site(
            db,
            domain,
            spider_type=SpiderType(spider_type),
            path=path,
            date_xpath=date_xpath,
            date_format=date_format,
            need_string=need_string,
        )
        click.echo(click.style(f"Added site [{site.id}] {domain}{path or ''}", fg="green"))
    except SiteAlreadyExistsError as e:
        click.echo(click.style(f"Error: {e}", fg="red"))
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.argument("site_id", type=int)
@click.option("--domain", help="New base URL")
@click.option(
    "--type",
    "spider_type",
    type=click.Choice([t.value for t in SpiderType]),
    help="Scrape a content page or call an API endpoint",
)
@click.option("--path", help="Sub-path appended to the domain ('' to clear)")
@click.option("--date-xpath", help="XPath locating the latest update date ('' to clear)")
@click.option("--date-format", help="strptime format of the date ('' to clear)")
@click.option("--need-string", help="Text the page must contain ('' to clear)")
@click.pass_obj
def edit(
    obj: dict,
    site_id: int,
    domain: Optional[str],
    spider_type: Optional[str],
    path: Optional[str],
    date_xpath: Optional[str],
    date_format: Optional[str],
    need_string: Optional[str],
):
    """Change how a site is checked."""
    db = _open_database(obj)
    try:
        site = edit_site(
            db,
            site_id,
            domain=domain,
            spider_type=SpiderType(spider_type) if spider_type else None,
            path=path,
            date_xpath=date_xpath,
            date_format=date_format,
            need_string=need_string,
        )
        click.echo(click.style(f"Updated site [{site.id}] {site.domain}{site.path or ''}", fg="green"))
    except (SiteNotFoundError, SiteAlreadyExistsError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"))
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.argument("site_id", type=int)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_obj
def remove(obj: dict, site_id: int, yes: bool):
    """Stop monitoring a site."""
    db = _open_database(obj)
    try:
        site = db.get_site(site_id)
        if not site:
            click.echo(click.style(f"Error: Site {site_id} not found", fg="red"))
            raise SystemExit(1)

        if not yes:
            click.confirm(f"Remove site '{site.domain}'?", abort=True)

        remove_site(db, site_id)
        click.echo(click.style(f"Removed site '{site.domain}'", fg="green"))
    finally:
        db.close()


@cli.command("list-sites")
@click.option("--failed", is_flag=True, help="Only show sites last seen offline")
@click.pass_obj
def list_sites(obj: dict, failed: bool):
    """List registered sites with their last verdict."""
    db = _open_database(obj)
    try:
        sites = get_sites(db, failed_only=failed)
        if not sites:
            if failed:
                click.echo(click.style("No offline sites!", fg="green"))
            else:
                click.echo("No sites registered yet. Use 'sitewatcher add' to add one.")
            return

        label = "Offline sites" if failed else "Registered sites"
        click.echo(click.style(f"{label} ({len(sites)}):", fg="cyan", bold=True))
        click.echo()

        for site in sites:
            id_str = click.style(f"[{site.id}]", fg="cyan")
            click.echo(
                f"  {id_str} {site.domain} "
                f"{_glyph(site.is_online)} {_glyph(site.is_new)}"
            )
            click.echo(f"       Type: {site.spider_type.value}")
            if site.path:
                click.echo(f"       Path: {site.path}")
            if site.date_xpath:
                click.echo(f"       Date XPath: {site.date_xpath}")
            if site.need_string:
                click.echo(f"       Needs: {site.need_string}")
            if site.last_updated_at:
                click.echo(f"       Last updated: {site.last_updated_at}")
            if site.last_checked:
                click.echo(f"       Last checked: {site.last_checked.strftime('%Y-%m-%d %H:%M')}")
            click.echo()
    finally:
        db.close()


if __name__ == "__main__":
    cli()
