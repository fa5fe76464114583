"""SQLite database operations for SiteWatcher."""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from .models import Site, SpiderType

DEFAULT_DB_PATH = Path.home() / ".sitewatcher" / "sitewatcher.db"


class Database:
    """SQLite database interface for SiteWatcher."""

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize database connection.

        Args:
            db_path: Path to the SQLite database file. Defaults to ~/.sitewatcher/sitewatcher.db
        """
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_db(self) -> None:
        """Create tables if they don't exist."""
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS sites (
                id INTEGER PRIMARY KEY,
                domain TEXT NOT NULL,
                spider_type TEXT NOT NULL DEFAULT 'content'
                    CHECK (spider_type IN ('content', 'api', 'spider')),
                path TEXT,
                date_xpath TEXT,
                date_format TEXT,
                need_string TEXT,
                is_online BOOLEAN DEFAULT FALSE,
                is_new BOOLEAN DEFAULT FALSE,
                last_updated_at TEXT,
                last_checked TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_sites_domain ON sites (domain);
        """)
        conn.commit()

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    # Site CRUD operations

    def add_site(self, site: Site) -> Site:
        """Register a new site.

        Args:
            site: Site object to add (id will be ignored)

        Returns:
            Site object with assigned id
        """
        conn = self._get_conn()
        cursor = conn.execute(
            """
            INSERT INTO sites (
                domain, spider_type, path, date_xpath, date_format, need_string,
                is_online, is_new, last_updated_at, last_checked
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                site.domain,
                SpiderType.parse(site.spider_type).value,
                site.path,
                site.date_xpath,
                site.date_format,
                site.need_string,
                site.is_online,
                site.is_new,
                site.last_updated_at,
                site.last_checked,
            ),
        )
        conn.commit()
        site.id = cursor.lastrowid
        return site

    def get_site(self, site_id: int) -> Optional[Site]:
        """Get a site by id.

        Args:
            site_id: The site's id

        Returns:
            Site object or None if not found
        """
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM sites WHERE id = ?", (site_id,)).fetchone()
        return self._row_to_site(row) if row else None

    def find_site(self, domain: str, path: Optional[str] = None) -> Optional[Site]:
        """Get the site registered for a domain and path, if any."""
        conn = self._get_conn()
        row = conn.execute(
            "SELECT * FROM sites WHERE domain = ? AND path IS ?",
            (domain, path),
        ).fetchone()
        return self._row_to_site(row) if row else None

    def list_sites(self) -> list[Site]:
        """List all registered sites.

        Returns:
            List of Site objects
        """
        conn = self._get_conn()
        rows = conn.execute("SELECT * FROM sites ORDER BY id").fetchall()
        return [self._row_to_site(row) for row in rows]

    def list_failed_sites(self) -> list[Site]:
        """List sites whose last recorded verdict is offline."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM sites WHERE is_online = 0 ORDER BY id"
        ).fetchall()
        return [self._row_to_site(row) for row in rows]

    def list_sites_by_domain(self, domain: str) -> list[Site]:
        """List sites registered under one domain.

        Args:
            domain: The exact domain (base URL) the sites were registered with

        Returns:
            List of Site objects
        """
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM sites WHERE domain = ? ORDER BY id", (domain,)
        ).fetchall()
        return [self._row_to_site(row) for row in rows]

    def save_site(self, site: Site) -> None:
        """Persist the verdict fields of a site.

        Only is_online, is_new, last_updated_at and last_checked are written,
        the site's configuration is left to update_site.

        Args:
            site: Site object carrying the new verdict
        """
        conn = self._get_conn()
        cursor = conn.execute(
            """
            UPDATE sites
            SET is_online = ?, is_new = ?, last_updated_at = ?, last_checked = ?
            WHERE id = ?
            """,
            (site.is_online, site.is_new, site.last_updated_at, site.last_checked, site.id),
        )
        conn.commit()
        if cursor.rowcount == 0:
            raise sqlite3.DatabaseError(f"Site {site.id} does not exist")

    def update_site(self, site: Site) -> None:
        """Update an existing site's configuration.

        Args:
            site: Site object with updated fields
        """
        conn = self._get_conn()
        conn.execute(
            """
            UPDATE sites
            SET domain = ?, spider_type = ?, path = ?, date_xpath = ?,
                date_format = ?, need_string = ?
            WHERE id = ?
            """,
            (
                site.domain,
                SpiderType.parse(site.spider_type).value,
                site.path,
                site.date_xpath,
                site.date_format,
                site.need_string,
                site.id,
            ),
        )
        conn.commit()

    def remove_site(self, site_id: int) -> bool:
        """Remove a site.

        Args:
            site_id: The site's id

        Returns:
            True if site was removed, False if not found
        """
        conn = self._get_conn()
        cursor = conn.execute("DELETE FROM sites WHERE id = ?", (site_id,))
        conn.commit()
        return cursor.rowcount > 0

    def _row_to_site(self, row: sqlite3.Row) -> Site:
        """Convert a database row to a Site object."""
        return Site(
            id=row["id"],
            domain=row["domain"],
            spider_type=SpiderType.parse(row["spider_type"]),
            path=row["path"],
            date_xpath=row["date_xpath"],
            date_format=row["date_format"],
            need_string=row["need_string"],
            is_online=bool(row["is_online"]),
            is_new=bool(row["is_new"]),
            last_updated_at=row["last_updated_at"],
            last_checked=self._parse_datetime(row["last_checked"]),
        )

    @staticmethod
    def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
        """Parse a datetime string from the database."""
        if value is None:
            return None
        try:
            return datetime.fromisoformat(value)
        except (ValueError, TypeError):
            return None
