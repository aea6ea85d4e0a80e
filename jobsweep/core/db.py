"""SQLite layer for job listings and ingestion run history."""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from jobsweep.core.errors import StorageFault
from jobsweep.core.schemas import IngestionResult, JobListing, Source, UpsertOutcome

logger = logging.getLogger(__name__)

_LISTINGS_TABLE = """
CREATE TABLE IF NOT EXISTS listings (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    fingerprint     TEXT    NOT NULL UNIQUE,
    content_hash    TEXT    NOT NULL,
    source          TEXT    NOT NULL,
    external_id     TEXT,
    title           TEXT    NOT NULL,
    company         TEXT    NOT NULL DEFAULT '',
    location        TEXT    NOT NULL DEFAULT '',
    description     TEXT    NOT NULL DEFAULT '',
    url             TEXT    NOT NULL DEFAULT '',
    salary          TEXT,
    posted_at       TEXT,
    keywords_json   TEXT    NOT NULL DEFAULT '[]',
    scraped_at      TEXT    NOT NULL,
    expires_at      TEXT    NOT NULL,
    last_seen_at    TEXT    NOT NULL
);
"""

_LISTINGS_INDEXES = (
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_listings_source_external
        ON listings (source, external_id) WHERE external_id IS NOT NULL
    """,
    "CREATE INDEX IF NOT EXISTS idx_listings_content_hash ON listings (content_hash)",
    "CREATE INDEX IF NOT EXISTS idx_listings_expires_at ON listings (expires_at)",
)

_INGESTION_RUNS_TABLE = """
CREATE TABLE IF NOT EXISTS ingestion_runs (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    locations       INTEGER NOT NULL,
    downloaded      INTEGER NOT NULL,
    unique_count    INTEGER NOT NULL,
    inserted        INTEGER NOT NULL,
    renewed         INTEGER NOT NULL,
    errors          INTEGER NOT NULL,
    partial         INTEGER NOT NULL DEFAULT 0,
    started_at      TEXT    NOT NULL,
    finished_at     TEXT    NOT NULL
);
"""

_RENEW_SQL = """
UPDATE listings
SET content_hash = ?, title = ?, company = ?, location = ?, description = ?, url = ?,
    salary = ?, posted_at = ?, keywords_json = ?, expires_at = ?, last_seen_at = ?
WHERE fingerprint = ?
"""


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_LISTINGS_TABLE)
    for statement in _LISTINGS_INDEXES:
        conn.execute(statement)
    conn.execute(_INGESTION_RUNS_TABLE)
    conn.commit()
    return conn


def upsert_listing(conn: sqlite3.Connection, listing: JobListing) -> UpsertOutcome:
    """Insert a listing, or renew the stored row if its fingerprint already exists.

    Renewal extends ``expires_at`` and refreshes the content fields; ``scraped_at``
    keeps the first sighting. A uniqueness violation raised by a concurrent
    writer is treated as a renewal.

    Raises:
        StorageFault: If the database rejects the write for any other reason.
    """
    try:
        existing = conn.execute(
            "SELECT 1 FROM listings WHERE fingerprint = ? LIMIT 1",
            (listing.fingerprint,),
        ).fetchone()
        if existing is not None:
            _renew(conn, listing)
            return UpsertOutcome.RENEWED
        try:
            _insert(conn, listing)
        except sqlite3.IntegrityError:
            conn.rollback()
            logger.debug("Conflict on insert for %s - renewing instead", listing.fingerprint)
            _renew(conn, listing)
            return UpsertOutcome.RENEWED
        return UpsertOutcome.INSERTED
    except sqlite3.Error as e:
        conn.rollback()
        msg = f"Failed to store listing {listing.fingerprint}: {e}"
        raise StorageFault(msg) from e


def _insert(conn: sqlite3.Connection, listing: JobListing) -> None:
    conn.execute(
        """
        INSERT INTO listings
            (fingerprint, content_hash, source, external_id, title, company,
             location, description, url, salary, posted_at, keywords_json,
             scraped_at, expires_at, last_seen_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            listing.fingerprint,
            listing.content_hash,
            listing.source.value,
            listing.external_id,
            listing.title,
            listing.company,
            listing.location,
            listing.description,
            listing.url,
            listing.salary,
            listing.posted_at,
            json.dumps(listing.keywords),
            listing.scraped_at.isoformat(),
            listing.expires_at.isoformat(),
            listing.scraped_at.isoformat(),
        ),
    )
    conn.commit()


def _renew(conn: sqlite3.Connection, listing: JobListing) -> None:
    conn.execute(
        _RENEW_SQL,
        (
            listing.content_hash,
            listing.title,
            listing.company,
            listing.location,
            listing.description,
            listing.url,
            listing.salary,
            listing.posted_at,
            json.dumps(listing.keywords),
            listing.expires_at.isoformat(),
            listing.scraped_at.isoformat(),
            listing.fingerprint,
        ),
    )
    conn.commit()


def get_active_listings(
    conn: sqlite3.Connection,
    *,
    source: Source | None = None,
    location: str | None = None,
    keyword: str | None = None,
    now: datetime | None = None,
    limit: int = 100,
) -> list[dict[str, Any]]:
    """Return listings whose ``expires_at`` lies in the future, newest first.

    ``location`` matches case-insensitively as a substring; ``keyword`` must be
    one of the listing's derived keywords.
    """
    clauses = ["expires_at > ?"]
    params: list[Any] = [(now or datetime.now()).isoformat()]
    if source is not None:
        clauses.append("source = ?")
        params.append(source.value)
    if location:
        clauses.append("LOWER(location) LIKE ?")
        params.append(f"%{location.lower().strip()}%")
    if keyword:
        clauses.append("EXISTS (SELECT 1 FROM json_each(keywords_json) WHERE value = ?)")
        params.append(keyword.lower().strip())
    params.append(limit)
    where = " AND ".join(clauses)

    rows = conn.execute(
        f"""
        SELECT * FROM listings
        WHERE {where}
        ORDER BY last_seen_at DESC, id DESC
        LIMIT ?
        """,
        params,
    ).fetchall()
    return [_row_to_dict(row) for row in rows]


def count_active_listings(conn: sqlite3.Connection, now: datetime | None = None) -> int:
    """Count listings that have not expired yet."""
    row = conn.execute(
        "SELECT COUNT(*) FROM listings WHERE expires_at > ?",
        ((now or datetime.now()).isoformat(),),
    ).fetchone()
    return int(row[0])


def _row_to_dict(row: sqlite3.Row) -> dict[str, Any]:
    data = dict(row)
    data["keywords"] = json.loads(data.pop("keywords_json") or "[]")
    data.pop("id", None)
    return data


def insert_ingestion_run(
    conn: sqlite3.Connection,
    result: IngestionResult,
    finished_at: datetime,
) -> int:
    """Record a completed ingestion run. Returns the row ID."""
    cursor = conn.execute(
        """
        INSERT INTO ingestion_runs
            (locations, downloaded, unique_count, inserted, renewed, errors,
             partial, started_at, finished_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            result.locations,
            result.downloaded,
            result.unique,
            result.inserted,
            result.renewed,
            result.errors,
            int(result.partial),
            result.started_at.isoformat(),
            finished_at.isoformat(),
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0


def get_recent_runs(conn: sqlite3.Connection, limit: int = 10) -> list[dict[str, Any]]:
    """Return the most recent ingestion runs, newest first."""
    rows = conn.execute(
        "SELECT * FROM ingestion_runs ORDER BY id DESC LIMIT ?",
        (limit,),
    ).fetchall()
    return [dict(row) for row in rows]
