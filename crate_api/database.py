"""
SQLite database module for crate metadata, metric counters and events.

Stores crate metadata (owner, visibility, sharing list, creation time, TTL)
while actual content remains on disk under <data dir>/files/<id>/.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from .models import Crate, SharedSettings
from .utils import ensure_utc

logger = logging.getLogger(__name__)

DATABASE_DIR = Path(os.getenv("CRATE_DATA_DIR", "/crate/data"))
DATABASE_PATH = DATABASE_DIR / "crates.db"
FILES_DIR = DATABASE_DIR / "files"

TOTAL_BUCKET = "total"

SCHEMA = """
CREATE TABLE IF NOT EXISTS crates (
    id                  TEXT PRIMARY KEY,
    owner_id            TEXT    NOT NULL,
    title               TEXT    NOT NULL DEFAULT '',
    mime_type           TEXT    NOT NULL DEFAULT 'application/octet-stream',
    created_at          TEXT    NOT NULL,
    ttl_days            INTEGER NOT NULL,
    public              INTEGER NOT NULL DEFAULT 0,
    password_protected  INTEGER NOT NULL DEFAULT 0,
    shared_with         TEXT    NOT NULL DEFAULT '[]',
    size                INTEGER NOT NULL DEFAULT 0,
    download_count      INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_crates_owner ON crates (owner_id, created_at);

CREATE TABLE IF NOT EXISTS metrics (
    name        TEXT    NOT NULL,
    bucket      TEXT    NOT NULL,
    value       INTEGER NOT NULL DEFAULT 0,
    updated_at  TEXT    NOT NULL,
    PRIMARY KEY (name, bucket)
);

CREATE TABLE IF NOT EXISTS events (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    type        TEXT    NOT NULL,
    data        TEXT    NOT NULL DEFAULT '{}',
    created_at  TEXT    NOT NULL
);
"""


async def init_db() -> None:
    """Create the database directory and tables if they don't exist."""
    DATABASE_DIR.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(DATABASE_PATH) as db:
        await db.executescript(SCHEMA)
        await db.commit()


# ---------------------------------------------------------------------------
# Crate operations
# ---------------------------------------------------------------------------

async def store_crate(crate: Crate) -> None:
    """Insert or replace a crate record."""
    async with aiosqlite.connect(DATABASE_PATH) as db:
        await db.execute(
            """
            INSERT OR REPLACE INTO crates
                (id, owner_id, title, mime_type, created_at, ttl_days, public,
                 password_protected, shared_with, size, download_count)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                crate.id,
                crate.owner_id,
                crate.title,
                crate.mime_type,
                ensure_utc(crate.created_at).isoformat(),
                crate.ttl_days,
                int(crate.shared.public),
                int(crate.shared.password_protected),
                json.dumps(crate.shared.shared_with),
                crate.size,
                crate.download_count,
            ),
        )
        await db.commit()


async def get_crate_metadata(crate_id: str) -> Crate | None:
    """
    Fetch a crate by ID. Returns ``None`` if it doesn't exist.

    Expired crates are returned as-is; deciding what expiry means is left
    to the caller.
    """
    async with aiosqlite.connect(DATABASE_PATH) as db:
        db.row_factory = aiosqlite.Row
        cursor = await db.execute("SELECT * FROM crates WHERE id = ?", (crate_id,))
        row = await cursor.fetchone()

    if row is None:
        return None
    return _crate_row(row)


async def get_user_crates(owner_id: str) -> list[Crate]:
    """Return every crate owned by *owner_id*, newest first."""
    async with aiosqlite.connect(DATABASE_PATH) as db:
        db.row_factory = aiosqlite.Row
        cursor = await db.execute(
            "SELECT * FROM crates WHERE owner_id = ? ORDER BY created_at DESC",
            (owner_id,),
        )
        rows = await cursor.fetchall()
    return [_crate_row(r) for r in rows]


async def increment_download_count(crate_id: str) -> int:
    """Increment the download counter of a crate. Returns the new count (0 if the crate is gone)."""
    async with aiosqlite.connect(DATABASE_PATH) as db:
        cursor = await db.execute(
            "UPDATE crates SET download_count = download_count + 1 WHERE id = ?",
            (crate_id,),
        )
        await db.commit()
        if cursor.rowcount == 0:
            logger.warning("Crate %s not found when incrementing download count", crate_id)
            return 0
        cursor = await db.execute("SELECT download_count FROM crates WHERE id = ?", (crate_id,))
        row = await cursor.fetchone()
        return row[0] if row else 0


def _crate_row(row) -> Crate:
    d = dict(row)
    return Crate(
        id=d["id"],
        owner_id=d["owner_id"],
        title=d["title"],
        mime_type=d["mime_type"],
        created_at=ensure_utc(datetime.fromisoformat(d["created_at"])),
        ttl_days=d["ttl_days"],
        shared=SharedSettings(
            public=bool(d["public"]),
            password_protected=bool(d["password_protected"]),
            shared_with=json.loads(d["shared_with"]),
        ),
        size=d["size"],
        download_count=d["download_count"],
    )


# ---------------------------------------------------------------------------
# Metric counters
# ---------------------------------------------------------------------------

async def increment_metric(name: str, amount: int = 1) -> int:
    """Add *amount* to the running total of *name* and to today's bucket.

    Returns the new running total.
    """
    now = datetime.now(timezone.utc)
    daily_bucket = f"daily_{now.date().isoformat()}"
    async with aiosqlite.connect(DATABASE_PATH) as db:
        for bucket in (TOTAL_BUCKET, daily_bucket):
            await db.execute(
                """
                INSERT INTO metrics (name, bucket, value, updated_at) VALUES (?, ?, ?, ?)
                ON CONFLICT (name, bucket) DO UPDATE
                    SET value = value + excluded.value, updated_at = excluded.updated_at
                """,
                (name, bucket, amount, now.isoformat()),
            )
        await db.commit()
        cursor = await db.execute(
            "SELECT value FROM metrics WHERE name = ? AND bucket = ?", (name, TOTAL_BUCKET)
        )
        row = await cursor.fetchone()
        return row[0] if row else 0


async def get_metric(name: str) -> int:
    """Return the running total of *name* (0 if never incremented)."""
    async with aiosqlite.connect(DATABASE_PATH) as db:
        cursor = await db.execute(
            "SELECT value FROM metrics WHERE name = ? AND bucket = ?", (name, TOTAL_BUCKET)
        )
        row = await cursor.fetchone()
        return row[0] if row else 0


async def get_daily_metrics(name: str, days: int = 7) -> list[dict]:
    """Return the most recent *days* daily buckets of *name*, newest first."""
    async with aiosqlite.connect(DATABASE_PATH) as db:
        db.row_factory = aiosqlite.Row
        cursor = await db.execute(
            """
            SELECT bucket, value FROM metrics
            WHERE name = ? AND bucket LIKE 'daily_%'
            ORDER BY bucket DESC
            LIMIT ?
            """,
            (name, days),
        )
        rows = await cursor.fetchall()
    return [{"date": r["bucket"].removeprefix("daily_"), "value": r["value"]} for r in rows]


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

async def log_event(event_type: str, data: dict | None = None) -> None:
    """Append an event to the event log."""
    async with aiosqlite.connect(DATABASE_PATH) as db:
        await db.execute(
            "INSERT INTO events (type, data, created_at) VALUES (?, ?, ?)",
            (event_type, json.dumps(data or {}), datetime.now(timezone.utc).isoformat()),
        )
        await db.commit()


async def get_events(limit: int = 50) -> list[dict]:
    """Return the most recent events, newest first."""
    async with aiosqlite.connect(DATABASE_PATH) as db:
        db.row_factory = aiosqlite.Row
        cursor = await db.execute(
            "SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)
        )
        rows = await cursor.fetchall()
    results = []
    for row in rows:
        d = dict(row)
        d["data"] = json.loads(d["data"])
        results.append(d)
    return results
