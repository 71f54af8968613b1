"""
SQLite database connection management.

Provides async database initialization and connection factory.
Uses aiosqlite for async SQLite access.

Schema is defined in schema.sql (consolidated, no migrations).
"""

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite
import structlog

from gtd_review.core.config import settings
from gtd_review.core.exceptions import RepositoryError

log = structlog.get_logger(__name__)

# Path to consolidated schema file
SCHEMA_FILE = Path(__file__).parent / "schema.sql"


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as a fixed-width UTC ISO string.

    Fixed width keeps lexical order equal to chronological order, which the
    range filters rely on. Naive datetimes are taken to be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a timestamp written by to_db_timestamp."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_db_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def from_db_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


async def init_database(db_path: Path | None = None) -> None:
    """
    Initialize database from consolidated schema.

    Args:
        db_path: Optional path to database file. Uses settings.database_path if not provided.

    Creates the database file if it doesn't exist and applies the schema.
    Existing databases are left intact (CREATE ... IF NOT EXISTS).
    """
    db_path = db_path or settings.database_path

    db_path.parent.mkdir(parents=True, exist_ok=True)

    log.info("initializing_database", path=str(db_path))

    if not SCHEMA_FILE.exists():
        log.error("schema_file_not_found", path=str(SCHEMA_FILE))
        raise FileNotFoundError(f"Schema file not found: {SCHEMA_FILE}")

    async with aiosqlite.connect(db_path) as db:
        await db.execute("PRAGMA foreign_keys = ON")

        # WAL for better concurrent read performance
        await db.execute("PRAGMA journal_mode = WAL")

        schema_sql = SCHEMA_FILE.read_text()
        await db.executescript(schema_sql)
        await db.commit()

    log.info("database_initialized", path=str(db_path))


@asynccontextmanager
async def connect(db_path: str | Path) -> AsyncIterator[aiosqlite.Connection]:
    """
    Open a repository connection with Row access and foreign keys enabled.

    SQLite failures surface as RepositoryError so callers deal with one
    error type for store I/O. Nothing is committed unless the caller commits.
    """
    try:
        async with aiosqlite.connect(db_path) as db:
            await db.execute("PRAGMA foreign_keys = ON")
            db.row_factory = aiosqlite.Row
            yield db
    except aiosqlite.Error as e:
        log.error("database_operation_failed", path=str(db_path), error=str(e))
        raise RepositoryError(f"Database operation failed: {e}") from e


async def check_database_health() -> dict:
    """
    Check database health for health endpoint.

    Returns:
        Dict with health status and basic metrics.
    """
    try:
        async with aiosqlite.connect(settings.database_path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM review_sessions")
            row = await cursor.fetchone()
            session_count = row[0] if row else 0

            cursor = await db.execute("PRAGMA integrity_check")
            integrity = await cursor.fetchone()

            return {
                "status": "healthy",
                "review_session_count": session_count,
                "integrity": integrity[0] if integrity else "unknown",
                "path": str(settings.database_path),
            }
    except Exception as e:
        log.error("database_health_check_failed", error=str(e))
        return {"status": "unhealthy", "error": str(e)}
