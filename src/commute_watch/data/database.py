"""Database connection helper for the commute SQLite database."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from commute_watch.data.config import get_settings

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS commute_routes (
    id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL DEFAULT 'Commute',
    origin_stop_id TEXT NOT NULL,
    destination_stop_id TEXT NOT NULL,
    preferred_time TEXT NOT NULL,
    time_mode TEXT NOT NULL DEFAULT 'depart',
    active_weekdays TEXT NOT NULL DEFAULT '1111100',
    notifications_enabled INTEGER NOT NULL DEFAULT 1,
    alert_lead_minutes INTEGER NOT NULL DEFAULT 15,
    delay_alert_threshold_minutes INTEGER NOT NULL DEFAULT 20,
    PRIMARY KEY (user_id, id)
);

CREATE TABLE IF NOT EXISTS user_notifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    route_id TEXT NOT NULL,
    kind TEXT NOT NULL,
    title TEXT NOT NULL,
    message TEXT NOT NULL,
    severity TEXT NOT NULL,
    created_at TEXT NOT NULL,
    read INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_notifications_user ON user_notifications(user_id, created_at);
"""


def get_db_path() -> Path:
    """Get the database path from settings (COMMUTE_DB_PATH)."""
    return Path(get_settings().db_path)


async def init_db(db_path: Path | None = None) -> Path:
    """Create the database file and its tables if they don't exist.

    Returns:
        The path of the initialized database.
    """
    if db_path is None:
        db_path = get_db_path()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(db_path) as db:
        await db.executescript(SCHEMA_SQL)
        await db.commit()
    return db_path


@asynccontextmanager
async def get_db(db_path: Path | None = None) -> AsyncIterator[aiosqlite.Connection]:
    """Async context manager for DB connections with Row factory.

    Args:
        db_path: Optional path to the database. If not provided, uses the
                 COMMUTE_DB_PATH setting (default 'data/commute.db').

    Yields:
        aiosqlite.Connection configured with Row factory for dict-like access.

    Raises:
        FileNotFoundError: If the database file doesn't exist.
    """
    if db_path is None:
        db_path = get_db_path()

    if not db_path.exists():
        raise FileNotFoundError(
            f"Database not found at {db_path}. Run 'commute-watch init-db' to create it."
        )

    async with aiosqlite.connect(db_path) as db:
        db.row_factory = aiosqlite.Row
        yield db
