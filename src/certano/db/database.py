"""SQLite database connection and schema management.

Provides connection management and schema initialization for the local
quiz store (pending results and the offline question snapshot).
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("data/db/certano.db")


class StorageUnavailableError(Exception):
    """Local store cannot be opened or created."""

    pass


def init_db(db_path: Path | None = None) -> Path:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to data/db/certano.db

    Returns:
        Path of the initialized database

    Raises:
        StorageUnavailableError: If the file or schema cannot be created
    """
    path = db_path or DEFAULT_DB_PATH

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with get_db(path) as conn:
            _create_schema(conn)
    except (sqlite3.Error, OSError) as e:
        logger.error("database_init_failed", path=str(path), error=str(e))
        raise StorageUnavailableError(f"Cannot open local store at {path}: {e}") from e

    logger.info("database_initialized", path=str(path))
    return path


@contextmanager
def get_db(db_path: Path | None = None) -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db(path) as conn:
            rows = conn.execute("SELECT * FROM quiz_results").fetchall()
    """
    conn = sqlite3.connect(db_path or DEFAULT_DB_PATH)
    conn.row_factory = sqlite3.Row

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        -- Completed attempts; synced = 0 while waiting for delivery
        CREATE TABLE IF NOT EXISTS quiz_results (
            id TEXT PRIMARY KEY,
            payload TEXT NOT NULL,
            chapter TEXT,
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            synced INTEGER NOT NULL DEFAULT 0 CHECK(synced IN (0, 1)),
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            synced_at TEXT
        );

        -- Snapshot of the question set for offline use
        CREATE TABLE IF NOT EXISTS offline_questions (
            id TEXT PRIMARY KEY,
            chapter TEXT,
            payload TEXT NOT NULL,
            stored_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE INDEX IF NOT EXISTS idx_quiz_results_synced ON quiz_results(synced);
        CREATE INDEX IF NOT EXISTS idx_quiz_results_end_time ON quiz_results(end_time);
        CREATE INDEX IF NOT EXISTS idx_offline_questions_chapter ON offline_questions(chapter);
        """
    )
