"""Repository functions for the quiz_results table.

Attempts are stored as their JSON payload plus the columns the sync
queue filters and orders on.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

import structlog

from certano.core.attempt import AttemptFormatError, QuizAttempt
from certano.db.database import get_db

logger = structlog.get_logger(__name__)


def insert_result(db_path: Path, attempt: QuizAttempt) -> None:
    """Store an attempt (replacing a row with the same id).

    Args:
        db_path: Database file
        attempt: Completed attempt
    """
    with get_db(db_path) as conn:
        conn.execute(
            """
            INSERT OR REPLACE INTO quiz_results (
                id, payload, chapter, start_time, end_time, synced
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                attempt.id,
                json.dumps(attempt.to_dict(), ensure_ascii=False),
                attempt.chapter,
                attempt.start_time.isoformat(),
                attempt.end_time.isoformat(),
                1 if attempt.synced else 0,
            ),
        )

    logger.debug("quiz_result_stored", result_id=attempt.id, synced=attempt.synced)


def mark_synced(db_path: Path, result_id: str) -> bool:
    """Flip a stored attempt to synced.

    Returns:
        True if a row was updated
    """
    with get_db(db_path) as conn:
        cursor = conn.execute(
            """
            UPDATE quiz_results
            SET synced = 1, synced_at = datetime('now')
            WHERE id = ?
            """,
            (result_id,),
        )
        updated = cursor.rowcount > 0

    if updated:
        logger.debug("quiz_result_marked_synced", result_id=result_id)
    return updated


def list_pending(db_path: Path) -> list[QuizAttempt]:
    """Unsynced attempts, oldest first."""
    with get_db(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM quiz_results WHERE synced = 0 ORDER BY end_time ASC"
        ).fetchall()

    return _rows_to_attempts(rows)


def count_pending(db_path: Path) -> int:
    with get_db(db_path) as conn:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM quiz_results WHERE synced = 0"
        ).fetchone()
    return int(row["n"])


def get_result(db_path: Path, result_id: str) -> QuizAttempt | None:
    """Get one attempt by id, or None."""
    with get_db(db_path) as conn:
        row = conn.execute(
            "SELECT * FROM quiz_results WHERE id = ?", (result_id,)
        ).fetchone()

    if row is None:
        return None
    attempts = _rows_to_attempts([row])
    return attempts[0] if attempts else None


def list_results(db_path: Path, limit: int | None = None) -> list[QuizAttempt]:
    """All attempts, most recent first."""
    query = "SELECT * FROM quiz_results ORDER BY end_time DESC"
    params: tuple[int, ...] = ()
    if limit:
        query += " LIMIT ?"
        params = (limit,)

    with get_db(db_path) as conn:
        rows = conn.execute(query, params).fetchall()

    return _rows_to_attempts(rows)


def _rows_to_attempts(rows: list[sqlite3.Row]) -> list[QuizAttempt]:
    """Decode rows; undecodable payloads are logged and skipped."""
    attempts: list[QuizAttempt] = []
    for row in rows:
        try:
            attempt = QuizAttempt.from_dict(json.loads(row["payload"]))
        except (json.JSONDecodeError, AttemptFormatError) as e:
            logger.warning("quiz_result_unreadable", result_id=row["id"], error=str(e))
            continue
        # The column is authoritative over the payload copy
        attempt.synced = bool(row["synced"])
        attempts.append(attempt)
    return attempts
