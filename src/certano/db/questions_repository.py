"""Repository functions for the offline_questions table."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from certano.db.database import get_db

logger = structlog.get_logger(__name__)


def replace_questions(db_path: Path, records: list[dict[str, Any]]) -> int:
    """Replace the whole snapshot in one transaction.

    Records without an id are skipped.

    Returns:
        Number of stored records
    """
    rows = [
        (str(r["id"]), r.get("chapter"), json.dumps(r, ensure_ascii=False))
        for r in records
        if isinstance(r, dict) and r.get("id")
    ]

    with get_db(db_path) as conn:
        conn.execute("DELETE FROM offline_questions")
        conn.executemany(
            "INSERT OR REPLACE INTO offline_questions (id, chapter, payload) VALUES (?, ?, ?)",
            rows,
        )

    logger.debug("offline_questions_replaced", count=len(rows))
    return len(rows)


def load_question_records(db_path: Path, chapter: str | None = None) -> list[dict[str, Any]]:
    """Raw snapshot records, optionally restricted to one chapter."""
    with get_db(db_path) as conn:
        if chapter:
            rows = conn.execute(
                "SELECT id, payload FROM offline_questions WHERE chapter = ? ORDER BY rowid",
                (chapter,),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT id, payload FROM offline_questions ORDER BY rowid"
            ).fetchall()

    records: list[dict[str, Any]] = []
    for row in rows:
        try:
            records.append(json.loads(row["payload"]))
        except json.JSONDecodeError as e:
            logger.warning("offline_question_unreadable", question_id=row["id"], error=str(e))
    return records


def count_questions(db_path: Path) -> int:
    with get_db(db_path) as conn:
        row = conn.execute("SELECT COUNT(*) AS n FROM offline_questions").fetchone()
    return int(row["n"])
