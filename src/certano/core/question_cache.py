"""Offline snapshot of the question set.

Responsibilities:
- Replace the local snapshot with the latest fetched questions
- Load the snapshot, normalizing legacy option shapes
- Pick the question source: backend when online, snapshot otherwise
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog

from certano.backend.client import BackendClient, BackendError
from certano.core.questions import ALL_CHAPTERS, Question, load_questions as normalize_records
from certano.db.database import StorageUnavailableError, init_db
from certano.db.questions_repository import (
    count_questions,
    load_question_records,
    replace_questions,
)

logger = structlog.get_logger(__name__)


class QuestionCache:
    """SQLite-backed question snapshot."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.available = False

    def open(self) -> bool:
        try:
            init_db(self.db_path)
            self.available = True
        except StorageUnavailableError as e:
            logger.error("question_cache_disabled", path=str(self.db_path), error=str(e))
            self.available = False
        return self.available

    def save_offline_questions(self, records: list[dict[str, Any]]) -> int:
        """Replace the snapshot (clear + insert).

        Returns:
            Number of stored records (0 when storage is unavailable)
        """
        if not self.available:
            return 0
        stored = replace_questions(self.db_path, records)
        logger.info("offline_questions_saved", count=stored)
        return stored

    def load_offline_questions(self, chapter: str | None = None) -> list[Question]:
        """Read the snapshot as normalized questions."""
        if not self.available:
            return []
        if chapter == ALL_CHAPTERS:
            chapter = None
        return normalize_records(load_question_records(self.db_path, chapter))

    def count(self) -> int:
        if not self.available:
            return 0
        return count_questions(self.db_path)


async def load_questions(
    client: BackendClient,
    cache: QuestionCache,
    online: bool,
    chapter: str | None = None,
) -> list[Question]:
    """Load questions for a quiz.

    Online: fetch from the backend and mirror into the snapshot.
    Offline, or when the fetch fails: read the snapshot.
    """
    if online:
        try:
            records = await client.fetch_questions(
                chapter if chapter and chapter != ALL_CHAPTERS else None
            )
        except BackendError as e:
            logger.warning("question_fetch_failed_using_snapshot", error=str(e))
        else:
            # Only a full fetch may replace the full snapshot
            if not chapter or chapter == ALL_CHAPTERS:
                cache.save_offline_questions(records)
            return normalize_records(records)

    questions = cache.load_offline_questions(chapter)
    logger.info("questions_loaded_from_snapshot", count=len(questions), chapter=chapter)
    return questions
