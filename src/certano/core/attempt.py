"""Quiz attempt records and scoring.

Responsibilities:
- AnswerRecord: one captured answer (embedded in an attempt)
- QuizAttempt: one completed run, the unit queued for delivery
- Scoring: accuracy, XP, performance verdict, chapter label

Wire format (JSON):
- camelCase keys, ISO-8601 startTime / endTime
- IDs: quiz_{epoch_ms}_{9 base36 chars}
"""

from __future__ import annotations

import math
import random
import string
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Literal

from certano.core.questions import ALL_CHAPTERS, Question
from certano.utils.time_utils import parse_iso, utc_now, utc_now_iso

# =============================================================================
# CONSTANTS
# =============================================================================

XP_PER_CORRECT = 10

# Lower bounds (percent) of each verdict, highest first
PERFORMANCE_THRESHOLDS: list[tuple[int, str]] = [
    (96, "expert"),
    (70, "passed"),
    (60, "barely_passed"),
]

Performance = Literal["expert", "passed", "barely_passed", "failed"]

_ID_ALPHABET = string.ascii_lowercase + string.digits


class AttemptFormatError(Exception):
    """Stored attempt payload cannot be decoded."""

    pass


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class AnswerRecord:
    """A captured answer to one question."""

    question_id: str
    is_correct: bool
    time_spent: int
    answered_at: str = ""
    selected_options: list[str] | None = None
    user_answer: str | None = None
    fill_blank_answers: list[str] | None = None
    matching_selections: dict[str, str] | None = None
    chapter: str | None = None

    def __post_init__(self):
        if not self.answered_at:
            self.answered_at = utc_now_iso()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "questionId": self.question_id,
            "isCorrect": self.is_correct,
            "timeSpent": self.time_spent,
            "answeredAt": self.answered_at,
        }
        if self.selected_options is not None:
            result["selectedOptions"] = self.selected_options
        if self.user_answer is not None:
            result["userAnswer"] = self.user_answer
        if self.fill_blank_answers is not None:
            result["fillBlankAnswers"] = self.fill_blank_answers
        if self.matching_selections is not None:
            result["matchingSelections"] = self.matching_selections
        if self.chapter is not None:
            result["chapter"] = self.chapter
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnswerRecord:
        return cls(
            question_id=data["questionId"],
            is_correct=bool(data.get("isCorrect", False)),
            time_spent=int(data.get("timeSpent", 0)),
            answered_at=data.get("answeredAt", ""),
            selected_options=data.get("selectedOptions"),
            user_answer=data.get("userAnswer"),
            fill_blank_answers=data.get("fillBlankAnswers"),
            matching_selections=data.get("matchingSelections"),
            chapter=data.get("chapter"),
        )


@dataclass
class QuizScore:
    """Summary numbers of an attempt."""

    total_questions: int
    answered: int
    correct: int
    accuracy: int
    xp: int

    @property
    def performance(self) -> Performance:
        return performance_verdict(self.accuracy)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "totalQuestions": self.total_questions,
            "answered": self.answered,
            "correct": self.correct,
            "accuracy": self.accuracy,
            "xp": self.xp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuizScore:
        return cls(
            total_questions=int(data.get("totalQuestions", 0)),
            answered=int(data.get("answered", 0)),
            correct=int(data.get("correct", 0)),
            accuracy=int(data.get("accuracy", 0)),
            xp=int(data.get("xp", 0)),
        )


@dataclass
class QuizAttempt:
    """One completed run through a set of questions.

    Mutated only to flip ``synced``.
    """

    id: str
    questions: list[dict[str, Any]]
    answers: list[AnswerRecord]
    start_time: datetime
    end_time: datetime
    score: QuizScore
    chapter: str | None = None
    synced: bool = False

    @property
    def duration_seconds(self) -> int:
        return max(0, int((self.end_time - self.start_time).total_seconds()))

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON payload delivered to the backend."""
        return {
            "id": self.id,
            "questions": self.questions,
            "answers": [a.to_dict() for a in self.answers],
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat(),
            "score": self.score.to_dict(),
            "totalQuestions": self.score.total_questions,
            "chapter": self.chapter,
            "synced": self.synced,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuizAttempt:
        """Rebuild an attempt from its JSON payload.

        Raises:
            AttemptFormatError: If required fields are missing or invalid
        """
        try:
            start_time = parse_iso(data["startTime"])
            end_time = parse_iso(data["endTime"])
            if start_time is None or end_time is None:
                raise AttemptFormatError("Invalid attempt timestamps")

            score_data = data.get("score")
            if isinstance(score_data, dict):
                score = QuizScore.from_dict(score_data)
            else:
                # Older payloads carried a bare number
                answers = [AnswerRecord.from_dict(a) for a in data.get("answers", [])]
                score = compute_score(answers, int(data.get("totalQuestions", len(answers))))

            return cls(
                id=data["id"],
                questions=list(data.get("questions", [])),
                answers=[AnswerRecord.from_dict(a) for a in data.get("answers", [])],
                start_time=start_time,
                end_time=end_time,
                score=score,
                chapter=data.get("chapter"),
                synced=bool(data.get("synced", False)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise AttemptFormatError(f"Invalid attempt payload: {e}") from e


# =============================================================================
# SCORING
# =============================================================================


def generate_result_id() -> str:
    """Generate a result id: quiz_{epoch_ms}_{9 random base36 chars}."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"quiz_{int(time.time() * 1000)}_{suffix}"


def accuracy_percent(correct: int, answered: int) -> int:
    """Percentage of correct answers rounded half up; 0 when nothing was answered."""
    if answered <= 0:
        return 0
    return math.floor(correct / answered * 100 + 0.5)


def compute_score(
    answers: list[AnswerRecord],
    total_questions: int,
    xp_per_correct: int = XP_PER_CORRECT,
) -> QuizScore:
    """Summarize answers into a QuizScore."""
    correct = sum(1 for a in answers if a.is_correct)
    return QuizScore(
        total_questions=total_questions,
        answered=len(answers),
        correct=correct,
        accuracy=accuracy_percent(correct, len(answers)),
        xp=correct * xp_per_correct,
    )


def performance_verdict(accuracy: int) -> Performance:
    """Map accuracy to a pass/fail verdict."""
    for threshold, label in PERFORMANCE_THRESHOLDS:
        if accuracy >= threshold:
            return label  # type: ignore[return-value]
    return "failed"


def chapter_label(
    questions: Iterable[Question],
    configured: str | list[str] | None = None,
) -> str | None:
    """Chapter an attempt is filed under.

    The configured chapter wins unless it is the ``all`` pseudo-chapter;
    otherwise the single chapter shared by every question, else None.
    """
    if isinstance(configured, str) and configured and configured != ALL_CHAPTERS:
        return configured
    if isinstance(configured, list) and len(configured) == 1 and configured[0] != ALL_CHAPTERS:
        return configured[0]

    chapters = {q.chapter for q in questions if q.chapter and q.chapter != ALL_CHAPTERS}
    if len(chapters) == 1:
        return chapters.pop()
    return None


def build_attempt(
    questions: list[Question],
    answers: list[AnswerRecord],
    start_time: datetime,
    end_time: datetime | None = None,
    configured_chapter: str | list[str] | None = None,
    xp_per_correct: int = XP_PER_CORRECT,
) -> QuizAttempt:
    """Assemble the QuizAttempt created at quiz completion."""
    return QuizAttempt(
        id=generate_result_id(),
        questions=[q.to_dict() for q in questions],
        answers=list(answers),
        start_time=start_time,
        end_time=end_time or utc_now(),
        score=compute_score(answers, len(questions), xp_per_correct),
        chapter=chapter_label(questions, configured_chapter),
        synced=False,
    )
