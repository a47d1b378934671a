"""Quiz configuration and question selection.

Responsibilities:
- QuizConfig: per-quiz settings (count, time limit, shuffling, skipping)
- build_quiz: filter by chapter, shuffle, limit
- build_error_review: questions the user got wrong before
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any

import structlog

from certano.config.app_config import QuizDefaults
from certano.core.questions import ALL_CHAPTERS, Question

logger = structlog.get_logger(__name__)


class EmptyQuizError(Exception):
    """No question matches the quiz configuration."""

    pass


@dataclass
class QuizConfig:
    """Settings for one quiz."""

    question_count: int = 10
    time_limit: int | None = None  # seconds
    shuffle_questions: bool = True
    shuffle_options: bool = True
    show_explanations: bool = True
    allow_skip: bool = False
    chapter: str | list[str] = ALL_CHAPTERS
    auto_advance_seconds: float = 10.0

    @classmethod
    def from_defaults(cls, defaults: QuizDefaults, **overrides: Any) -> QuizConfig:
        """Build from configured defaults; ``None`` overrides are ignored."""
        values: dict[str, Any] = {
            "question_count": defaults.question_count,
            "time_limit": defaults.time_limit,
            "shuffle_questions": defaults.shuffle_questions,
            "shuffle_options": defaults.shuffle_options,
            "show_explanations": defaults.show_explanations,
            "allow_skip": defaults.allow_skip,
            "auto_advance_seconds": defaults.auto_advance_seconds,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def chapters(self) -> list[str]:
        """Selected chapters; empty means every chapter."""
        names = [self.chapter] if isinstance(self.chapter, str) else list(self.chapter)
        return [n for n in names if n and n != ALL_CHAPTERS]


def build_quiz(
    questions: list[Question],
    config: QuizConfig,
    rng: random.Random | None = None,
) -> list[Question]:
    """Select the questions for one quiz.

    Args:
        questions: Available questions
        config: Quiz settings
        rng: Random source (seeded in tests)

    Returns:
        Questions in presentation order

    Raises:
        EmptyQuizError: If nothing matches the configuration
    """
    rng = rng or random.Random()

    selected = list(questions)
    chapters = config.chapters
    if chapters:
        selected = [q for q in selected if q.chapter in chapters]

    if config.shuffle_questions:
        rng.shuffle(selected)

    selected = selected[: max(0, config.question_count)]

    if not selected:
        raise EmptyQuizError(
            f"No questions available for chapter {config.chapter!r}"
        )

    if config.shuffle_options:
        selected = [q.with_shuffled_options(rng) for q in selected]

    logger.info(
        "quiz_built",
        question_count=len(selected),
        chapter=config.chapter,
        available=len(questions),
    )
    return selected


def build_error_review(
    questions: list[Question],
    error_question_ids: list[str],
    config: QuizConfig,
    rng: random.Random | None = None,
) -> list[Question]:
    """Build a quiz from previously missed questions.

    Questions keep the error tracker's priority order unless
    ``shuffle_questions`` is set.

    Raises:
        EmptyQuizError: If none of the ids is available
    """
    by_id = {q.id: q for q in questions}
    missed = [by_id[qid] for qid in error_question_ids if qid in by_id]
    logger.debug(
        "error_review_selected",
        requested=len(error_question_ids),
        available=len(missed),
    )
    review_config = QuizConfig(
        question_count=config.question_count,
        time_limit=config.time_limit,
        shuffle_questions=config.shuffle_questions,
        shuffle_options=config.shuffle_options,
        show_explanations=config.show_explanations,
        allow_skip=config.allow_skip,
        chapter=ALL_CHAPTERS,
        auto_advance_seconds=config.auto_advance_seconds,
    )
    return build_quiz(missed, review_config, rng)
