"""Per-question grading.

Responsibilities:
- Compare a submission against a normalized Question
- Deterministic, type-specific correctness rules
- Defer open-ended / open image questions to the user's self-assessment

Rules:
- multiple_choice, image_question: submitted id set == correct id set
- true_false: exactly one id, equal to the correct one
- matching: every pair matched to its designated right item
- fill_blank: chosen ids in blank order == correct ids in blank order
- open_ended / open image_question: is_correct stays None until self-assessed
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from certano.core.questions import Question

logger = structlog.get_logger(__name__)

GradingPath = Literal["auto", "self_assessment", "skipped"]


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class Submission:
    """What the user entered for one question."""

    selected_options: list[str] = field(default_factory=list)
    user_answer: str | None = None
    fill_blank_answers: list[str] = field(default_factory=list)
    matching_selections: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Submission:
        """Build from a request payload (camelCase or snake_case)."""
        return cls(
            selected_options=list(
                data.get("selected_options") or data.get("selectedOptions") or []
            ),
            user_answer=data.get("user_answer", data.get("userAnswer")),
            fill_blank_answers=list(
                data.get("fill_blank_answers") or data.get("fillBlankAnswers") or []
            ),
            matching_selections=dict(
                data.get("matching_selections") or data.get("matchingSelections") or {}
            ),
        )


@dataclass
class Grade:
    """Outcome of grading one submission."""

    question_id: str
    is_correct: bool | None
    grading_path: GradingPath = "auto"
    expected: list[str] = field(default_factory=list)
    explanation: str | None = None

    @property
    def awaiting_self_assessment(self) -> bool:
        return self.grading_path == "self_assessment" and self.is_correct is None


# =============================================================================
# GRADING FUNCTIONS
# =============================================================================


def _normalize_ids(values: Any) -> list[str]:
    """Normalize submitted ids to a list of non-empty strings."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    result = []
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if text:
            result.append(text)
    return result


def grade_choice(question: Question, selected: list[str]) -> bool:
    """Order-independent set equality against the flagged-correct options."""
    chosen = set(_normalize_ids(selected))
    if not chosen:
        return False
    return chosen == question.correct_option_ids


def grade_true_false(question: Question, selected: list[str]) -> bool:
    """Single-option special case of grade_choice."""
    chosen = _normalize_ids(selected)
    if len(set(chosen)) != 1:
        return False
    return grade_choice(question, chosen)


def grade_matching(question: Question, selections: dict[str, str]) -> bool:
    """Every left item must be matched to its designated right item."""
    pairs = question.matching_pairs
    if not pairs or len(selections) != len(pairs):
        return False
    return all(selections.get(pair.id) == pair.right_text for pair in pairs)


def grade_fill_blank(question: Question, answers: list[str]) -> bool:
    """Chosen ids must equal the correct ids, blank by blank."""
    expected = question.correct_fill_blank_ids
    chosen = _normalize_ids(answers)
    if not expected or len(chosen) != len(expected):
        return False
    known_ids = {o.id for o in question.fill_blank_options}
    return all(
        answer in known_ids and answer == correct
        for answer, correct in zip(chosen, expected)
    )


def grade_answer(question: Question, submission: Submission) -> Grade:
    """Grade a submission for the given question.

    Self-assessed questions return a Grade with ``is_correct=None``;
    the caller records the user's verdict via ``apply_self_assessment``.

    Args:
        question: Normalized question
        submission: User input

    Returns:
        Grade with correctness and the expected answer ids
    """
    if question.is_self_assessed:
        return Grade(
            question_id=question.id,
            is_correct=None,
            grading_path="self_assessment",
            explanation=question.explanation,
        )

    expected: list[str]
    if question.type == "matching":
        correct = grade_matching(question, submission.matching_selections)
        expected = [f"{p.left_text} -> {p.right_text}" for p in question.matching_pairs]
    elif question.type == "fill_blank":
        correct = grade_fill_blank(question, submission.fill_blank_answers)
        expected = question.correct_fill_blank_ids
    elif question.type == "true_false":
        correct = grade_true_false(question, submission.selected_options)
        expected = sorted(question.correct_option_ids)
    else:
        # multiple_choice, non-open image_question and unknown types
        correct = grade_choice(question, submission.selected_options)
        expected = sorted(question.correct_option_ids)

    logger.debug(
        "answer_graded",
        question_id=question.id,
        type=question.type,
        is_correct=correct,
    )

    return Grade(
        question_id=question.id,
        is_correct=correct,
        grading_path="auto",
        expected=expected,
        explanation=question.explanation,
    )


def apply_self_assessment(grade: Grade, correct: bool) -> Grade:
    """Record the user's own verdict on a self-assessed question.

    The verdict is trusted as given; there is no server-side check.
    """
    if grade.grading_path != "self_assessment":
        raise ValueError(f"Question {grade.question_id} is not self-assessed")
    return Grade(
        question_id=grade.question_id,
        is_correct=bool(correct),
        grading_path="self_assessment",
        expected=grade.expected,
        explanation=grade.explanation,
    )


def skipped_grade(question: Question) -> Grade:
    """Grade for a skipped question (always incorrect)."""
    return Grade(
        question_id=question.id,
        is_correct=False,
        grading_path="skipped",
        explanation=question.explanation,
    )
