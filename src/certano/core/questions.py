"""Question model and option-shape normalization.

Responsibilities:
- Define the Question record and its option types
- Detect which stored option shape a record uses (current, legacy, plain)
- Normalize every shape into QuestionOption objects at load time

Option shapes seen in stored records:
- current: [{"id", "text", "isCorrect", "explanation"?}, ...]
- legacy:  {"options": ["A", "B"], "correct": "A" | ["A", "B"]}
- plain:   ["A", "B"] (no correctness information)
"""

from __future__ import annotations

import json
import random
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, Iterable, Literal

import structlog

logger = structlog.get_logger(__name__)

# =============================================================================
# TYPES
# =============================================================================

QuestionType = Literal[
    "multiple_choice",
    "true_false",
    "matching",
    "image_question",
    "open_ended",
    "fill_blank",
]

QUESTION_TYPES: tuple[str, ...] = (
    "multiple_choice",
    "true_false",
    "matching",
    "image_question",
    "open_ended",
    "fill_blank",
)

Difficulty = Literal["easy", "medium", "hard"]

# Pseudo-chapter meaning "every chapter"
ALL_CHAPTERS = "all"


class OptionsFormat(Enum):
    """Stored shape of a question's options field."""

    CURRENT = auto()  # list of option objects
    LEGACY = auto()  # {"options": [...], "correct": ...}
    PLAIN = auto()  # list of strings
    UNKNOWN = auto()  # anything else, normalized to []


class QuestionFormatError(Exception):
    """Question record cannot be loaded at all (e.g. no id)."""

    pass


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class QuestionOption:
    """A selectable answer option."""

    id: str
    text: str
    is_correct: bool = False
    explanation: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "isCorrect": self.is_correct,
        }
        if self.explanation is not None:
            result["explanation"] = self.explanation
        return result


@dataclass
class MatchingPair:
    """Left item and the right item it must be matched to."""

    id: str
    left_text: str
    right_text: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "leftText": self.left_text,
            "rightText": self.right_text,
        }


@dataclass
class FillBlankOption:
    """Candidate for a blank. Correct candidates carry their blank index."""

    id: str
    text: str
    is_correct: bool = False
    blank_index: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "isCorrect": self.is_correct,
        }
        if self.blank_index is not None:
            result["blankIndex"] = self.blank_index
        return result


@dataclass
class Question:
    """A quiz question with normalized options."""

    id: str
    chapter: str
    type: str
    prompt: str
    options: list[QuestionOption] = field(default_factory=list)
    matching_pairs: list[MatchingPair] = field(default_factory=list)
    fill_blank_options: list[FillBlankOption] = field(default_factory=list)
    blank_count: int | None = None
    is_open_question: bool = False
    explanation: str | None = None
    difficulty: str = "medium"
    tags: list[str] = field(default_factory=list)
    question_number: str | None = None
    media: str | None = None
    options_format: OptionsFormat = OptionsFormat.CURRENT
    # Display order of the matching right column (empty = stored order)
    right_side_order: list[str] = field(default_factory=list)

    @property
    def correct_option_ids(self) -> set[str]:
        """Ids of options flagged correct."""
        return {o.id for o in self.options if o.is_correct}

    @property
    def correct_fill_blank_ids(self) -> list[str]:
        """Correct fill-blank option ids in blank order."""
        correct = [o for o in self.fill_blank_options if o.is_correct]
        correct.sort(key=lambda o: o.blank_index or 0)
        return [o.id for o in correct]

    @property
    def is_self_assessed(self) -> bool:
        """True when correctness comes from the user's own report."""
        if self.type == "open_ended":
            return True
        return self.type == "image_question" and self.is_open_question

    @property
    def auto_advances(self) -> bool:
        """Image questions stay on screen until the user moves on."""
        return self.type != "image_question"

    @property
    def right_side_choices(self) -> list[str]:
        """Right column of a matching question in display order."""
        if self.right_side_order:
            return list(self.right_side_order)
        return [p.right_text for p in self.matching_pairs]

    def with_shuffled_options(self, rng: random.Random) -> Question:
        """Return a copy whose options, blanks and matching right column are shuffled.

        Pair identity stays with the left item; only the right column moves.
        """
        options = list(self.options)
        blanks = list(self.fill_blank_options)
        rights = [p.right_text for p in self.matching_pairs]
        rng.shuffle(options)
        rng.shuffle(blanks)
        rng.shuffle(rights)
        return replace(
            self,
            options=options,
            fill_blank_options=blanks,
            right_side_order=rights,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the current wire format (camelCase keys)."""
        result: dict[str, Any] = {
            "id": self.id,
            "chapter": self.chapter,
            "type": self.type,
            "prompt": self.prompt,
            "options": [o.to_dict() for o in self.options],
            "difficulty": self.difficulty,
            "tags": list(self.tags),
        }
        if self.matching_pairs:
            result["matchingPairs"] = [p.to_dict() for p in self.matching_pairs]
        if self.fill_blank_options:
            result["fillBlankOptions"] = [o.to_dict() for o in self.fill_blank_options]
        if self.blank_count is not None:
            result["blankCount"] = self.blank_count
        if self.is_open_question:
            result["isOpenQuestion"] = True
        if self.explanation is not None:
            result["explanation"] = self.explanation
        if self.question_number is not None:
            result["questionNumber"] = self.question_number
        if self.media is not None:
            result["media"] = self.media
        return result


# =============================================================================
# OPTION NORMALIZATION
# =============================================================================


def detect_options_format(raw: Any) -> OptionsFormat:
    """Classify a stored options value.

    Args:
        raw: Value of the stored ``options`` field

    Returns:
        OptionsFormat tag
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return OptionsFormat.UNKNOWN

    if isinstance(raw, list):
        if raw and all(isinstance(item, str) for item in raw):
            return OptionsFormat.PLAIN
        return OptionsFormat.CURRENT

    if isinstance(raw, dict) and isinstance(raw.get("options"), list):
        return OptionsFormat.LEGACY

    return OptionsFormat.UNKNOWN


def _convert_legacy(raw: dict[str, Any]) -> list[QuestionOption]:
    """Convert {"options": [...], "correct": ...} into option objects."""
    correct = raw.get("correct")
    correct_texts = correct if isinstance(correct, list) else [correct]
    return [
        QuestionOption(
            id=f"option-{index}",
            text=str(text),
            is_correct=text in correct_texts,
        )
        for index, text in enumerate(raw["options"])
    ]


def _convert_item(item: Any, index: int) -> QuestionOption:
    """Convert one element of a list-shaped options value."""
    if isinstance(item, dict):
        text = item.get("text", item.get("option"))
        return QuestionOption(
            id=str(item.get("id") or f"option-{index}"),
            text=str(text) if text is not None else "",
            is_correct=bool(item.get("isCorrect", item.get("is_correct", False))),
            explanation=item.get("explanation"),
        )
    return QuestionOption(id=f"option-{index}", text=str(item), is_correct=False)


def normalize_options(raw: Any) -> tuple[list[QuestionOption], OptionsFormat]:
    """Normalize any stored options shape to a list of QuestionOption.

    Unknown shapes yield an empty list instead of failing.

    Returns:
        Tuple of (options, detected format)
    """
    fmt = detect_options_format(raw)
    if isinstance(raw, str) and fmt is not OptionsFormat.UNKNOWN:
        raw = json.loads(raw)

    if fmt is OptionsFormat.LEGACY:
        return _convert_legacy(raw), fmt
    if fmt in (OptionsFormat.CURRENT, OptionsFormat.PLAIN):
        return [_convert_item(item, i) for i, item in enumerate(raw)], fmt

    if raw not in (None, "", {}):
        logger.warning("unknown_options_format", value_type=type(raw).__name__)
    return [], fmt


# =============================================================================
# RECORD LOADING
# =============================================================================


def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key (supports camelCase and snake_case)."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _as_int(value: Any, field_name: str, question_id: Any = None) -> int | None:
    """Coerce an optional integer field; unusable values become None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(
            "question_field_ignored",
            question_id=question_id,
            field=field_name,
            value=repr(value)[:40],
        )
        return None


def _as_tags(raw: Any) -> list[str]:
    if isinstance(raw, str):
        return [raw] if raw else []
    if not isinstance(raw, (list, tuple)):
        return []
    return [str(tag) for tag in raw if tag is not None]


def _load_pairs(raw: Any) -> list[MatchingPair]:
    pairs: list[MatchingPair] = []
    for index, item in enumerate(raw if isinstance(raw, list) else []):
        if not isinstance(item, dict):
            continue
        pairs.append(
            MatchingPair(
                id=str(item.get("id") or f"pair-{index}"),
                left_text=str(_pick(item, "leftText", "left_text", default="")),
                right_text=str(_pick(item, "rightText", "right_text", default="")),
            )
        )
    return pairs


def _load_fill_blanks(raw: Any, question_id: Any = None) -> list[FillBlankOption]:
    blanks: list[FillBlankOption] = []
    for index, item in enumerate(raw if isinstance(raw, list) else []):
        if not isinstance(item, dict):
            continue
        blanks.append(
            FillBlankOption(
                id=str(item.get("id") or f"blank-{index}"),
                text=str(item.get("text", "")),
                is_correct=bool(_pick(item, "isCorrect", "is_correct", default=False)),
                blank_index=_as_int(
                    _pick(item, "blankIndex", "blank_index"), "blankIndex", question_id
                ),
            )
        )
    return blanks


def load_question(data: dict[str, Any]) -> Question:
    """Build a Question from a stored or fetched record.

    Args:
        data: Raw record (camelCase or snake_case keys)

    Returns:
        Normalized Question

    Raises:
        QuestionFormatError: If the record is not a dict or has no id
    """
    if not isinstance(data, dict) or not data.get("id"):
        raise QuestionFormatError("Question record without id")

    qtype = str(data.get("type") or "multiple_choice")
    if qtype not in QUESTION_TYPES:
        logger.warning("unknown_question_type", question_id=data["id"], type=qtype)

    options, fmt = normalize_options(data.get("options"))

    return Question(
        id=str(data["id"]),
        chapter=str(data.get("chapter") or ""),
        type=qtype,
        prompt=str(data.get("prompt") or ""),
        options=options,
        matching_pairs=_load_pairs(_pick(data, "matchingPairs", "matching_pairs")),
        fill_blank_options=_load_fill_blanks(
            _pick(data, "fillBlankOptions", "fill_blank_options"), data["id"]
        ),
        blank_count=_as_int(_pick(data, "blankCount", "blank_count"), "blankCount", data["id"]),
        is_open_question=bool(_pick(data, "isOpenQuestion", "is_open_question", default=False)),
        explanation=data.get("explanation"),
        difficulty=str(data.get("difficulty") or "medium"),
        tags=_as_tags(data.get("tags")),
        question_number=_pick(data, "questionNumber", "question_number"),
        media=data.get("media"),
        options_format=fmt,
    )


def load_questions(records: Iterable[Any]) -> list[Question]:
    """Load many records, skipping the ones without an id."""
    questions: list[Question] = []
    for record in records:
        try:
            questions.append(load_question(record))
        except QuestionFormatError:
            logger.warning("question_record_skipped", record_type=type(record).__name__)
    return questions
