"""Pydantic schemas for the Web API.

Serialization models for quiz results, questions and quiz sessions.
Wire payloads use camelCase aliases; snake_case names are accepted too.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from certano.core.attempt import QuizAttempt
from certano.core.grader import Grade
from certano.core.questions import Question
from certano.core.session import QuizSession
from certano.utils.time_utils import utc_now_iso

_ALIASED = {"populate_by_name": True}


# =============================================================================
# QUIZ RESULT SCHEMAS
# =============================================================================


class AnswerPayload(BaseModel):
    """One answer inside a delivered attempt."""

    question_id: str = Field(..., alias="questionId")
    is_correct: bool = Field(default=False, alias="isCorrect")
    time_spent: int = Field(default=0, ge=0, alias="timeSpent")
    answered_at: str = Field(default="", alias="answeredAt")
    selected_options: list[str] | None = Field(default=None, alias="selectedOptions")
    user_answer: str | None = Field(default=None, alias="userAnswer")
    fill_blank_answers: list[str] | None = Field(default=None, alias="fillBlankAnswers")
    matching_selections: dict[str, str] | None = Field(
        default=None, alias="matchingSelections"
    )
    chapter: str | None = None

    model_config = _ALIASED


class QuizResultPayload(BaseModel):
    """Request body of POST /api/quiz-results."""

    id: str = Field(..., min_length=1)
    questions: list[dict[str, Any]] = Field(default_factory=list)
    answers: list[AnswerPayload] = Field(default_factory=list)
    start_time: str = Field(..., alias="startTime")
    end_time: str = Field(..., alias="endTime")
    # Older clients sent a bare number here
    score: dict[str, Any] | int | None = None
    total_questions: int | None = Field(default=None, alias="totalQuestions")
    chapter: str | None = None
    synced: bool = False

    model_config = _ALIASED

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ResultReceivedResponse(BaseModel):
    id: str
    stored: bool = True


class QuizResultSummary(BaseModel):
    """Listing entry for a stored attempt."""

    id: str
    chapter: str | None
    start_time: str
    end_time: str
    total_questions: int
    answered: int
    correct: int
    accuracy: int
    xp: int
    performance: str
    synced: bool

    @classmethod
    def from_attempt(cls, attempt: QuizAttempt) -> QuizResultSummary:
        score = attempt.score
        return cls(
            id=attempt.id,
            chapter=attempt.chapter,
            start_time=attempt.start_time.isoformat(),
            end_time=attempt.end_time.isoformat(),
            total_questions=score.total_questions,
            answered=score.answered,
            correct=score.correct,
            accuracy=score.accuracy,
            xp=score.xp,
            performance=score.performance,
            synced=attempt.synced,
        )


class QuizResultListResponse(BaseModel):
    results: list[QuizResultSummary]
    count: int


# =============================================================================
# QUESTION SCHEMAS
# =============================================================================


class ChoiceView(BaseModel):
    """Selectable item shown to the user (no correctness flag)."""

    id: str
    text: str


class QuestionView(BaseModel):
    """A question as presented during a quiz."""

    id: str
    chapter: str
    type: str
    prompt: str
    options: list[ChoiceView] = Field(default_factory=list)
    matching_left: list[ChoiceView] = Field(default_factory=list)
    matching_right: list[str] = Field(default_factory=list)
    fill_blank_options: list[ChoiceView] = Field(default_factory=list)
    blank_count: int | None = None
    is_open_question: bool = False
    question_number: str | None = None
    media: str | None = None

    @classmethod
    def from_question(cls, question: Question) -> QuestionView:
        return cls(
            id=question.id,
            chapter=question.chapter,
            type=question.type,
            prompt=question.prompt,
            options=[ChoiceView(id=o.id, text=o.text) for o in question.options],
            matching_left=[
                ChoiceView(id=p.id, text=p.left_text) for p in question.matching_pairs
            ],
            matching_right=question.right_side_choices,
            fill_blank_options=[
                ChoiceView(id=o.id, text=o.text) for o in question.fill_blank_options
            ],
            blank_count=question.blank_count,
            is_open_question=question.is_open_question,
            question_number=question.question_number,
            media=question.media,
        )


# =============================================================================
# SESSION SCHEMAS
# =============================================================================


class SessionStartRequest(BaseModel):
    """Request to start a quiz session. Omitted fields use configured defaults."""

    question_count: int | None = Field(default=None, ge=1, le=500)
    time_limit: int | None = Field(default=None, ge=1)
    shuffle_questions: bool | None = None
    shuffle_options: bool | None = None
    show_explanations: bool | None = None
    allow_skip: bool | None = None
    chapter: str | list[str] | None = None
    auto_advance_seconds: float | None = Field(default=None, ge=0)
    error_review: bool = False


class AnswerRequest(BaseModel):
    """Submission for the current question."""

    selected_options: list[str] = Field(default_factory=list, alias="selectedOptions")
    user_answer: str | None = Field(default=None, alias="userAnswer", max_length=5000)
    fill_blank_answers: list[str] = Field(default_factory=list, alias="fillBlankAnswers")
    matching_selections: dict[str, str] = Field(
        default_factory=dict, alias="matchingSelections"
    )

    model_config = _ALIASED


class SelfAssessRequest(BaseModel):
    correct: bool


class GradeResponse(BaseModel):
    question_id: str
    is_correct: bool | None
    grading_path: str
    expected: list[str] = Field(default_factory=list)
    explanation: str | None = None

    @classmethod
    def from_grade(cls, grade: Grade, show_explanation: bool = True) -> GradeResponse:
        return cls(
            question_id=grade.question_id,
            is_correct=grade.is_correct,
            grading_path=grade.grading_path,
            expected=grade.expected,
            explanation=grade.explanation if show_explanation else None,
        )


class SessionResponse(BaseModel):
    """Snapshot of a quiz session."""

    session_id: str
    state: str
    current_index: int
    total_questions: int
    answered: int
    allow_skip: bool
    time_remaining: float | None = None
    question: QuestionView | None = None
    last_grade: GradeResponse | None = None
    result: dict[str, Any] | None = None

    @classmethod
    def from_session(cls, session: QuizSession) -> SessionResponse:
        question = session.current_question
        grade = None if session.is_completed else session.last_grade
        return cls(
            session_id=session.id,
            state=session.state.value,
            current_index=session.index,
            total_questions=len(session.questions),
            answered=len(session.answers),
            allow_skip=session.config.allow_skip,
            time_remaining=session.time_remaining,
            question=QuestionView.from_question(question) if question else None,
            last_grade=GradeResponse.from_grade(grade, session.config.show_explanations)
            if grade
            else None,
            result=session.attempt.to_dict() if session.attempt else None,
        )


# =============================================================================
# HEALTH SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    active_sessions: int = 0
    timestamp: str = Field(default_factory=utc_now_iso)
