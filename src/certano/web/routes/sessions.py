"""Quiz session endpoints."""

from typing import Awaitable, Callable

from fastapi import APIRouter, HTTPException, status

from certano.core.grader import Submission
from certano.core.quiz_builder import EmptyQuizError
from certano.core.session import QuizSession, SessionStateError
from certano.web.schemas import (
    AnswerRequest,
    GradeResponse,
    SelfAssessRequest,
    SessionResponse,
    SessionStartRequest,
)
from certano.web.sessions import get_session_manager

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


async def _require_session(session_id: str) -> QuizSession:
    session = await get_session_manager().get_session(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session '{session_id}' not found",
        )
    return session


async def _apply(
    session_id: str,
    operation: Callable[[QuizSession], Awaitable[object]],
) -> SessionResponse:
    """Run a state transition, mapping illegal transitions to 409."""
    session = await _require_session(session_id)
    try:
        await operation(session)
    except SessionStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return SessionResponse.from_session(session)


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(request: SessionStartRequest) -> SessionResponse:
    """Start a new quiz session."""
    manager = get_session_manager()
    quiz_config = manager.context.quiz_config(
        question_count=request.question_count,
        time_limit=request.time_limit,
        shuffle_questions=request.shuffle_questions,
        shuffle_options=request.shuffle_options,
        show_explanations=request.show_explanations,
        allow_skip=request.allow_skip,
        chapter=request.chapter,
        auto_advance_seconds=request.auto_advance_seconds,
    )

    try:
        session = await manager.create_session(quiz_config, error_review=request.error_review)
    except EmptyQuizError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from e

    return SessionResponse.from_session(session)


@router.get("", response_model=list[SessionResponse])
async def list_sessions() -> list[SessionResponse]:
    """List active sessions."""
    sessions = await get_session_manager().list_sessions()
    return [SessionResponse.from_session(s) for s in sessions]


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str) -> SessionResponse:
    """Get session state and the current question."""
    session = await _require_session(session_id)
    return SessionResponse.from_session(session)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def end_session(session_id: str) -> None:
    """Abandon a quiz session."""
    if not await get_session_manager().end_session(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session '{session_id}' not found",
        )


@router.post("/{session_id}/answer", response_model=SessionResponse)
async def submit_answer(session_id: str, request: AnswerRequest) -> SessionResponse:
    """Grade and record the answer to the current question."""
    submission = Submission(
        selected_options=request.selected_options,
        user_answer=request.user_answer,
        fill_blank_answers=request.fill_blank_answers,
        matching_selections=request.matching_selections,
    )
    return await _apply(session_id, lambda s: s.submit(submission))


@router.post("/{session_id}/self-assess", response_model=SessionResponse)
async def self_assess(session_id: str, request: SelfAssessRequest) -> SessionResponse:
    """Record the user's own verdict on an open question."""
    return await _apply(session_id, lambda s: s.self_assess(request.correct))


@router.post("/{session_id}/skip", response_model=SessionResponse)
async def skip_question(session_id: str) -> SessionResponse:
    """Skip the current question (only when the quiz allows it)."""
    return await _apply(session_id, lambda s: s.skip())


@router.post("/{session_id}/next", response_model=SessionResponse)
async def next_question(session_id: str) -> SessionResponse:
    """Move past an answered question."""
    return await _apply(session_id, lambda s: s.next())


@router.post("/{session_id}/finish", response_model=SessionResponse)
async def finish_session(session_id: str) -> SessionResponse:
    """End the quiz early with the answers given so far."""
    return await _apply(session_id, lambda s: s.finish())


@router.get("/{session_id}/grade", response_model=GradeResponse)
async def last_grade(session_id: str) -> GradeResponse:
    """Grade of the current question, once submitted."""
    session = await _require_session(session_id)
    grade = None if session.is_completed else session.last_grade
    if grade is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Current question has not been answered",
        )
    return GradeResponse.from_grade(grade, session.config.show_explanations)
