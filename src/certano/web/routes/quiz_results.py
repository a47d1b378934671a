"""Quiz result delivery endpoints."""

from fastapi import APIRouter, HTTPException, Query, status

from certano.core.attempt import AttemptFormatError, QuizAttempt
from certano.web.schemas import (
    QuizResultListResponse,
    QuizResultPayload,
    QuizResultSummary,
    ResultReceivedResponse,
)
from certano.web.sessions import get_session_manager

router = APIRouter(prefix="/api/quiz-results", tags=["quiz-results"])


@router.post(
    "",
    response_model=ResultReceivedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def receive_result(payload: QuizResultPayload) -> ResultReceivedResponse:
    """Accept one completed attempt from a client's sync queue."""
    try:
        attempt = QuizAttempt.from_dict(payload.to_wire())
    except AttemptFormatError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from e

    get_session_manager().receive_result(attempt)
    return ResultReceivedResponse(id=attempt.id)


@router.get("", response_model=QuizResultListResponse)
async def list_received(
    limit: int | None = Query(default=None, ge=1, le=1000),
) -> QuizResultListResponse:
    """List stored attempts, most recent first."""
    attempts = get_session_manager().list_received(limit)
    return QuizResultListResponse(
        results=[QuizResultSummary.from_attempt(a) for a in attempts],
        count=len(attempts),
    )
