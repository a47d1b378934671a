"""Question set endpoint."""

from typing import Any

from fastapi import APIRouter, Query

from certano.web.sessions import get_session_manager

router = APIRouter(prefix="/api/questions", tags=["questions"])


@router.get("")
async def list_questions(
    chapter: str | None = Query(default=None),
) -> list[dict[str, Any]]:
    """Return the question set in the current wire format."""
    manager = get_session_manager()
    return [q.to_dict() for q in manager.questions(chapter)]
