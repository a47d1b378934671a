"""Health check endpoint (reachability probe for clients)."""

from fastapi import APIRouter

from certano import __version__
from certano.web.schemas import HealthResponse
from certano.web.sessions import get_session_manager

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check API health status."""
    active = await get_session_manager().get_session_count()
    return HealthResponse(status="ok", version=__version__, active_sessions=active)
