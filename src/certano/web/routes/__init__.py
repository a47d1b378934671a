"""Route handlers for the Web API."""

from certano.web.routes.health import router as health_router
from certano.web.routes.questions import router as questions_router
from certano.web.routes.quiz_results import router as quiz_results_router
from certano.web.routes.sessions import router as sessions_router

__all__ = [
    "health_router",
    "questions_router",
    "quiz_results_router",
    "sessions_router",
]
