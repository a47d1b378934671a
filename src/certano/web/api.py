"""FastAPI application factory.

Reference backend for certano clients: serves the question set,
receives quiz results and drives quiz sessions over HTTP.

Run with:
    certano serve
    uvicorn certano.web.api:app --reload
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from certano import __version__
from certano.web.routes import (
    health_router,
    questions_router,
    quiz_results_router,
    sessions_router,
)
from certano.web.sessions import get_session_manager

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the local stores on startup; cancel sessions on shutdown."""
    manager = get_session_manager()
    context = manager.context
    logger.info(
        "api_startup",
        data_dir=str(context.config.data_dir.absolute()),
        questions_available=context.question_cache.count(),
        storage_available=context.sync_queue.available,
    )
    yield
    await manager.shutdown()
    logger.info("api_shutdown")


def create_app(cors_origins: list[str] | None = None) -> FastAPI:
    """Build the API app.

    Args:
        cors_origins: Allowed browser origins (every origin when omitted)
    """
    app = FastAPI(
        title="Certano API",
        description="Quiz results, questions and quiz sessions",
        version=__version__,
        lifespan=lifespan,
    )

    origins = cors_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Credentials cannot be combined with the wildcard origin
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    for router in (health_router, questions_router, quiz_results_router, sessions_router):
        app.include_router(router)

    return app


app = create_app()
