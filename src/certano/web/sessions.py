"""Session management for the Web API.

Holds the server-side QuizContext, the active quiz sessions and the
store of delivered quiz results.
"""

from __future__ import annotations

import asyncio

import structlog

from certano.core.attempt import QuizAttempt
from certano.core.context import QuizContext
from certano.core.questions import Question
from certano.core.quiz_builder import QuizConfig
from certano.core.session import QuizSession
from certano.db.results_repository import insert_result, list_results

logger = structlog.get_logger(__name__)


class SessionManager:
    """Manages active quiz sessions.

    The server is its own backend: questions come from the local
    snapshot and completed attempts are stored as received.
    """

    def __init__(self, context: QuizContext | None = None):
        self._context = context
        self._sessions: dict[str, QuizSession] = {}
        self._lock = asyncio.Lock()

    @property
    def context(self) -> QuizContext:
        if self._context is None:
            self._context = QuizContext.create(online=False)
        return self._context

    # -------------------------------------------------------------------------
    # Results and questions
    # -------------------------------------------------------------------------

    def receive_result(self, attempt: QuizAttempt) -> QuizAttempt:
        """Store a delivered attempt. Re-delivery of an id overwrites it."""
        attempt.synced = True
        insert_result(self.context.config.db_path, attempt)
        logger.info(
            "quiz_result_received",
            result_id=attempt.id,
            answered=attempt.score.answered,
            accuracy=attempt.score.accuracy,
        )
        return attempt

    def list_received(self, limit: int | None = None) -> list[QuizAttempt]:
        return list_results(self.context.config.db_path, limit)

    def questions(self, chapter: str | None = None) -> list[Question]:
        return self.context.question_cache.load_offline_questions(chapter)

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def create_session(
        self,
        quiz_config: QuizConfig,
        error_review: bool = False,
    ) -> QuizSession:
        """Create and start a quiz session.

        Raises:
            EmptyQuizError: If no question matches the configuration
        """
        session = await self.context.new_session(
            quiz_config,
            error_review=error_review,
            on_complete=self.receive_result,
        )

        async with self._lock:
            self._sessions[session.id] = session

        logger.info(
            "web_session_created",
            session_id=session.id,
            question_count=len(session.questions),
        )
        return session

    async def get_session(self, session_id: str) -> QuizSession | None:
        async with self._lock:
            return self._sessions.get(session_id)

    async def end_session(self, session_id: str) -> bool:
        """Drop a session and cancel its timers.

        Returns:
            True if the session existed
        """
        async with self._lock:
            session = self._sessions.pop(session_id, None)

        if session is None:
            return False

        session.close()
        logger.info("web_session_ended", session_id=session_id, state=session.state.value)
        return True

    async def list_sessions(self) -> list[QuizSession]:
        async with self._lock:
            return list(self._sessions.values())

    async def get_session_count(self) -> int:
        async with self._lock:
            return len(self._sessions)

    async def shutdown(self) -> None:
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
        if self._context is not None:
            await self._context.aclose()


# Global session manager instance
_session_manager: SessionManager | None = None


def get_session_manager() -> SessionManager:
    """Get the global session manager instance."""
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager()
    return _session_manager


def reset_session_manager() -> None:
    """Reset the global session manager (for testing)."""
    global _session_manager
    _session_manager = None
