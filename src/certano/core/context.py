"""Application context: the stores and clients a quiz needs.

One QuizContext is built per process (CLI run or web app) and passed to
whoever needs it. Nothing in core reaches for module-level singletons.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable

import structlog

from certano.backend.client import BackendClient
from certano.config.app_config import AppConfig, load_app_config
from certano.core.attempt import QuizAttempt
from certano.core.connectivity import ConnectivityMonitor
from certano.core.question_cache import QuestionCache, load_questions
from certano.core.questions import Question
from certano.core.quiz_builder import QuizConfig, build_error_review, build_quiz
from certano.core.session import QuizSession
from certano.core.stats import STATS_FILENAME, StatsStore
from certano.core.sync_queue import SyncQueue

logger = structlog.get_logger(__name__)


@dataclass
class QuizContext:
    """Explicit container for the injected stores."""

    config: AppConfig
    client: BackendClient
    connectivity: ConnectivityMonitor
    sync_queue: SyncQueue
    question_cache: QuestionCache
    stats: StatsStore
    rng: random.Random = field(default_factory=random.Random)

    @classmethod
    def create(
        cls,
        config: AppConfig | None = None,
        client: BackendClient | None = None,
        online: bool = True,
        rng: random.Random | None = None,
    ) -> QuizContext:
        """Build the context from configuration and open the local stores."""
        config = config or load_app_config()
        client = client or BackendClient(config.backend)
        connectivity = ConnectivityMonitor(is_online=online)

        sync_queue = SyncQueue(config.db_path, client, connectivity)
        sync_queue.open()
        question_cache = QuestionCache(config.db_path)
        question_cache.open()
        stats = StatsStore.load(config.state_dir / STATS_FILENAME)
        stats.refresh_quests()

        logger.debug(
            "quiz_context_created",
            data_dir=str(config.data_dir),
            online=online,
            offline_storage=sync_queue.available,
        )
        return cls(
            config=config,
            client=client,
            connectivity=connectivity,
            sync_queue=sync_queue,
            question_cache=question_cache,
            stats=stats,
            rng=rng or random.Random(),
        )

    def quiz_config(self, **overrides) -> QuizConfig:
        return QuizConfig.from_defaults(self.config.quiz, **overrides)

    async def load_questions(self, chapter: str | None = None) -> list[Question]:
        return await load_questions(
            self.client,
            self.question_cache,
            self.connectivity.is_online,
            chapter,
        )

    async def new_session(
        self,
        quiz_config: QuizConfig,
        error_review: bool = False,
        on_complete: Callable[[QuizAttempt], object] | None = None,
    ) -> QuizSession:
        """Load questions, select them and start a session.

        Completed attempts go to the sync queue unless ``on_complete``
        is given.

        Raises:
            EmptyQuizError: If no question matches
        """
        chapter = None if isinstance(quiz_config.chapter, list) else quiz_config.chapter
        available = await self.load_questions(chapter)

        if error_review:
            ids = self.stats.error_question_ids_for_quiz(
                chapter, quiz_config.question_count
            )
            questions = build_error_review(available, ids, quiz_config, self.rng)
        else:
            questions = build_quiz(available, quiz_config, self.rng)

        session = QuizSession(
            questions,
            quiz_config,
            on_complete=on_complete or self.sync_queue.save,
            stats=self.stats,
            xp_per_correct=self.config.quiz.xp_per_correct,
            xp_per_incorrect=self.config.quiz.xp_per_incorrect,
        )
        await session.start()
        return session

    async def aclose(self) -> None:
        await self.connectivity.stop()
        await self.client.aclose()

