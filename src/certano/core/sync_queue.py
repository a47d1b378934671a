"""Offline-first queue of completed quiz attempts.

Responsibilities:
- Persist every completed attempt locally with synced = false
- Deliver pending attempts to the backend when online
- Flip synced = true on 2xx; leave the record pending otherwise

Triggers:
- Connectivity offline -> online transition
- Right after save() while online

Failures are logged and retried at the next trigger. There is no
backoff and no retry limit. Sweeps are serialized so a record is never
delivered twice by overlapping flushes.
"""

from __future__ import annotations

import asyncio
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from certano.backend.client import BackendClient
from certano.core.attempt import QuizAttempt
from certano.core.connectivity import ConnectivityMonitor
from certano.db.database import StorageUnavailableError, init_db
from certano.db.results_repository import (
    count_pending,
    get_result,
    insert_result,
    list_pending,
    list_results,
    mark_synced,
)

logger = structlog.get_logger(__name__)


@dataclass
class FlushResult:
    """Outcome of one flush sweep."""

    success: bool
    attempted: int = 0
    delivered: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    message: str = ""

    @property
    def remaining(self) -> int:
        return len(self.failed)


class SyncQueue:
    """Local store of attempts plus the delivery sweep."""

    def __init__(
        self,
        db_path: Path,
        client: BackendClient,
        connectivity: ConnectivityMonitor | None = None,
    ):
        self.db_path = db_path
        self.client = client
        self.connectivity = connectivity or ConnectivityMonitor(is_online=True)
        self.available = False
        self._lock = asyncio.Lock()

        self.connectivity.on_online(self._handle_online)

    def open(self) -> bool:
        """Open (or create) the local store.

        Returns:
            True if offline storage is usable. False disables it and
            save() falls back to direct delivery.
        """
        try:
            init_db(self.db_path)
            self.available = True
        except StorageUnavailableError as e:
            logger.error("offline_storage_disabled", path=str(self.db_path), error=str(e))
            self.available = False
        return self.available

    def _disable(self, error: Exception) -> None:
        """Switch to online-only after the local store failed mid-run."""
        self.available = False
        logger.error("offline_storage_disabled", path=str(self.db_path), error=str(error))

    async def _handle_online(self) -> None:
        await self.flush()

    async def save(self, attempt: QuizAttempt) -> QuizAttempt:
        """Persist an attempt and deliver it right away when online.

        Returns:
            The same attempt; ``synced`` is True if it was delivered
        """
        attempt.synced = False

        if self.available:
            try:
                insert_result(self.db_path, attempt)
            except sqlite3.Error as e:
                self._disable(e)

        if not self.available:
            return await self._deliver_directly(attempt)

        logger.info("quiz_result_saved", result_id=attempt.id, chapter=attempt.chapter)

        if self.connectivity.is_online:
            flush = await self.flush()
            if attempt.id in flush.delivered:
                attempt.synced = True
            elif not self.available:
                return await self._deliver_directly(attempt)

        return attempt

    async def _deliver_directly(self, attempt: QuizAttempt) -> QuizAttempt:
        result = await self.client.post_quiz_result(attempt)
        attempt.synced = result.success
        if not result.success:
            logger.error(
                "quiz_result_not_stored",
                result_id=attempt.id,
                reason="offline storage unavailable and delivery failed",
            )
        return attempt

    async def flush(self) -> FlushResult:
        """Deliver every pending attempt once.

        Each record is delivered independently; one failure does not
        stop the sweep.
        """
        if not self.available:
            return FlushResult(success=False, message="Offline storage unavailable")
        if not self.connectivity.is_online:
            logger.debug("flush_skipped_offline")
            return FlushResult(success=False, message="Offline")

        async with self._lock:
            try:
                pending = list_pending(self.db_path)
            except sqlite3.Error as e:
                self._disable(e)
                return FlushResult(success=False, message="Offline storage unavailable")
            if not pending:
                return FlushResult(success=True, message="Nothing to sync")

            logger.info("flush_started", pending=len(pending))
            result = FlushResult(success=True, attempted=len(pending))

            for attempt in pending:
                delivery = await self.client.post_quiz_result(attempt)
                if delivery.success:
                    result.delivered.append(attempt.id)
                    if self.available:
                        try:
                            mark_synced(self.db_path, attempt.id)
                        except sqlite3.Error as e:
                            self._disable(e)
                else:
                    result.failed.append(attempt.id)

            result.success = not result.failed
            result.message = (
                f"Delivered {len(result.delivered)} of {result.attempted}"
            )
            logger.info(
                "flush_finished",
                delivered=len(result.delivered),
                failed=len(result.failed),
            )
            return result

    def pending(self) -> list[QuizAttempt]:
        if not self.available:
            return []
        return list_pending(self.db_path)

    def pending_count(self) -> int:
        if not self.available:
            return 0
        return count_pending(self.db_path)

    def get(self, result_id: str) -> QuizAttempt | None:
        if not self.available:
            return None
        return get_result(self.db_path, result_id)

    def history(self, limit: int | None = None) -> list[QuizAttempt]:
        if not self.available:
            return []
        return list_results(self.db_path, limit)
