"""Tests for the offline-first sync queue."""

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from certano.backend.client import BackendClient
from certano.config.app_config import BackendConfig
from certano.core.attempt import AnswerRecord, build_attempt
from certano.core.connectivity import ConnectivityMonitor
from certano.core.sync_queue import SyncQueue

START = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


def _attempt(questions):
    return build_attempt(
        questions[:1],
        [AnswerRecord(question_id="q-mc", is_correct=True, time_spent=3)],
        START,
        START,
    )


@pytest.fixture
def monitor():
    return ConnectivityMonitor(is_online=False)


@pytest.fixture
def queue(tmp_path, fake_backend, monitor):
    sync_queue = SyncQueue(tmp_path / "db" / "certano.db", fake_backend.client(), monitor)
    assert sync_queue.open()
    return sync_queue


class TestSave:
    @pytest.mark.asyncio
    async def test_offline_save_stays_pending(self, queue, fake_backend, questions):
        attempt = await queue.save(_attempt(questions))

        assert attempt.synced is False
        assert [a.id for a in queue.pending()] == [attempt.id]
        assert fake_backend.received == []

    @pytest.mark.asyncio
    async def test_online_save_delivers_immediately(self, queue, fake_backend, monitor, questions):
        await monitor.set_online(True)
        attempt = await queue.save(_attempt(questions))

        assert attempt.synced is True
        assert fake_backend.received_ids == [attempt.id]
        assert queue.pending() == []
        assert queue.get(attempt.id).synced is True

    @pytest.mark.asyncio
    async def test_online_save_rejected_stays_pending(self, queue, fake_backend, monitor, questions):
        await monitor.set_online(True)
        fake_backend.accept = False

        attempt = await queue.save(_attempt(questions))

        assert attempt.synced is False
        assert queue.pending_count() == 1


class TestFlush:
    @pytest.mark.asyncio
    async def test_double_flush(self, queue, fake_backend, monitor, questions):
        for _ in range(3):
            await queue.save(_attempt(questions))
        await monitor.set_online(True)

        # The online transition already flushed
        assert queue.pending() == []
        assert len(fake_backend.received) == 3

        second = await queue.flush()
        assert second.success
        assert second.attempted == 0
        assert len(fake_backend.received) == 3

    @pytest.mark.asyncio
    async def test_partial_failure_is_retried_next_flush(self, queue, fake_backend, monitor, questions):
        good = await queue.save(_attempt(questions))
        bad = await queue.save(_attempt(questions))
        fake_backend.reject_ids = {bad.id}

        await monitor.set_online(True)
        assert [a.id for a in queue.pending()] == [bad.id]
        assert fake_backend.received_ids == [good.id]

        fake_backend.reject_ids = set()
        result = await queue.flush()

        assert result.delivered == [bad.id]
        assert queue.pending() == []

    @pytest.mark.asyncio
    async def test_unreachable_backend_keeps_everything(self, queue, fake_backend, monitor, questions):
        await queue.save(_attempt(questions))
        fake_backend.reachable = False
        await monitor.set_online(True)

        result = await queue.flush()

        assert not result.success
        assert result.remaining == 1
        assert queue.pending_count() == 1

    @pytest.mark.asyncio
    async def test_flush_while_offline_is_skipped(self, queue, fake_backend, questions):
        await queue.save(_attempt(questions))

        result = await queue.flush()

        assert not result.success
        assert result.message == "Offline"
        assert fake_backend.received == []

    @pytest.mark.asyncio
    async def test_concurrent_flushes_deliver_once(self, queue, fake_backend, monitor, questions):
        for _ in range(4):
            await queue.save(_attempt(questions))
        await asyncio.gather(monitor.set_online(True), queue.flush(), queue.flush())

        assert len(fake_backend.received) == 4
        assert len(set(fake_backend.received_ids)) == 4


class TestStorageUnavailable:
    @pytest.mark.asyncio
    async def test_falls_back_to_direct_delivery(self, tmp_path, fake_backend, questions):
        blocker = tmp_path / "blocker"
        blocker.write_text("file")
        sync_queue = SyncQueue(blocker / "certano.db", fake_backend.client())

        assert sync_queue.open() is False

        attempt = await sync_queue.save(_attempt(questions))

        assert attempt.synced is True
        assert fake_backend.received_ids == [attempt.id]
        assert sync_queue.pending() == []

    @pytest.mark.asyncio
    async def test_direct_delivery_failure_is_not_raised(self, tmp_path, questions):
        blocker = tmp_path / "blocker"
        blocker.write_text("file")
        client = BackendClient(
            BackendConfig(base_url="http://backend.test"),
            transport=httpx.MockTransport(lambda r: httpx.Response(500)),
        )
        sync_queue = SyncQueue(blocker / "certano.db", client)
        sync_queue.open()

        attempt = await sync_queue.save(_attempt(questions))

        assert attempt.synced is False


class TestStorageLostAfterOpen:
    @staticmethod
    def _break_store(sync_queue):
        sync_queue.db_path.unlink()
        sync_queue.db_path.mkdir()

    @pytest.mark.asyncio
    async def test_save_degrades_to_direct_delivery(self, queue, fake_backend, questions):
        self._break_store(queue)

        attempt = await queue.save(_attempt(questions))

        assert queue.available is False
        assert attempt.synced is True
        assert fake_backend.received_ids == [attempt.id]

    @pytest.mark.asyncio
    async def test_flush_reports_failure_instead_of_raising(self, queue, fake_backend, monitor, questions):
        await queue.save(_attempt(questions))
        self._break_store(queue)
        await monitor.set_online(True)

        result = await queue.flush()

        assert result.success is False
        assert queue.available is False
        assert fake_backend.received == []
        assert queue.pending_count() == 0
