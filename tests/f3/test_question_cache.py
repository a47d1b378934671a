"""Tests for the offline question snapshot and source selection."""

import pytest

from certano.core.question_cache import QuestionCache, load_questions


@pytest.fixture
def cache(tmp_path):
    question_cache = QuestionCache(tmp_path / "db" / "certano.db")
    question_cache.open()
    return question_cache


class TestQuestionCache:
    def test_snapshot_round_trip(self, cache, question_records):
        cache.save_offline_questions(question_records)

        loaded = cache.load_offline_questions()
        assert [q.id for q in loaded] == [r["id"] for r in question_records]

    def test_chapter_filter(self, cache, question_records):
        cache.save_offline_questions(question_records)

        assert {q.chapter for q in cache.load_offline_questions("Security")} == {"Security"}
        assert len(cache.load_offline_questions("all")) == len(question_records)

    def test_legacy_records_are_normalized(self, cache):
        cache.save_offline_questions(
            [{"id": "old", "options": {"options": ["A", "B"], "correct": "B"}}]
        )
        question = cache.load_offline_questions()[0]
        assert question.correct_option_ids == {"option-1"}

    def test_unavailable_cache_is_empty(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file")
        unavailable = QuestionCache(blocker / "certano.db")

        assert unavailable.open() is False
        assert unavailable.save_offline_questions([{"id": "a"}]) == 0
        assert unavailable.load_offline_questions() == []


class TestLoadQuestions:
    @pytest.mark.asyncio
    async def test_online_fetch_mirrors_snapshot(self, cache, fake_backend, question_records):
        async with fake_backend.client() as client:
            questions = await load_questions(client, cache, online=True)

        assert len(questions) == len(question_records)
        assert cache.count() == len(question_records)

    @pytest.mark.asyncio
    async def test_offline_reads_snapshot(self, cache, fake_backend, mc_record):
        cache.save_offline_questions([mc_record])
        async with fake_backend.client() as client:
            questions = await load_questions(client, cache, online=False)

        assert [q.id for q in questions] == ["q-mc"]

    @pytest.mark.asyncio
    async def test_failed_fetch_falls_back_to_snapshot(self, cache, fake_backend, mc_record):
        cache.save_offline_questions([mc_record])
        fake_backend.reachable = False
        async with fake_backend.client() as client:
            questions = await load_questions(client, cache, online=True)

        assert [q.id for q in questions] == ["q-mc"]
