"""Tests for the certano CLI (typer CliRunner)."""

import asyncio
import json
from datetime import datetime, timezone

import pytest
from typer.testing import CliRunner

from certano.cli import commands
from certano.cli.commands import app
from certano.config.app_config import load_app_config
from certano.core.attempt import AnswerRecord, build_attempt
from certano.core.context import QuizContext
from certano.core.stats import STATS_FILENAME, StatsStore
from certano.db.database import init_db
from certano.db.results_repository import insert_result

runner = CliRunner()

START = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def backend_context(monkeypatch, fake_backend):
    """Route every CLI context through the fake backend."""

    def _create_context(online=True, seed=None):
        return QuizContext.create(
            config=load_app_config(force_reload=True),
            client=fake_backend.client(),
            online=online,
        )

    monkeypatch.setattr(commands, "_create_context", _create_context)
    return fake_backend


@pytest.fixture
def pending_result(data_dir, questions):
    """One attempt stored locally and not yet delivered."""
    config = load_app_config()
    init_db(config.db_path)
    attempt = build_attempt(
        questions[:1],
        [AnswerRecord("q-mc", True, 4, chapter="Networking")],
        start_time=START,
        end_time=START,
    )
    insert_result(config.db_path, attempt)
    return attempt


class TestImportQuestions:
    def test_imports_list(self, data_dir, tmp_path, question_records):
        source = tmp_path / "questions.json"
        source.write_text(json.dumps(question_records), encoding="utf-8")

        result = runner.invoke(app, ["import-questions", str(source)])

        assert result.exit_code == 0, result.output
        assert f"{len(question_records)} questions imported" in result.output

    def test_imports_wrapped_object(self, data_dir, tmp_path, mc_record):
        source = tmp_path / "questions.json"
        source.write_text(json.dumps({"questions": [mc_record, {"prompt": "no id"}]}))

        result = runner.invoke(app, ["import-questions", str(source)])

        assert result.exit_code == 0
        assert "1 questions imported" in result.output
        assert "1 record(s) without id skipped" in result.output

    def test_missing_file(self, data_dir, tmp_path):
        result = runner.invoke(app, ["import-questions", str(tmp_path / "nope.json")])

        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_invalid_json(self, data_dir, tmp_path):
        source = tmp_path / "questions.json"
        source.write_text("{oops")

        result = runner.invoke(app, ["import-questions", str(source)])

        assert result.exit_code == 1
        assert "Invalid JSON" in result.output


class TestQuiz:
    @pytest.fixture
    def snapshot(self, data_dir, tmp_path, mc_record):
        source = tmp_path / "questions.json"
        source.write_text(json.dumps([mc_record]))
        runner.invoke(app, ["import-questions", str(source)])

    def test_offline_quiz_stores_result(self, snapshot, data_dir):
        result = runner.invoke(app, ["quiz", "--offline", "--seed", "1"], input="1\n")

        assert result.exit_code == 0, result.output
        assert "Question 1/1" in result.output
        assert "Result stored offline" in result.output

        pending = runner.invoke(app, ["pending"])
        assert "1 pending" in pending.output

        stats = runner.invoke(app, ["stats"])
        assert "Answered: 1" in stats.output

    def test_skip_disabled_prompts_again(self, snapshot, data_dir):
        result = runner.invoke(app, ["quiz", "--offline"], input="s\n1,3\n")

        assert result.exit_code == 0, result.output
        assert "Skipping is disabled" in result.output

    def test_skip_when_allowed(self, snapshot, data_dir):
        result = runner.invoke(app, ["quiz", "--offline", "--allow-skip"], input="s\n")

        assert result.exit_code == 0, result.output
        assert "Skipped" in result.output

    def test_invalid_option_number(self, snapshot, data_dir):
        result = runner.invoke(app, ["quiz", "--offline"], input="9\n1\n")

        assert result.exit_code == 0, result.output
        assert "Must be 1-4" in result.output

    def test_no_questions(self, data_dir):
        result = runner.invoke(app, ["quiz", "--offline"])

        assert result.exit_code == 1
        assert "import-questions" in result.output

    def test_online_quiz_delivers(self, backend_context, data_dir):
        result = runner.invoke(app, ["quiz", "-c", "Networking", "-n", "1"], input="1\n")

        assert result.exit_code == 0, result.output
        assert "Result delivered" in result.output
        assert len(backend_context.received) == 1


class TestSync:
    def test_delivers_pending(self, backend_context, pending_result):
        result = runner.invoke(app, ["sync"])

        assert result.exit_code == 0, result.output
        assert "Synced (1 delivered)" in result.output
        assert backend_context.received_ids == [pending_result.id]

    def test_unreachable_backend(self, backend_context, pending_result):
        backend_context.reachable = False

        result = runner.invoke(app, ["sync"])

        assert result.exit_code == 1
        assert "Backend unreachable" in result.output
        assert "1 result(s) remain pending" in result.output

    def test_rejected_results_remain(self, backend_context, pending_result):
        backend_context.accept = False

        result = runner.invoke(app, ["sync"])

        assert result.exit_code == 1
        assert "could not be delivered" in result.output

    @pytest.mark.asyncio
    async def test_watch_delivers_on_reconnect(self, backend_context, pending_result):
        context = commands._create_context(online=False)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(commands._watch(context, 0.01), timeout=0.2)

        assert backend_context.received_ids == [pending_result.id]
        assert context.sync_queue.pending_count() == 0

    def test_history_shows_synced_flag(self, backend_context, pending_result):
        before = runner.invoke(app, ["history"])
        assert "1 result(s), 1 pending" in before.output

        runner.invoke(app, ["sync"])

        after = runner.invoke(app, ["history"])
        assert after.exit_code == 0
        assert "1 result(s), 0 pending" in after.output

    def test_empty_history(self, data_dir):
        result = runner.invoke(app, ["history"])

        assert result.exit_code == 0
        assert "No quiz results yet" in result.output

    def test_nothing_pending(self, data_dir):
        result = runner.invoke(app, ["pending"])

        assert result.exit_code == 0
        assert "Nothing pending" in result.output


class TestFetchQuestions:
    def test_mirrors_backend(self, backend_context, data_dir, question_records):
        result = runner.invoke(app, ["fetch-questions"])

        assert result.exit_code == 0, result.output
        assert f"{len(question_records)} questions available offline" in result.output

    def test_unreachable(self, backend_context, data_dir):
        backend_context.reachable = False

        result = runner.invoke(app, ["fetch-questions"])

        assert result.exit_code == 1


class TestStatsCommands:
    def test_errors_listing(self, data_dir):
        stats = StatsStore.load(load_app_config().state_dir / STATS_FILENAME)
        stats.record_answer("q-tf", "Networking", False, 5, 2)

        result = runner.invoke(app, ["errors"])

        assert result.exit_code == 0
        assert "q-tf" in result.output

    def test_no_errors(self, data_dir):
        result = runner.invoke(app, ["errors", "-c", "Security"])

        assert result.exit_code == 0
        assert "No questions to review" in result.output

    def test_completed_quests_listed(self, data_dir):
        stats = StatsStore.load(load_app_config().state_dir / STATS_FILENAME)
        stats.complete_quest("daily-streak")

        result = runner.invoke(app, ["stats"])

        assert result.exit_code == 0
        assert "Completed quests: Streak Keeper" in result.output
