"""Tests for the SQLite schema and repositories."""

from datetime import datetime, timedelta, timezone

import pytest

from certano.core.attempt import AnswerRecord, build_attempt
from certano.db.database import StorageUnavailableError, get_db, init_db
from certano.db.questions_repository import (
    count_questions,
    load_question_records,
    replace_questions,
)
from certano.db.results_repository import (
    count_pending,
    get_result,
    insert_result,
    list_pending,
    list_results,
    mark_synced,
)

START = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_path(tmp_path):
    return init_db(tmp_path / "db" / "certano.db")


def _attempt(questions, minutes: int = 0):
    answers = [AnswerRecord(question_id=questions[0].id, is_correct=True, time_spent=4)]
    return build_attempt(
        questions[:1],
        answers,
        start_time=START + timedelta(minutes=minutes),
        end_time=START + timedelta(minutes=minutes, seconds=30),
    )


class TestSchema:
    def test_init_creates_tables_and_indexes(self, db_path):
        with get_db(db_path) as conn:
            names = {
                row["name"]
                for row in conn.execute("SELECT name FROM sqlite_master").fetchall()
            }

        assert {"quiz_results", "offline_questions"} <= names
        assert "idx_quiz_results_synced" in names
        assert "idx_quiz_results_end_time" in names
        assert "idx_offline_questions_chapter" in names

    def test_init_is_idempotent(self, db_path):
        assert init_db(db_path) == db_path

    def test_unusable_location_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(StorageUnavailableError):
            init_db(blocker / "certano.db")


class TestResultsRepository:
    def test_insert_and_list_pending(self, db_path, questions):
        attempt = _attempt(questions)
        insert_result(db_path, attempt)

        pending = list_pending(db_path)
        assert [a.id for a in pending] == [attempt.id]
        assert pending[0].synced is False
        assert count_pending(db_path) == 1

    def test_mark_synced_removes_from_pending(self, db_path, questions):
        attempt = _attempt(questions)
        insert_result(db_path, attempt)

        assert mark_synced(db_path, attempt.id) is True
        assert list_pending(db_path) == []
        assert get_result(db_path, attempt.id).synced is True

    def test_mark_synced_unknown_id(self, db_path):
        assert mark_synced(db_path, "missing") is False

    def test_pending_ordered_oldest_first(self, db_path, questions):
        late = _attempt(questions, minutes=10)
        early = _attempt(questions, minutes=1)
        insert_result(db_path, late)
        insert_result(db_path, early)

        assert [a.id for a in list_pending(db_path)] == [early.id, late.id]
        assert [a.id for a in list_results(db_path)] == [late.id, early.id]
        assert len(list_results(db_path, limit=1)) == 1

    def test_unreadable_payload_is_skipped(self, db_path, questions):
        insert_result(db_path, _attempt(questions))
        with get_db(db_path) as conn:
            conn.execute(
                "INSERT INTO quiz_results (id, payload, start_time, end_time) "
                "VALUES ('broken', '{not json', 'x', 'y')"
            )

        assert len(list_pending(db_path)) == 1

    def test_get_missing_result(self, db_path):
        assert get_result(db_path, "nope") is None


class TestQuestionsRepository:
    def test_replace_snapshot(self, db_path, question_records):
        assert replace_questions(db_path, question_records) == len(question_records)
        assert replace_questions(db_path, question_records[:2]) == 2
        assert count_questions(db_path) == 2

    def test_filter_by_chapter(self, db_path, question_records):
        replace_questions(db_path, question_records)

        security = load_question_records(db_path, "Security")
        assert {r["id"] for r in security} == {"q-match", "q-fill", "q-open"}

    def test_records_without_id_are_skipped(self, db_path, mc_record):
        assert replace_questions(db_path, [mc_record, {"prompt": "x"}]) == 1
