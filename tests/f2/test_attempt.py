"""Tests for attempt records and scoring."""

import re
from datetime import datetime, timedelta, timezone

import pytest

from certano.core.attempt import (
    AnswerRecord,
    AttemptFormatError,
    QuizAttempt,
    accuracy_percent,
    build_attempt,
    chapter_label,
    compute_score,
    generate_result_id,
    performance_verdict,
)

START = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


def _answers(correct: int, total: int) -> list[AnswerRecord]:
    return [
        AnswerRecord(question_id=f"q{i}", is_correct=i < correct, time_spent=5)
        for i in range(total)
    ]


class TestScoring:
    """Tests for accuracy, XP and verdicts."""

    def test_seven_of_ten(self):
        score = compute_score(_answers(7, 10), total_questions=10)

        assert score.accuracy == 70
        assert score.xp == 70
        assert score.correct == 7
        assert score.answered == 10

    def test_nothing_answered(self):
        score = compute_score([], total_questions=10)
        assert score.accuracy == 0
        assert score.xp == 0

    def test_accuracy_rounds_half_up(self):
        assert accuracy_percent(1, 8) == 13  # 12.5
        assert accuracy_percent(2, 3) == 67
        assert accuracy_percent(1, 3) == 33

    def test_xp_per_correct_is_configurable(self):
        assert compute_score(_answers(3, 4), 4, xp_per_correct=20).xp == 60

    @pytest.mark.parametrize(
        "accuracy,verdict",
        [(100, "expert"), (96, "expert"), (95, "passed"), (70, "passed"),
         (69, "barely_passed"), (60, "barely_passed"), (59, "failed"), (0, "failed")],
    )
    def test_performance_verdict(self, accuracy, verdict):
        assert performance_verdict(accuracy) == verdict


class TestChapterLabel:
    def test_configured_chapter_wins(self, questions):
        assert chapter_label(questions, "Security") == "Security"

    def test_all_falls_back_to_single_question_chapter(self, questions):
        networking = [q for q in questions if q.chapter == "Networking"]
        assert chapter_label(networking, "all") == "Networking"

    def test_mixed_chapters_give_none(self, questions):
        assert chapter_label(questions, "all") is None


class TestQuizAttempt:
    def test_result_id_format(self):
        assert re.fullmatch(r"quiz_\d{13}_[a-z0-9]{9}", generate_result_id())

    def test_build_attempt(self, questions):
        attempt = build_attempt(
            questions[:2],
            _answers(1, 2),
            start_time=START,
            end_time=START + timedelta(seconds=90),
        )

        assert attempt.synced is False
        assert attempt.duration_seconds == 90
        assert attempt.score.total_questions == 2
        assert attempt.chapter == "Networking"
        assert attempt.questions[0]["id"] == "q-mc"

    def test_payload_uses_wire_names(self, questions):
        attempt = build_attempt(questions[:1], _answers(1, 1), START, START)
        payload = attempt.to_dict()

        assert payload["startTime"] == "2026-03-01T10:00:00+00:00"
        assert payload["totalQuestions"] == 1
        assert payload["answers"][0]["questionId"] == "q0"
        assert payload["score"]["accuracy"] == 100

    def test_from_dict_restores_attempt(self, questions):
        attempt = build_attempt(questions[:1], _answers(1, 1), START, START)
        restored = QuizAttempt.from_dict(attempt.to_dict())

        assert restored.id == attempt.id
        assert restored.start_time == START
        assert restored.score == attempt.score

    def test_from_dict_with_bare_score_recomputes(self):
        restored = QuizAttempt.from_dict(
            {
                "id": "quiz_1_abc",
                "answers": [
                    {"questionId": "a", "isCorrect": True, "timeSpent": 3},
                    {"questionId": "b", "isCorrect": False, "timeSpent": 3},
                ],
                "startTime": "2026-03-01T10:00:00Z",
                "endTime": "2026-03-01T10:01:00Z",
                "score": 1,
                "totalQuestions": 2,
            }
        )
        assert restored.score.correct == 1
        assert restored.score.accuracy == 50

    def test_from_dict_rejects_bad_timestamps(self):
        with pytest.raises(AttemptFormatError):
            QuizAttempt.from_dict(
                {"id": "x", "startTime": "yesterday", "endTime": "today"}
            )

    def test_from_dict_rejects_missing_id(self):
        with pytest.raises(AttemptFormatError):
            QuizAttempt.from_dict({"startTime": "2026-03-01T10:00:00Z"})
