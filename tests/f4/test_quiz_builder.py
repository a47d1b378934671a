"""Tests for quiz configuration and question selection."""

import random

import pytest

from certano.config.app_config import QuizDefaults
from certano.core.quiz_builder import (
    EmptyQuizError,
    QuizConfig,
    build_error_review,
    build_quiz,
)


class TestQuizConfig:
    def test_from_defaults_applies_overrides(self):
        defaults = QuizDefaults(question_count=20, time_limit=600, allow_skip=True)

        config = QuizConfig.from_defaults(defaults, question_count=5, time_limit=None)

        assert config.question_count == 5
        assert config.time_limit == 600  # None override ignored
        assert config.allow_skip is True

    def test_chapters_property(self):
        assert QuizConfig().chapters == []
        assert QuizConfig(chapter="Security").chapters == ["Security"]
        assert QuizConfig(chapter=["all", "Networking"]).chapters == ["Networking"]


class TestBuildQuiz:
    def test_filters_by_chapter(self, questions):
        config = QuizConfig(chapter="Security", shuffle_questions=False)

        selected = build_quiz(questions, config)

        assert [q.id for q in selected] == ["q-match", "q-fill", "q-open"]

    def test_limits_question_count(self, questions):
        config = QuizConfig(question_count=2)

        assert len(build_quiz(questions, config, random.Random(1))) == 2

    def test_keeps_order_without_shuffle(self, questions):
        config = QuizConfig(shuffle_questions=False, shuffle_options=False)

        selected = build_quiz(questions, config)

        assert [q.id for q in selected] == [q.id for q in questions]
        assert [o.id for o in selected[0].options] == ["A", "B", "C", "D"]

    def test_seeded_shuffle_is_reproducible(self, questions):
        config = QuizConfig()

        first = build_quiz(questions, config, random.Random(7))
        second = build_quiz(questions, config, random.Random(7))

        assert [q.id for q in first] == [q.id for q in second]

    def test_shuffled_options_keep_correctness(self, mc_question):
        selected = build_quiz([mc_question], QuizConfig(), random.Random(3))

        assert selected[0].correct_option_ids == {"A", "C"}

    def test_unknown_chapter_raises(self, questions):
        with pytest.raises(EmptyQuizError):
            build_quiz(questions, QuizConfig(chapter="Databases"))

    def test_empty_pool_raises(self):
        with pytest.raises(EmptyQuizError):
            build_quiz([], QuizConfig())


class TestBuildErrorReview:
    def test_keeps_priority_order(self, questions):
        config = QuizConfig(shuffle_questions=False, chapter="Networking")

        selected = build_error_review(questions, ["q-open", "q-mc", "gone"], config)

        # Chapter filter does not apply to a review of missed questions
        assert [q.id for q in selected] == ["q-open", "q-mc"]

    def test_nothing_missed_raises(self, questions):
        with pytest.raises(EmptyQuizError):
            build_error_review(questions, [], QuizConfig())
