"""Learning statistics store.

Responsibilities:
- Aggregate counters per user and per chapter
- Track per-question errors for spaced-repetition review
- Daily / weekly quests and badge unlocks
- Attempt history for streaks and weekly progress

State persistence:
- data/state/quiz_stats_v1.json

The store is a plain object handed to whoever needs it (session,
CLI, web app). Every mutation persists immediately when a path is set;
persistence failures are logged and never raised.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Literal

import structlog

from certano.core.attempt import QuizAttempt, accuracy_percent
from certano.core.questions import ALL_CHAPTERS
from certano.utils.time_utils import parse_iso, utc_now

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

STATS_SCHEMA = "quiz_stats_v1"
STATS_FILENAME = "quiz_stats_v1.json"

XP_PER_LEVEL = 100
DEFAULT_WEEKLY_GOAL = 50

QuestType = Literal["daily", "weekly", "achievement"]


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class UserStats:
    """Aggregate counters for the user."""

    total_questions_answered: int = 0
    total_correct_answers: int = 0
    accuracy_rate: int = 0
    total_xp: int = 0
    current_level: int = 1
    current_streak: int = 0
    longest_streak: int = 0
    total_time_spent: float = 0.0  # minutes
    weekly_goal: int = DEFAULT_WEEKLY_GOAL
    weekly_progress: float = 0.0  # percent of weekly goal


@dataclass
class ChapterStats:
    """Counters for one chapter."""

    name: str
    total_questions: int = 0
    correct_answers: int = 0
    progress: int = 0
    last_practiced: str = ""


@dataclass
class QuestionError:
    """Error history of one question."""

    question_id: str
    chapter: str
    error_count: int = 0
    last_error_date: str = ""
    last_correct_date: str | None = None
    total_attempts: int = 0
    success_rate: int = 0


@dataclass
class QuestReward:
    xp: int
    badge: str | None = None


@dataclass
class Quest:
    """A daily, weekly or achievement goal."""

    id: str
    title: str
    description: str
    type: QuestType
    category: str
    target: int
    reward: QuestReward
    current_progress: int = 0
    is_completed: bool = False
    completed_at: str | None = None
    expires_at: str | None = None
    is_repeatable: bool = True


@dataclass
class Badge:
    id: str
    name: str
    description: str
    icon: str
    category: str
    rarity: str
    unlocked_at: str | None = None


@dataclass
class AttemptSummary:
    """Compact attempt entry kept for streaks and weekly numbers."""

    id: str
    date: str
    questions_answered: int
    correct_answers: int
    accuracy_rate: int
    xp_earned: int
    chapters: list[str] = field(default_factory=list)
    time_spent: int = 0  # seconds

    @classmethod
    def from_attempt(cls, attempt: QuizAttempt) -> AttemptSummary:
        chapters = sorted(
            {
                a.chapter
                for a in attempt.answers
                if a.chapter and a.chapter != ALL_CHAPTERS
            }
        )
        return cls(
            id=attempt.id,
            date=attempt.end_time.isoformat(),
            questions_answered=attempt.score.answered,
            correct_answers=attempt.score.correct,
            accuracy_rate=attempt.score.accuracy,
            xp_earned=attempt.score.xp,
            chapters=chapters,
            time_spent=attempt.duration_seconds,
        )


# =============================================================================
# CATALOGS
# =============================================================================


def _badge_catalog() -> list[Badge]:
    return [
        Badge("first-quiz", "First Steps", "Answer your first question", "🎯", "special", "common"),
        Badge("streak-3", "Streak Beginner", "Learn 3 days in a row", "🔥", "streak", "common"),
        Badge("streak-7", "Streak Master", "Learn 7 days in a row", "🔥🔥", "streak", "rare"),
        Badge("streak-30", "Streak Legend", "Learn 30 days in a row", "🔥🔥🔥", "streak", "epic"),
        Badge("accuracy-100", "Perfectionist", "Reach 100% accuracy", "💯", "accuracy", "rare"),
        Badge("level-5", "Experienced Learner", "Reach level 5", "⭐", "level", "common"),
        Badge("level-10", "Learning Expert", "Reach level 10", "⭐⭐", "level", "rare"),
        Badge("weekly-champion", "Weekly Champion", "Complete a weekly quest", "🏆", "special", "rare"),
        Badge("streak-master", "Streak Keeper", "Hold a 7-day streak", "👑", "streak", "epic"),
    ]


def _daily_quests(now: datetime) -> list[Quest]:
    expires = (now + timedelta(days=1)).isoformat()
    return [
        Quest("daily-questions", "Question Master", "Answer 10 questions today",
              "daily", "questions", 10, QuestReward(xp=50), expires_at=expires),
        Quest("daily-streak", "Streak Keeper", "Study today to keep your streak",
              "daily", "streak", 1, QuestReward(xp=30), expires_at=expires),
        Quest("daily-accuracy", "Precision", "Reach 80% accuracy in a quiz",
              "daily", "accuracy", 80, QuestReward(xp=40), expires_at=expires),
    ]


def _weekly_quests(now: datetime) -> list[Quest]:
    expires = (now + timedelta(days=7)).isoformat()
    return [
        Quest("weekly-questions", "Weekly Champion", "Answer 50 questions this week",
              "weekly", "questions", 50, QuestReward(xp=200, badge="weekly-champion"),
              expires_at=expires),
        Quest("weekly-streak", "Streak Master", "Hold a 7-day streak",
              "weekly", "streak", 7, QuestReward(xp=150, badge="streak-master"),
              expires_at=expires),
    ]


# =============================================================================
# HELPERS
# =============================================================================


def calculate_level(xp: int) -> int:
    """Every 100 XP is one level, starting at level 1."""
    return max(0, xp) // XP_PER_LEVEL + 1


def calculate_streak(dates: list[date], today: date) -> tuple[int, int]:
    """Consecutive-day streaks over the given activity dates.

    Returns:
        Tuple of (current, longest). The current streak counts back from
        today, or from yesterday when nothing happened today yet.
    """
    days = sorted(set(dates))
    if not days:
        return 0, 0

    longest = 1
    run = 1
    for previous, current in zip(days, days[1:]):
        run = run + 1 if current - previous == timedelta(days=1) else 1
        longest = max(longest, run)

    day_set = set(days)
    cursor = today if today in day_set else today - timedelta(days=1)
    current_streak = 0
    while cursor in day_set:
        current_streak += 1
        cursor -= timedelta(days=1)

    return current_streak, longest


def week_start(now: datetime) -> datetime:
    """Midnight of the Sunday starting the week containing ``now``."""
    days_since_sunday = (now.weekday() + 1) % 7
    start = now - timedelta(days=days_since_sunday)
    return start.replace(hour=0, minute=0, second=0, microsecond=0)


# =============================================================================
# STORE
# =============================================================================


class StatsStore:
    """State container for learning statistics."""

    def __init__(
        self,
        path: Path | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.path = path
        self._clock = clock
        self.user = UserStats()
        self.chapters: dict[str, ChapterStats] = {}
        self.question_errors: dict[str, QuestionError] = {}
        self.quests: list[Quest] = []
        self.badges: list[Badge] = []
        self.attempts: list[AttemptSummary] = []

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    @classmethod
    def load(
        cls,
        path: Path,
        clock: Callable[[], datetime] = utc_now,
    ) -> StatsStore:
        """Load the store from disk, or return a fresh one.

        A missing or corrupted file yields a fresh store with badges and
        quests initialized.
        """
        store = cls(path=path, clock=clock)

        if not path.exists():
            logger.debug("stats_state_not_found", path=str(path))
            store._seed()
            return store

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)

            if not isinstance(data, dict) or data.get("$schema") != STATS_SCHEMA:
                logger.warning(
                    "stats_state_invalid_schema",
                    expected=STATS_SCHEMA,
                    got=data.get("$schema") if isinstance(data, dict) else type(data).__name__,
                )
                store._seed()
                return store

            store.user = UserStats(**data.get("user", {}))
            store.chapters = {
                c["name"]: ChapterStats(**c) for c in data.get("chapters", [])
            }
            store.question_errors = {
                e["question_id"]: QuestionError(**e)
                for e in data.get("question_errors", [])
            }
            store.quests = [
                Quest(**{**q, "reward": QuestReward(**q["reward"])})
                for q in data.get("quests", [])
            ]
            store.badges = [Badge(**b) for b in data.get("badges", [])]
            store.attempts = [AttemptSummary(**a) for a in data.get("attempts", [])]

        except (json.JSONDecodeError, OSError, KeyError, TypeError, AttributeError) as e:
            logger.error("stats_state_load_failed", error=str(e))
            store = cls(path=path, clock=clock)
            store._seed()
            return store

        if not store.badges:
            store.badges = _badge_catalog()
        return store

    def _seed(self) -> None:
        self.badges = _badge_catalog()
        now = self._clock()
        self.quests = _daily_quests(now) + _weekly_quests(now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "$schema": STATS_SCHEMA,
            "user": asdict(self.user),
            "chapters": [asdict(c) for c in self.chapters.values()],
            "question_errors": [asdict(e) for e in self.question_errors.values()],
            "quests": [asdict(q) for q in self.quests],
            "badges": [asdict(b) for b in self.badges],
            "attempts": [asdict(a) for a in self.attempts],
        }

    def save(self) -> Path | None:
        """Persist to disk (no-op for in-memory stores)."""
        if self.path is None:
            return None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error("stats_state_save_failed", path=str(self.path), error=str(e))
            return None
        return self.path

    # -------------------------------------------------------------------------
    # Per-answer updates
    # -------------------------------------------------------------------------

    def record_answer(
        self,
        question_id: str,
        chapter: str | None,
        is_correct: bool,
        xp_earned: int,
        time_spent: float,
        session_accuracy: int | None = None,
    ) -> None:
        """Apply every per-answer update and persist once."""
        self._update_user_stats(is_correct, xp_earned, time_spent)
        if chapter and chapter != ALL_CHAPTERS:
            self._update_chapter_stats(chapter, is_correct)
        self._track_question_error(question_id, chapter or "", is_correct)
        self._increment_quest("daily-questions", 1)
        self._increment_quest("weekly-questions", 1)
        if is_correct and session_accuracy is not None:
            self._set_quest_progress("daily-accuracy", session_accuracy)
        self.save()

        logger.debug(
            "answer_recorded_in_stats",
            question_id=question_id,
            chapter=chapter,
            is_correct=is_correct,
            total_xp=self.user.total_xp,
        )

    def _update_user_stats(self, correct: bool, xp_earned: int, time_spent: float) -> None:
        user = self.user
        user.total_questions_answered += 1
        user.total_correct_answers += 1 if correct else 0
        user.total_xp += xp_earned
        user.total_time_spent += time_spent / 60
        user.accuracy_rate = accuracy_percent(
            user.total_correct_answers, user.total_questions_answered
        )
        user.current_level = calculate_level(user.total_xp)

        if user.total_questions_answered == 1:
            self._unlock("first-quiz")
        if user.current_level >= 5:
            self._unlock("level-5")
        if user.current_level >= 10:
            self._unlock("level-10")
        if user.accuracy_rate >= 100:
            self._unlock("accuracy-100")

    def _update_chapter_stats(self, chapter: str, correct: bool) -> None:
        stats = self.chapters.get(chapter)
        if stats is None:
            stats = ChapterStats(name=chapter)
            self.chapters[chapter] = stats
        stats.total_questions += 1
        stats.correct_answers += 1 if correct else 0
        stats.progress = accuracy_percent(stats.correct_answers, stats.total_questions)
        stats.last_practiced = self._clock().isoformat()

    def _track_question_error(self, question_id: str, chapter: str, is_correct: bool) -> None:
        now = self._clock().isoformat()
        entry = self.question_errors.get(question_id)
        if entry is None:
            entry = QuestionError(question_id=question_id, chapter=chapter, last_error_date=now)
            self.question_errors[question_id] = entry

        entry.total_attempts += 1
        if is_correct:
            entry.last_correct_date = now
        else:
            entry.error_count += 1
            entry.last_error_date = now
        entry.success_rate = accuracy_percent(
            entry.total_attempts - entry.error_count, entry.total_attempts
        )

    # -------------------------------------------------------------------------
    # Attempts
    # -------------------------------------------------------------------------

    def add_attempt(self, attempt: QuizAttempt | AttemptSummary) -> AttemptSummary:
        """Record a finished attempt for streaks and weekly numbers.

        Answer counters and XP were already counted per answer and are
        not added again.
        """
        summary = (
            AttemptSummary.from_attempt(attempt)
            if isinstance(attempt, QuizAttempt)
            else attempt
        )
        if any(a.id == summary.id for a in self.attempts):
            return summary

        self.attempts.insert(0, summary)
        now = self._clock()

        activity_days = [
            d.date() for d in (parse_iso(a.date) for a in self.attempts) if d is not None
        ]
        current, longest = calculate_streak(activity_days, now.date())
        self.user.current_streak = current
        self.user.longest_streak = max(self.user.longest_streak, longest)
        self.user.weekly_progress = self._weekly_progress(now)

        for threshold in (3, 7, 30):
            if current >= threshold:
                self._unlock(f"streak-{threshold}")

        if current >= 1:
            self._set_quest_progress("daily-streak", 1)
        self._set_quest_progress("weekly-streak", current)
        self.save()

        logger.info(
            "attempt_added_to_stats",
            attempt_id=summary.id,
            current_streak=current,
            weekly_progress=self.user.weekly_progress,
        )
        return summary

    def weekly_attempts(self) -> list[AttemptSummary]:
        """Attempts since the start of the current week (Sunday)."""
        start = week_start(self._clock())
        result = []
        for attempt in self.attempts:
            when = parse_iso(attempt.date)
            if when is not None and when >= start:
                result.append(attempt)
        return result

    def _weekly_progress(self, now: datetime) -> float:
        goal = self.user.weekly_goal or DEFAULT_WEEKLY_GOAL
        questions = sum(a.questions_answered for a in self.weekly_attempts())
        return min(questions / goal * 100, 100.0)

    def chapter_progress(self, chapter: str) -> ChapterStats | None:
        return self.chapters.get(chapter)

    # -------------------------------------------------------------------------
    # Spaced repetition
    # -------------------------------------------------------------------------

    def error_questions(
        self,
        chapter: str | None = None,
        limit: int | None = None,
    ) -> list[QuestionError]:
        """Questions with errors, most errors first, then most recent error."""
        errors = [e for e in self.question_errors.values() if e.error_count > 0]
        if chapter and chapter != ALL_CHAPTERS:
            errors = [e for e in errors if e.chapter == chapter]

        errors.sort(key=lambda e: e.last_error_date, reverse=True)
        errors.sort(key=lambda e: e.error_count, reverse=True)

        if limit:
            errors = errors[:limit]
        return errors

    def error_question_ids_for_quiz(
        self,
        chapter: str | None = None,
        question_count: int = 10,
    ) -> list[str]:
        return [e.question_id for e in self.error_questions(chapter)][:question_count]

    # -------------------------------------------------------------------------
    # Quests and badges
    # -------------------------------------------------------------------------

    def generate_daily_quests(self) -> None:
        self.quests = [q for q in self.quests if q.type != "daily"] + _daily_quests(self._clock())
        self.save()

    def generate_weekly_quests(self) -> None:
        self.quests = [q for q in self.quests if q.type != "weekly"] + _weekly_quests(self._clock())
        self.save()

    def refresh_quests(self) -> bool:
        """Regenerate the daily or weekly set once all of its quests expired.

        Returns:
            True if a set was regenerated
        """
        now = self._clock()
        refreshed = False
        for quest_type, generate in (
            ("daily", self.generate_daily_quests),
            ("weekly", self.generate_weekly_quests),
        ):
            expiries = [parse_iso(q.expires_at) for q in self.quests if q.type == quest_type]
            if all(e is not None and e <= now for e in expiries):
                generate()
                refreshed = True
                logger.info("quests_regenerated", quest_type=quest_type)
        return refreshed

    def update_quest_progress(self, quest_id: str, progress: int) -> None:
        """Set a quest's progress; reaching the target completes it."""
        self._set_quest_progress(quest_id, progress)
        self.save()

    def complete_quest(self, quest_id: str) -> bool:
        """Mark a quest complete and grant its reward once."""
        quest = self._quest(quest_id)
        if quest is None or quest.is_completed:
            return False
        self._finish_quest(quest)
        self.save()
        return True

    def unlock_badge(self, badge_id: str) -> bool:
        unlocked = self._unlock(badge_id)
        if unlocked:
            self.save()
        return unlocked

    def active_quests(self) -> list[Quest]:
        now = self._clock()
        result = []
        for quest in self.quests:
            if quest.is_completed:
                continue
            expires = parse_iso(quest.expires_at)
            if expires is None or expires > now:
                result.append(quest)
        return result

    def completed_quests(self) -> list[Quest]:
        return [q for q in self.quests if q.is_completed]

    def unlocked_badges(self) -> list[Badge]:
        return [b for b in self.badges if b.unlocked_at]

    def _quest(self, quest_id: str) -> Quest | None:
        return next((q for q in self.quests if q.id == quest_id), None)

    def _set_quest_progress(self, quest_id: str, progress: int) -> None:
        quest = self._quest(quest_id)
        if quest is None:
            return
        quest.current_progress = progress
        if progress >= quest.target and not quest.is_completed:
            self._finish_quest(quest)

    def _increment_quest(self, quest_id: str, amount: int) -> None:
        quest = self._quest(quest_id)
        if quest is not None:
            self._set_quest_progress(quest_id, quest.current_progress + amount)

    def _finish_quest(self, quest: Quest) -> None:
        quest.is_completed = True
        quest.completed_at = self._clock().isoformat()
        self.user.total_xp += quest.reward.xp
        self.user.current_level = calculate_level(self.user.total_xp)
        if quest.reward.badge:
            self._unlock(quest.reward.badge)
        logger.info("quest_completed", quest_id=quest.id, reward_xp=quest.reward.xp)

    def _unlock(self, badge_id: str) -> bool:
        for badge in self.badges:
            if badge.id == badge_id:
                if badge.unlocked_at:
                    return False
                badge.unlocked_at = self._clock().isoformat()
                logger.info("badge_unlocked", badge_id=badge_id)
                return True
        return False

    # -------------------------------------------------------------------------
    # Reset
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """Drop all statistics and start fresh."""
        self.user = UserStats()
        self.chapters = {}
        self.question_errors = {}
        self.attempts = []
        self._seed()
        self.save()
        logger.info("stats_reset")
