"""Quiz session sequencer.

Drives one quiz through its questions:

    PRESENTING(i) --submit--> REVEALED(i)
    PRESENTING(i) --submit--> AWAITING_SELF_ASSESSMENT(i) --self_assess--> REVEALED(i)
    REVEALED(i) --next / auto-advance--> PRESENTING(i+1) ... --> COMPLETED

Responsibilities:
- Grade submissions and record one AnswerRecord per question
- Auto-advance after an answer (not for image questions)
- Optional quiz time limit
- Fire-and-forget stats updates after every recorded answer
- Build the QuizAttempt on completion and hand it to on_complete

Timers are CancellableTimer handles owned by the session. Every
transition bumps a generation counter; a timer callback that fires for an
older generation does nothing.
"""

from __future__ import annotations

import inspect
import time
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable

import structlog

from certano.core.attempt import (
    XP_PER_CORRECT,
    AnswerRecord,
    QuizAttempt,
    accuracy_percent,
    build_attempt,
)
from certano.core.grader import (
    Grade,
    Submission,
    apply_self_assessment,
    grade_answer,
    skipped_grade,
)
from certano.core.questions import Question
from certano.core.quiz_builder import EmptyQuizError, QuizConfig
from certano.core.stats import StatsStore
from certano.core.timers import CancellableTimer, defer
from certano.utils.time_utils import utc_now

logger = structlog.get_logger(__name__)

XP_PER_INCORRECT = 5

OnComplete = Callable[[QuizAttempt], "Awaitable[Any] | Any"]


class SessionState(str, Enum):
    PRESENTING = "presenting"
    AWAITING_SELF_ASSESSMENT = "awaiting_self_assessment"
    REVEALED = "revealed"
    COMPLETED = "completed"


class SessionStateError(Exception):
    """Operation not allowed in the current session state."""

    pass


class QuizSession:
    """State machine for one quiz run."""

    def __init__(
        self,
        questions: list[Question],
        config: QuizConfig | None = None,
        on_complete: OnComplete | None = None,
        stats: StatsStore | None = None,
        xp_per_correct: int = XP_PER_CORRECT,
        xp_per_incorrect: int = XP_PER_INCORRECT,
        clock: Callable[[], datetime] = utc_now,
        session_id: str | None = None,
    ):
        if not questions:
            raise EmptyQuizError("A quiz needs at least one question")

        self.id = session_id or uuid.uuid4().hex
        self.questions = list(questions)
        self.config = config or QuizConfig()
        self.on_complete = on_complete
        self.stats = stats
        self.xp_per_correct = xp_per_correct
        self.xp_per_incorrect = xp_per_incorrect
        self._clock = clock

        self.state = SessionState.PRESENTING
        self.index = 0
        self.answers: list[AnswerRecord] = []
        self.grades: dict[str, Grade] = {}
        self.start_time: datetime = clock()
        self.attempt: QuizAttempt | None = None

        self._started = False
        self._generation = 0
        self._question_started = time.monotonic()
        self._pending_grade: Grade | None = None
        self._pending_submission: Submission | None = None
        self._advance_timer: CancellableTimer | None = None
        self._limit_timer: CancellableTimer | None = None

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def current_question(self) -> Question | None:
        if self.state is SessionState.COMPLETED:
            return None
        return self.questions[self.index]

    @property
    def is_completed(self) -> bool:
        return self.state is SessionState.COMPLETED

    @property
    def last_grade(self) -> Grade | None:
        question = self.questions[self.index]
        return self.grades.get(question.id) or self._pending_grade

    @property
    def time_remaining(self) -> float | None:
        """Seconds left on the quiz time limit, None without a limit."""
        if self._limit_timer is None or self.is_completed:
            return None
        return self._limit_timer.remaining

    @property
    def auto_advance_pending(self) -> bool:
        return self._advance_timer is not None and self._advance_timer.active

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the clock (and the time limit, if any)."""
        if self._started:
            return
        self._started = True
        self.start_time = self._clock()
        self._question_started = time.monotonic()
        self._start_limit_timer()
        logger.info(
            "quiz_session_started",
            session_id=self.id,
            question_count=len(self.questions),
            time_limit=self.config.time_limit,
        )

    async def restart(self) -> None:
        """Cancel timers, drop answers and go back to the first question."""
        self._cancel_timers()
        self._generation += 1
        self.state = SessionState.PRESENTING
        self.index = 0
        self.answers = []
        self.grades = {}
        self.attempt = None
        self._pending_grade = None
        self._pending_submission = None
        self.start_time = self._clock()
        self._question_started = time.monotonic()
        self._start_limit_timer()
        logger.info("quiz_session_restarted", session_id=self.id)

    async def finish(self) -> QuizAttempt:
        """End the quiz now with the answers recorded so far."""
        if self.attempt is not None:
            return self.attempt
        return await self._complete(reason="finished")

    async def settle(self) -> None:
        """Wait until a time limit that already ran out has completed the session."""
        timer = self._limit_timer
        if timer is not None and not timer.cancelled and timer.remaining == 0.0:
            await timer.wait()

    def close(self) -> None:
        """Cancel timers of an abandoned session."""
        self._cancel_timers()
        self._generation += 1

    # -------------------------------------------------------------------------
    # Answering
    # -------------------------------------------------------------------------

    async def submit(self, submission: Submission) -> Grade:
        """Grade and record the answer to the current question.

        Self-assessed questions move to AWAITING_SELF_ASSESSMENT and
        record nothing until self_assess() is called.

        Raises:
            SessionStateError: If the current question is not being presented
        """
        self._require(SessionState.PRESENTING, "submit")
        question = self.questions[self.index]
        grade = grade_answer(question, submission)

        if grade.awaiting_self_assessment:
            self._pending_grade = grade
            self._pending_submission = submission
            self.state = SessionState.AWAITING_SELF_ASSESSMENT
            logger.debug("awaiting_self_assessment", session_id=self.id, question_id=question.id)
            return grade

        self._record(question, grade, submission)
        return grade

    async def self_assess(self, correct: bool) -> Grade:
        """Record the user's own verdict for an open question.

        Raises:
            SessionStateError: If no self-assessment is pending
        """
        self._require(SessionState.AWAITING_SELF_ASSESSMENT, "self_assess")
        if self._pending_grade is None:
            raise SessionStateError("No answer is waiting for self-assessment")
        question = self.questions[self.index]
        grade = apply_self_assessment(self._pending_grade, correct)
        submission = self._pending_submission or Submission()
        self._pending_grade = None
        self._pending_submission = None
        self._record(question, grade, submission)
        return grade

    async def skip(self) -> Grade:
        """Record the current question as skipped and move on.

        Raises:
            SessionStateError: If skipping is disabled or the question
                was already answered
        """
        if not self.config.allow_skip:
            raise SessionStateError("Skipping is disabled for this quiz")
        self._require(SessionState.PRESENTING, "skip")
        question = self.questions[self.index]
        grade = skipped_grade(question)
        self._record(question, grade, Submission(), time_spent=0, schedule_advance=False)
        await self._advance()
        return grade

    async def next(self) -> None:
        """Move to the next question, completing the quiz after the last one.

        Raises:
            SessionStateError: If the current question has not been answered
        """
        self._require(SessionState.REVEALED, "next")
        await self._advance()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require(self, state: SessionState, operation: str) -> None:
        if self.state is not state:
            raise SessionStateError(
                f"Cannot {operation} while session is {self.state.value}"
            )

    def _record(
        self,
        question: Question,
        grade: Grade,
        submission: Submission,
        time_spent: int | None = None,
        schedule_advance: bool = True,
    ) -> AnswerRecord:
        if time_spent is None:
            time_spent = int(time.monotonic() - self._question_started)

        answer = AnswerRecord(
            question_id=question.id,
            is_correct=bool(grade.is_correct),
            time_spent=time_spent,
            answered_at=self._clock().isoformat(),
            selected_options=list(submission.selected_options),
            user_answer=submission.user_answer,
            fill_blank_answers=list(submission.fill_blank_answers),
            matching_selections=dict(submission.matching_selections) or None,
            chapter=question.chapter or None,
        )
        self.answers.append(answer)
        self.grades[question.id] = grade
        self.state = SessionState.REVEALED

        logger.info(
            "answer_recorded",
            session_id=self.id,
            question_id=question.id,
            index=self.index,
            is_correct=answer.is_correct,
            grading_path=grade.grading_path,
        )

        if self.stats is not None:
            defer(self._update_stats, answer)

        if schedule_advance and question.auto_advances:
            self._schedule_auto_advance()

        return answer

    def _update_stats(self, answer: AnswerRecord) -> None:
        if self.stats is None:
            return
        correct = sum(1 for a in self.answers if a.is_correct)
        self.stats.record_answer(
            question_id=answer.question_id,
            chapter=answer.chapter,
            is_correct=answer.is_correct,
            xp_earned=self.xp_per_correct if answer.is_correct else self.xp_per_incorrect,
            time_spent=answer.time_spent,
            session_accuracy=accuracy_percent(correct, len(self.answers)),
        )

    def _schedule_auto_advance(self) -> None:
        delay = self.config.auto_advance_seconds
        if delay is None or delay <= 0:
            return
        if self._advance_timer is not None:
            self._advance_timer.cancel()
        generation = self._generation
        self._advance_timer = CancellableTimer(
            delay,
            lambda: self._auto_advance(generation),
            name=f"auto_advance:{self.id}",
        ).start()

    async def _auto_advance(self, generation: int) -> None:
        if generation != self._generation or self.state is not SessionState.REVEALED:
            return
        logger.debug("auto_advance", session_id=self.id, index=self.index)
        await self._advance()

    async def _advance(self) -> None:
        self._generation += 1
        if self._advance_timer is not None:
            self._advance_timer.cancel()
            self._advance_timer = None

        if self.index < len(self.questions) - 1:
            self.index += 1
            self.state = SessionState.PRESENTING
            self._question_started = time.monotonic()
            return

        await self._complete(reason="last_question")

    def _start_limit_timer(self) -> None:
        if not self.config.time_limit:
            return
        self._limit_timer = CancellableTimer(
            self.config.time_limit,
            self._time_expired,
            name=f"time_limit:{self.id}",
        ).start()

    async def _time_expired(self) -> None:
        if self.attempt is not None:
            return
        logger.info("quiz_time_expired", session_id=self.id, answered=len(self.answers))
        await self._complete(reason="time_limit")

    def _cancel_timers(self) -> None:
        for timer in (self._advance_timer, self._limit_timer):
            if timer is not None:
                timer.cancel()
        self._advance_timer = None
        self._limit_timer = None

    async def _complete(self, reason: str) -> QuizAttempt:
        # Handles stay set so settle() can wait on a running time-limit callback
        for timer in (self._advance_timer, self._limit_timer):
            if timer is not None:
                timer.cancel()
        self._generation += 1
        self.state = SessionState.COMPLETED
        self._pending_grade = None
        self._pending_submission = None

        attempt = build_attempt(
            questions=self.questions,
            answers=self.answers,
            start_time=self.start_time,
            end_time=self._clock(),
            configured_chapter=self.config.chapter,
            xp_per_correct=self.xp_per_correct,
        )
        self.attempt = attempt

        logger.info(
            "quiz_session_completed",
            session_id=self.id,
            result_id=attempt.id,
            reason=reason,
            answered=attempt.score.answered,
            accuracy=attempt.score.accuracy,
        )

        if self.stats is not None:
            defer(self.stats.add_attempt, attempt)

        if self.on_complete is not None:
            result = self.on_complete(attempt)
            if inspect.isawaitable(result):
                await result

        return attempt

