"""State machine for one timed attempt at one quest level."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from threading import RLock
from typing import Callable, Sequence
from uuid import uuid4

from quest_app.constants.quest_constants import (
    FEEDBACK_DWELL_SECONDS,
    OPTIONS_PER_QUESTION,
    QUESTION_TIME_LIMIT_SECONDS,
    TICK_INTERVAL_SECONDS,
)
from quest_app.core import progression
from quest_app.core.errors import InvalidSessionError, InvalidStateError
from quest_app.core.models import (
    TIMEOUT_ANSWER,
    Question,
    QuestionFeedback,
    QuestLevelResult,
    SessionPhase,
    SessionSnapshot,
)
from quest_app.core.services.session_scheduler import ScheduledTask, SessionScheduler

logger = logging.getLogger(__name__)


class QuizSession:
    """Drives question sequencing, the per-question countdown, feedback and scoring.

    Without a scheduler the caller drives ``tick`` and ``advance`` itself. With
    one, the session runs its own one-second ticker while awaiting an answer and
    a single dwell timer per feedback window that advances automatically. Every
    scheduled task is cancelled by ``dispose``.

    ``on_complete`` fires once, while the session lock is still held. A caller
    that shares its lock with the session therefore persists the outcome before
    any other thread can observe the completed phase.
    """

    def __init__(
        self,
        topic: str,
        level: int,
        questions: Sequence[Question],
        *,
        scheduler: SessionScheduler | None = None,
        on_complete: Callable[[QuizSession], None] | None = None,
        lock: RLock | None = None,
        session_id: str | None = None,
        time_limit_seconds: int = QUESTION_TIME_LIMIT_SECONDS,
        feedback_dwell_seconds: float = FEEDBACK_DWELL_SECONDS,
        tick_interval_seconds: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        if not questions:
            raise InvalidSessionError("A quiz session needs at least one question.")
        try:
            progression.validate_quest_level(level)
        except ValueError as exc:
            raise InvalidSessionError(str(exc)) from exc
        for question in questions:
            _validate_question(question)

        self.session_id = session_id or uuid4().hex
        self.topic = topic
        self.level = level
        self._questions: tuple[Question, ...] = tuple(questions)
        self._scheduler = scheduler
        self._on_complete = on_complete
        self._lock = lock if lock is not None else RLock()
        self._time_limit = time_limit_seconds
        self._feedback_dwell = feedback_dwell_seconds
        self._tick_interval = tick_interval_seconds

        self._current_index = 0
        self._answers: dict[int, int] = {}
        self._auto_answered: set[int] = set()
        self._phase = SessionPhase.AWAITING_ANSWER
        self._time_remaining = time_limit_seconds
        self._feedback: QuestionFeedback | None = None
        self._score: int | None = None
        self._passed: bool | None = None
        self._disposed = False
        self._started_at = datetime.now(timezone.utc)
        self._completed_at: datetime | None = None

        self._tick_task: ScheduledTask | None = None
        self._dwell_task: ScheduledTask | None = None

        with self._lock:
            self._start_countdown()

    # --- State accessors ---

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def time_remaining_seconds(self) -> int:
        return self._time_remaining

    @property
    def score(self) -> int | None:
        return self._score

    @property
    def passed(self) -> bool | None:
        return self._passed

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def get_question_count(self) -> int:
        return len(self._questions)

    def get_current_question(self) -> Question | None:
        with self._lock:
            if self._phase is SessionPhase.COMPLETED:
                return None
            return self._questions[self._current_index]

    def get_answers(self) -> dict[int, int]:
        with self._lock:
            return dict(self._answers)

    def get_answer_list(self) -> list[int]:
        with self._lock:
            return [self._answers[index] for index in sorted(self._answers)]

    def get_feedback(self) -> QuestionFeedback | None:
        with self._lock:
            return self._feedback

    def is_auto_answered(self, index: int) -> bool:
        with self._lock:
            return index in self._auto_answered

    def get_correct_count(self) -> int:
        with self._lock:
            return sum(
                1
                for index, answer in self._answers.items()
                if answer != TIMEOUT_ANSWER and answer == self._questions[index].correct_option_index
            )

    def get_started_at(self) -> datetime:
        return self._started_at

    def get_completed_at(self) -> datetime | None:
        return self._completed_at

    def snapshot(self, result: QuestLevelResult | None = None) -> SessionSnapshot:
        """Read every field in one critical section so no transition can interleave."""
        with self._lock:
            return SessionSnapshot(
                session_id=self.session_id,
                topic=self.topic,
                level=self.level,
                phase=self._phase,
                question_index=self._current_index,
                question_count=len(self._questions),
                time_remaining_seconds=self._time_remaining,
                question=self.get_current_question(),
                feedback=self._feedback,
                answers=self.get_answer_list(),
                auto_answered=sorted(self._auto_answered),
                score=self._score,
                passed=self._passed,
                started_at=self._started_at,
                completed_at=self._completed_at,
                result=result,
            )

    # --- Transitions ---

    def tick(self) -> None:
        """Count one elapsed second; at zero the question is auto-answered as a timeout."""
        with self._lock:
            self._tick_locked()

    def select_answer(self, option_index: int) -> QuestionFeedback:
        """Lock in an answer for the current question and enter the feedback window."""
        with self._lock:
            self._ensure_live()
            if self._phase is not SessionPhase.AWAITING_ANSWER:
                raise InvalidStateError(
                    f"Cannot select an answer while the session is {self._phase.value}."
                )
            if (
                isinstance(option_index, bool)
                or not isinstance(option_index, int)
                or not 0 <= option_index < OPTIONS_PER_QUESTION
            ):
                raise InvalidStateError(
                    f"Option index must be between 0 and {OPTIONS_PER_QUESTION - 1}, got {option_index!r}."
                )
            return self._lock_in(option_index, auto_answered=False)

    def advance(self) -> None:
        """Leave the feedback window: move to the next question or complete the session."""
        with self._lock:
            self._ensure_live()
            if self._advance_locked():
                self._notify_complete()

    def dispose(self) -> None:
        """Cancel every scheduled task. The session is discarded, not persisted."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            self._cancel_tick()
            self._cancel_dwell()
            logger.info(
                "Session %s disposed in phase %s at question %d/%d",
                self.session_id,
                self._phase.value,
                self._current_index,
                len(self._questions),
            )

    # --- Scoring ---

    def rescore(self) -> int:
        """Percentage of correct answers, rounded half up. Pure with respect to the answers."""
        total = len(self._questions)
        correct = self.get_correct_count()
        return (200 * correct + total) // (2 * total)

    def build_result(self, current_exp: int, current_level: int) -> QuestLevelResult:
        """Combine the completed score with the caller's EXP snapshot."""
        with self._lock:
            if self._phase is not SessionPhase.COMPLETED or self._score is None:
                raise InvalidStateError("Results are only available once the session is completed.")
            score = self._score
            passed = bool(self._passed)
        exp_awarded = progression.compute_exp_award(self.level, score, passed)
        update = progression.apply_exp(current_exp, current_level, exp_awarded)
        return QuestLevelResult(
            topic=self.topic,
            level=self.level,
            score=score,
            passed=passed,
            exp_awarded=exp_awarded,
            leveled_up=update.leveled_up,
            new_level=update.new_level,
            new_exp=update.new_exp,
            next_level_unlocked=progression.next_level_unlocked(self.level, passed),
            topic_mastered=progression.is_topic_mastered(self.level, passed),
        )

    # --- Internals (caller holds the lock) ---

    def _ensure_live(self) -> None:
        if self._disposed:
            raise InvalidStateError("Session has been disposed.")

    def _tick_locked(self) -> None:
        if self._disposed or self._phase is not SessionPhase.AWAITING_ANSWER:
            return
        self._time_remaining = max(0, self._time_remaining - 1)
        if self._time_remaining == 0:
            logger.debug(
                "Session %s question %d timed out", self.session_id, self._current_index
            )
            self._lock_in(TIMEOUT_ANSWER, auto_answered=True)

    def _lock_in(self, option_index: int, *, auto_answered: bool) -> QuestionFeedback:
        index = self._current_index
        question = self._questions[index]
        self._answers[index] = option_index
        if auto_answered:
            self._auto_answered.add(index)
        is_correct = not auto_answered and option_index == question.correct_option_index
        self._feedback = QuestionFeedback(
            question_index=index,
            selected_option_index=option_index,
            correct_option_index=question.correct_option_index,
            is_correct=is_correct,
            auto_answered=auto_answered,
            explanation=question.explanation,
        )
        self._phase = SessionPhase.SHOWING_FEEDBACK
        self._cancel_tick()
        self._schedule_dwell()
        return self._feedback

    def _advance_locked(self) -> bool:
        if self._phase is not SessionPhase.SHOWING_FEEDBACK:
            raise InvalidStateError(
                f"Cannot advance while the session is {self._phase.value}."
            )
        self._cancel_dwell()
        self._feedback = None
        if self._current_index + 1 < len(self._questions):
            self._current_index += 1
            self._time_remaining = self._time_limit
            self._phase = SessionPhase.AWAITING_ANSWER
            self._start_countdown()
            return False

        self._current_index = len(self._questions)
        self._score = self.rescore()
        self._passed = progression.is_passing_score(self._score)
        self._phase = SessionPhase.COMPLETED
        self._completed_at = datetime.now(timezone.utc)
        logger.info(
            "Session %s completed %s level %d with score %d (%s)",
            self.session_id,
            self.topic,
            self.level,
            self._score,
            "passed" if self._passed else "failed",
        )
        return True

    def _notify_complete(self) -> None:
        if self._on_complete is not None:
            self._on_complete(self)

    def _start_countdown(self) -> None:
        self._cancel_tick()
        if self._scheduler is None:
            return
        index = self._current_index
        self._tick_task = self._scheduler.call_every(
            self._tick_interval, lambda: self._on_scheduled_tick(index)
        )

    def _schedule_dwell(self) -> None:
        self._cancel_dwell()
        if self._scheduler is None:
            return
        index = self._current_index
        self._dwell_task = self._scheduler.call_later(
            self._feedback_dwell, lambda: self._on_dwell_elapsed(index)
        )

    def _cancel_tick(self) -> None:
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None

    def _cancel_dwell(self) -> None:
        if self._dwell_task is not None:
            self._dwell_task.cancel()
            self._dwell_task = None

    # --- Scheduled callbacks; stale ones (wrong question or phase) do nothing ---

    def _on_scheduled_tick(self, index: int) -> None:
        with self._lock:
            if self._current_index != index:
                return
            self._tick_locked()

    def _on_dwell_elapsed(self, index: int) -> None:
        with self._lock:
            if (
                self._disposed
                or self._phase is not SessionPhase.SHOWING_FEEDBACK
                or self._current_index != index
            ):
                return
            if self._advance_locked():
                self._notify_complete()


def start_session(
    topic: str,
    level: int,
    questions: Sequence[Question],
    **options,
) -> QuizSession:
    """Create a session positioned on the first question with a fresh countdown."""
    session = QuizSession(topic, level, questions, **options)
    logger.info(
        "Session %s started for %s level %d with %d questions",
        session.session_id,
        topic,
        level,
        session.get_question_count(),
    )
    return session


def _validate_question(question: Question) -> None:
    if len(question.options) != OPTIONS_PER_QUESTION:
        raise InvalidSessionError(
            f"Question {question.id!r} must have exactly {OPTIONS_PER_QUESTION} options."
        )
    if not 0 <= question.correct_option_index < OPTIONS_PER_QUESTION:
        raise InvalidSessionError(
            f"Question {question.id!r} has an invalid correct option index."
        )
