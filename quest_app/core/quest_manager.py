"""Business logic wiring quest sessions, progression, streaks and the leaderboard for callers."""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from functools import partial
import logging
from threading import RLock
from typing import Callable

from quest_app.constants.quest_constants import LEADERBOARD_DEFAULT_LIMIT
from quest_app.core import progression
from quest_app.core.errors import InvalidStateError, QuestionSourceError, UnknownSessionError
from quest_app.core.models import (
    LeaderboardResult,
    ProfileSummary,
    QuestAttempt,
    QuestionFeedback,
    QuestLevelResult,
    QuestLevelStatus,
    SessionSnapshot,
    StreakUpdate,
    UserProgress,
)
from quest_app.core.services import leaderboard
from quest_app.core.services.progress_store import ProgressStore
from quest_app.core.services.question_source import QuestionSource, TemplateQuestionSource
from quest_app.core.services.quiz_session import QuizSession, start_session
from quest_app.core.services.session_scheduler import SessionScheduler, ThreadingScheduler
from quest_app.core.streak_tracker import to_calendar_day, update_streak

logger = logging.getLogger(__name__)


class QuestManager:
    """Facade over the question source, progress store, sessions and ranking.

    One re-entrant lock guards the store and is shared with every session, so
    scheduler threads (ticks, feedback dwell) and request threads never
    interleave.
    """

    def __init__(
        self,
        question_source: QuestionSource | None = None,
        store: ProgressStore | None = None,
        scheduler: SessionScheduler | None = None,
        today_provider: Callable[[], date] = date.today,
    ) -> None:
        self._lock = RLock()
        self._question_source = question_source or TemplateQuestionSource.from_default_bank()
        self._store = store or ProgressStore()
        self._scheduler = scheduler or ThreadingScheduler()
        self._today = today_provider

        self._sessions: dict[str, QuizSession] = {}
        self._session_owners: dict[str, str] = {}
        self._session_by_user: dict[str, str] = {}
        self._results: dict[str, QuestLevelResult] = {}

    # --- Users ---

    def register_user(self, username: str) -> UserProgress:
        """Register a new user or return the existing one with the same name."""
        with self._lock:
            existing = self._store.find_user_by_name(username)
            if existing is not None:
                return replace(existing)
            user = self._store.create_user(username)
            logger.info("Registered user %s (%s)", user.username, user.user_id)
            return replace(user)

    def get_user(self, user_id: str) -> UserProgress:
        with self._lock:
            return replace(self._store.get_user(user_id))

    def get_profile(self, user_id: str) -> ProfileSummary:
        with self._lock:
            user = replace(self._store.get_user(user_id))
            completed = self._store.completed_quest_count(user_id)
        return ProfileSummary(
            user=user,
            completed_quests=completed,
            exp_to_next_level=progression.exp_to_next_level(user.level),
            exp_progress_percent=progression.exp_progress_percent(user.exp, user.level),
            achievements=progression.evaluate_achievements(
                exp=user.exp,
                level=user.level,
                login_streak=user.login_streak,
                completed_quests=completed,
            ),
        )

    def record_login(self, user_id: str, today: date | str | None = None) -> StreakUpdate:
        """Apply today's login to the user's streak counters and persist them."""
        with self._lock:
            user = self._store.get_user(user_id)
            login_day = today if today is not None else self._today()
            streak = update_streak(
                user.last_login_date,
                login_day,
                user.login_streak,
                user.longest_streak,
                user.total_logins,
            )
            if streak.did_login_today:
                self._store.save_user(
                    replace(
                        user,
                        login_streak=streak.new_streak,
                        longest_streak=streak.new_longest_streak,
                        total_logins=streak.new_total_logins,
                        last_login_date=to_calendar_day(login_day),
                    )
                )
                logger.info("User %s login streak is now %d", user_id, streak.new_streak)
            return streak

    def get_attempts(self, user_id: str) -> list[QuestAttempt]:
        with self._lock:
            return self._store.attempts_for(user_id)

    # --- Topics ---

    def list_topics(self) -> list[str]:
        return self._question_source.available_topics()

    def get_topic_levels(self, user_id: str, topic: str) -> dict[int, QuestLevelStatus]:
        with self._lock:
            return self._store.level_statuses(user_id, self._canonical_topic(topic))

    # --- Quest sessions ---

    def start_quest(self, user_id: str, topic: str, level: int | None = None) -> QuizSession:
        """Fetch questions and open a fresh session, discarding the user's previous one."""
        with self._lock:
            self._store.get_user(user_id)
            topic = self._canonical_topic(topic)
            if level is None:
                level = progression.current_quest_level(self._store.completed_levels(user_id, topic))
            else:
                progression.validate_quest_level(level)
            status = self._store.level_statuses(user_id, topic)[level]
            if status is QuestLevelStatus.LOCKED:
                raise InvalidStateError(f"Level {level} of '{topic}' is still locked.")

            try:
                questions = self._question_source.fetch_questions(topic, level)
            except QuestionSourceError:
                logger.warning("Could not fetch questions for %s level %d", topic, level)
                raise

            previous = self._session_by_user.pop(user_id, None)
            if previous is not None:
                self._discard_session(previous)

            session = start_session(
                topic,
                level,
                questions,
                scheduler=self._scheduler,
                on_complete=partial(self._handle_completion, user_id),
                lock=self._lock,
            )
            self._sessions[session.session_id] = session
            self._session_owners[session.session_id] = user_id
            self._session_by_user[user_id] = session.session_id
            return session

    def get_session(self, session_id: str) -> QuizSession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise UnknownSessionError(f"Session '{session_id}' not found.")
            return session

    def describe_session(self, session_id: str) -> SessionSnapshot:
        """Session state and stored result, read atomically with respect to timer threads."""
        with self._lock:
            session = self.get_session(session_id)
            return session.snapshot(self._results.get(session_id))

    def submit_answer(self, session_id: str, option_index: int) -> QuestionFeedback:
        with self._lock:
            return self.get_session(session_id).select_answer(option_index)

    def advance_session(self, session_id: str) -> None:
        """Skip the rest of the feedback window; the pending dwell timer is cancelled."""
        with self._lock:
            self.get_session(session_id).advance()

    def abandon_session(self, session_id: str) -> None:
        """Tear down a session. Unfinished attempts are discarded, not recorded."""
        with self._lock:
            self.get_session(session_id)
            owner = self._session_owners.get(session_id)
            if owner is not None and self._session_by_user.get(owner) == session_id:
                del self._session_by_user[owner]
            self._discard_session(session_id)

    def get_result(self, session_id: str) -> QuestLevelResult | None:
        with self._lock:
            self.get_session(session_id)
            return self._results.get(session_id)

    def shutdown(self) -> None:
        with self._lock:
            for session_id in list(self._sessions):
                self._discard_session(session_id)
            self._session_by_user.clear()

    # --- Leaderboard ---

    def get_leaderboard(
        self,
        category: leaderboard.LeaderboardCategory | str = leaderboard.LeaderboardCategory.OVERALL,
        user_id: str | None = None,
        limit: int | None = LEADERBOARD_DEFAULT_LIMIT,
    ) -> LeaderboardResult:
        with self._lock:
            snapshot = self._store.aggregates()
        return leaderboard.compute_leaderboard(snapshot, category, user_id, limit=limit)

    # --- Internals ---

    def _canonical_topic(self, topic: str) -> str:
        cleaned = topic.strip()
        return next(
            (name for name in self.list_topics() if name.lower() == cleaned.lower()),
            cleaned,
        )

    def _handle_completion(self, user_id: str, session: QuizSession) -> None:
        with self._lock:
            if self._sessions.get(session.session_id) is not session:
                logger.info(
                    "Session %s was discarded before completion; not recorded", session.session_id
                )
                return
            user = self._store.get_user(user_id)
            result = session.build_result(user.exp, user.level)
            self._store.save_user(replace(user, exp=result.new_exp, level=result.new_level))
            self._store.record_attempt(
                user_id,
                session.topic,
                session.level,
                result.score,
                result.passed,
                session.get_answer_list(),
            )
            if result.passed:
                self._store.mark_level(user_id, session.topic, session.level, QuestLevelStatus.COMPLETED)
            if result.next_level_unlocked:
                self._store.mark_level(
                    user_id, session.topic, session.level + 1, QuestLevelStatus.UNLOCKED
                )
            self._results[session.session_id] = result
            logger.info(
                "User %s finished %s level %d: score %d, +%d EXP%s",
                user_id,
                session.topic,
                session.level,
                result.score,
                result.exp_awarded,
                ", level up" if result.leveled_up else "",
            )

    def _discard_session(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        self._session_owners.pop(session_id, None)
        self._results.pop(session_id, None)
        if session is not None:
            session.dispose()
