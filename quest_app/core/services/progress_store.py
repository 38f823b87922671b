"""In-memory stand-in for the hosted data store: users, level progress and attempts."""

from __future__ import annotations

from uuid import uuid4

from quest_app.constants.quest_constants import MAX_QUEST_LEVEL, MIN_QUEST_LEVEL
from quest_app.core.errors import UnknownUserError
from quest_app.core.models import QuestAttempt, QuestLevelStatus, UserAggregate, UserProgress


class ProgressStore:
    """Plain get/insert/update storage. Not thread-safe; the quest manager holds the lock."""

    def __init__(self) -> None:
        self._users: dict[str, UserProgress] = {}
        # user_id -> topic -> level -> status
        self._levels: dict[str, dict[str, dict[int, QuestLevelStatus]]] = {}
        # user_id -> topic -> level -> best score
        self._best_scores: dict[str, dict[str, dict[int, int]]] = {}
        self._attempts: dict[str, list[QuestAttempt]] = {}

    # --- Users ---

    def create_user(self, username: str, user_id: str | None = None) -> UserProgress:
        cleaned = username.strip()
        if not cleaned:
            raise ValueError("Username must not be empty.")
        user = UserProgress(user_id=user_id or uuid4().hex, username=cleaned)
        if user.user_id in self._users:
            raise ValueError(f"User '{user.user_id}' already exists.")
        self._users[user.user_id] = user
        return user

    def find_user_by_name(self, username: str) -> UserProgress | None:
        cleaned = username.strip()
        return next((u for u in self._users.values() if u.username == cleaned), None)

    def get_user(self, user_id: str) -> UserProgress:
        user = self._users.get(user_id)
        if user is None:
            raise UnknownUserError(f"User '{user_id}' not found.")
        return user

    def save_user(self, user: UserProgress) -> None:
        if user.user_id not in self._users:
            raise UnknownUserError(f"User '{user.user_id}' not found.")
        self._users[user.user_id] = user

    # --- Level progress ---

    def level_statuses(self, user_id: str, topic: str) -> dict[int, QuestLevelStatus]:
        self.get_user(user_id)
        recorded = self._levels.get(user_id, {}).get(topic, {})
        statuses = {}
        for level in range(MIN_QUEST_LEVEL, MAX_QUEST_LEVEL + 1):
            default = QuestLevelStatus.UNLOCKED if level == MIN_QUEST_LEVEL else QuestLevelStatus.LOCKED
            statuses[level] = recorded.get(level, default)
        return statuses

    def mark_level(self, user_id: str, topic: str, level: int, status: QuestLevelStatus) -> None:
        """Record a level status. A completed level is never downgraded."""
        self.get_user(user_id)
        topic_levels = self._levels.setdefault(user_id, {}).setdefault(topic, {})
        if topic_levels.get(level) is QuestLevelStatus.COMPLETED:
            return
        topic_levels[level] = status

    def completed_levels(self, user_id: str, topic: str) -> set[int]:
        return {
            level
            for level, status in self.level_statuses(user_id, topic).items()
            if status is QuestLevelStatus.COMPLETED
        }

    # --- Attempts ---

    def record_attempt(
        self,
        user_id: str,
        topic: str,
        level: int,
        score: int,
        passed: bool,
        answers: list[int],
    ) -> QuestAttempt:
        self.get_user(user_id)
        attempt = QuestAttempt(
            attempt_id=uuid4().hex,
            user_id=user_id,
            topic=topic,
            level=level,
            score=score,
            passed=passed,
            answers=list(answers),
        )
        self._attempts.setdefault(user_id, []).append(attempt)
        if passed:
            scores = self._best_scores.setdefault(user_id, {}).setdefault(topic, {})
            scores[level] = max(scores.get(level, 0), score)
        return attempt

    def attempts_for(self, user_id: str) -> list[QuestAttempt]:
        self.get_user(user_id)
        return sorted(self._attempts.get(user_id, []), key=lambda a: a.completed_at, reverse=True)

    # --- Aggregates ---

    def completed_quest_count(self, user_id: str) -> int:
        return sum(
            1
            for topic_levels in self._levels.get(user_id, {}).values()
            for status in topic_levels.values()
            if status is QuestLevelStatus.COMPLETED
        )

    def aggregates(self) -> list[UserAggregate]:
        """Snapshot of every user's statistics, in insertion order, for ranking."""
        snapshot = []
        for user in self._users.values():
            total_score = sum(
                score
                for topic_scores in self._best_scores.get(user.user_id, {}).values()
                for score in topic_scores.values()
            )
            snapshot.append(
                UserAggregate(
                    user_id=user.user_id,
                    username=user.username,
                    exp=user.exp,
                    level=user.level,
                    login_streak=user.login_streak,
                    longest_streak=user.longest_streak,
                    total_logins=user.total_logins,
                    completed_quests=self.completed_quest_count(user.user_id),
                    total_score=total_score,
                )
            )
        return snapshot
