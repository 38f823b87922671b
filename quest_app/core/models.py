"""Domain models for the quest engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum

# Recorded in place of an option index when a question's timer runs out.
TIMEOUT_ANSWER: int = -1


class SessionPhase(Enum):
    AWAITING_ANSWER = "awaiting_answer"
    SHOWING_FEEDBACK = "showing_feedback"
    COMPLETED = "completed"


class QuestLevelStatus(Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    COMPLETED = "completed"


@dataclass(slots=True, frozen=True)
class Question:
    """Multiple-choice question with exactly four options."""

    id: str
    question_text: str
    options: tuple[str, ...]
    correct_option_index: int
    explanation: str | None = None
    topic: str = ""
    level: int = 0
    difficulty: str = "beginner"


@dataclass(slots=True, frozen=True)
class QuestionFeedback:
    """What the feedback window shows for the question just answered."""

    question_index: int
    selected_option_index: int
    correct_option_index: int
    is_correct: bool
    auto_answered: bool
    explanation: str | None = None


@dataclass(slots=True)
class UserProgress:
    """Per-user progression snapshot owned by the data store."""

    user_id: str
    username: str
    exp: int = 0
    level: int = 1
    login_streak: int = 0
    longest_streak: int = 0
    total_logins: int = 0
    last_login_date: date | None = None


@dataclass(slots=True, frozen=True)
class ExpUpdate:
    new_exp: int
    new_level: int
    leveled_up: bool


@dataclass(slots=True, frozen=True)
class QuestLevelResult:
    """Outcome of a completed quiz session, handed to the caller for persistence."""

    topic: str
    level: int
    score: int
    passed: bool
    exp_awarded: int
    leveled_up: bool
    new_level: int
    new_exp: int
    next_level_unlocked: bool
    topic_mastered: bool


@dataclass(slots=True, frozen=True)
class UserAggregate:
    """Raw per-user statistics the leaderboard ranks."""

    user_id: str
    username: str
    exp: int = 0
    level: int = 1
    login_streak: int = 0
    longest_streak: int = 0
    total_logins: int = 0
    completed_quests: int = 0
    total_score: int = 0


@dataclass(slots=True, frozen=True)
class LeaderboardEntry:
    user_id: str
    username: str
    level: int
    exp: int
    login_streak: int
    longest_streak: int
    completed_quests: int
    total_score: int
    total_logins: int
    rank: int


@dataclass(slots=True, frozen=True)
class LeaderboardResult:
    category: str
    entries: list[LeaderboardEntry]
    my_rank: int | None = None


@dataclass(slots=True, frozen=True)
class StreakUpdate:
    new_streak: int
    new_longest_streak: int
    new_total_logins: int
    did_login_today: bool


@dataclass(slots=True, frozen=True)
class QuestAttempt:
    """A finished quiz attempt as recorded by the data store."""

    attempt_id: str
    user_id: str
    topic: str
    level: int
    score: int
    passed: bool
    answers: list[int]
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(slots=True, frozen=True)
class Achievement:
    key: str
    name: str
    description: str
    earned: bool


@dataclass(slots=True, frozen=True)
class ProfileSummary:
    """Profile view: progression snapshot plus derived display values."""

    user: UserProgress
    completed_quests: int
    exp_to_next_level: int
    exp_progress_percent: float
    achievements: list[Achievement]


@dataclass(slots=True, frozen=True)
class SessionSnapshot:
    """Consistent view of a quiz session, captured under its lock."""

    session_id: str
    topic: str
    level: int
    phase: SessionPhase
    question_index: int
    question_count: int
    time_remaining_seconds: int
    question: Question | None
    feedback: QuestionFeedback | None
    answers: list[int]
    auto_answered: list[int]
    score: int | None
    passed: bool | None
    started_at: datetime
    completed_at: datetime | None
    result: QuestLevelResult | None = None
