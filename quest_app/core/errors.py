"""Exception types raised by the quest engine."""

from __future__ import annotations


class QuestError(Exception):
    """Base class for every error raised by the quest core."""


class InvalidSessionError(QuestError):
    """Raised when a quiz session cannot be constructed from the given questions."""


class InvalidStateError(QuestError):
    """Raised when a session operation is not legal in the current phase."""


class InvalidCategoryError(QuestError):
    """Raised when a leaderboard category is not recognised."""


class QuestionSourceError(QuestError):
    """Raised when the question source cannot supply questions for a topic/level."""


class UnknownUserError(QuestError):
    """Raised when a user id is not present in the progress store."""


class UnknownSessionError(QuestError):
    """Raised when a session id does not refer to a live session."""
