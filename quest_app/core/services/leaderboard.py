"""Leaderboard ranking over a snapshot of per-user statistics."""

from __future__ import annotations

from enum import Enum
from typing import Callable, Iterable

from quest_app.core.errors import InvalidCategoryError
from quest_app.core.models import LeaderboardEntry, LeaderboardResult, UserAggregate

EXP_WEIGHT = 0.4
STREAK_WEIGHT = 0.3
QUESTS_WEIGHT = 0.3
STREAK_POINTS_PER_DAY = 100
QUEST_POINTS_PER_COMPLETION = 50


class LeaderboardCategory(str, Enum):
    OVERALL = "overall"
    EXP = "exp"
    STREAK = "streak"
    QUESTS = "quests"


def composite_score(aggregate: UserAggregate) -> float:
    """Weighted blend used by the overall category."""
    return (
        aggregate.exp * EXP_WEIGHT
        + aggregate.login_streak * STREAK_POINTS_PER_DAY * STREAK_WEIGHT
        + aggregate.completed_quests * QUEST_POINTS_PER_COMPLETION * QUESTS_WEIGHT
    )


# Sort keys ascend, so every descending criterion is negated. sorted() is
# stable: entries equal on the whole key keep their snapshot order.
_SORT_KEYS: dict[LeaderboardCategory, Callable[[UserAggregate], tuple]] = {
    LeaderboardCategory.EXP: lambda a: (-a.exp,),
    LeaderboardCategory.STREAK: lambda a: (-a.login_streak, -a.longest_streak),
    LeaderboardCategory.QUESTS: lambda a: (-a.completed_quests, -a.total_score),
    LeaderboardCategory.OVERALL: lambda a: (-composite_score(a), a.user_id),
}


def parse_category(category: LeaderboardCategory | str) -> LeaderboardCategory:
    if isinstance(category, LeaderboardCategory):
        return category
    try:
        return LeaderboardCategory(str(category).strip().lower())
    except ValueError as exc:
        valid = ", ".join(c.value for c in LeaderboardCategory)
        raise InvalidCategoryError(
            f"Unknown leaderboard category '{category}'. Expected one of: {valid}."
        ) from exc


def compute_leaderboard(
    snapshot: Iterable[UserAggregate],
    category: LeaderboardCategory | str,
    requesting_user_id: str | None = None,
    limit: int | None = None,
) -> LeaderboardResult:
    """Rank the snapshot under ``category``.

    Ranks are positional (1..N): equal values get consecutive ranks rather than
    sharing one. ``limit`` only truncates the returned entries; ``my_rank`` is
    resolved against the full ranking.
    """
    resolved = parse_category(category)
    ordered = sorted(snapshot, key=_SORT_KEYS[resolved])

    entries = [_to_entry(aggregate, rank) for rank, aggregate in enumerate(ordered, start=1)]
    my_rank = next(
        (entry.rank for entry in entries if entry.user_id == requesting_user_id),
        None,
    )
    if limit is not None:
        if limit < 0:
            raise ValueError("Leaderboard limit must not be negative.")
        entries = entries[:limit]
    return LeaderboardResult(category=resolved.value, entries=entries, my_rank=my_rank)


def stat_label(entry: LeaderboardEntry, category: LeaderboardCategory | str) -> str:
    """Headline value shown next to an entry for the given category."""
    resolved = parse_category(category)
    if resolved is LeaderboardCategory.EXP:
        return f"{entry.exp:,} EXP"
    if resolved is LeaderboardCategory.STREAK:
        return f"{entry.login_streak} days"
    if resolved is LeaderboardCategory.QUESTS:
        return f"{entry.completed_quests} completed"
    return f"Level {entry.level}"


def _to_entry(aggregate: UserAggregate, rank: int) -> LeaderboardEntry:
    return LeaderboardEntry(
        user_id=aggregate.user_id,
        username=aggregate.username,
        level=aggregate.level,
        exp=aggregate.exp,
        login_streak=aggregate.login_streak,
        longest_streak=aggregate.longest_streak,
        completed_quests=aggregate.completed_quests,
        total_score=aggregate.total_score,
        total_logins=aggregate.total_logins,
        rank=rank,
    )
