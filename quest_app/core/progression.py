"""Progression rules: EXP curve, pass threshold, level unlocks and achievements.

Every function here is pure. Callers read a ``UserProgress`` snapshot, apply
these rules and persist the returned values themselves.
"""

from __future__ import annotations

from quest_app.constants.quest_constants import (
    BASE_EXP,
    EXP_PER_LEVEL,
    MAX_QUEST_LEVEL,
    MIN_QUEST_LEVEL,
    PASS_SCORE,
)
from quest_app.core.models import Achievement, ExpUpdate

_DIFFICULTY_BY_LEVEL = {
    0: "beginner",
    1: "beginner",
    2: "intermediate",
    3: "intermediate",
    4: "advanced",
    5: "advanced",
}

# (key, name, description, stat, threshold)
_ACHIEVEMENT_RULES: tuple[tuple[str, str, str, str, int], ...] = (
    ("first_quest", "First Quest", "Complete your first quest", "completed_quests", 1),
    ("level_up", "Level Up", "Reach level 5", "level", 5),
    ("streak_master", "Streak Master", "7-day login streak", "login_streak", 7),
    ("knowledge_seeker", "Knowledge Seeker", "Complete 10 quests", "completed_quests", 10),
    ("rising_star", "Rising Star", "Earn 1000 EXP", "exp", 1000),
    ("dedicated_learner", "Dedicated Learner", "30-day login streak", "login_streak", 30),
)


def exp_to_next_level(level: int) -> int:
    return level * EXP_PER_LEVEL


def compute_level(total_exp: int) -> int:
    """Level implied by a lifetime EXP total (100 EXP per level, starting at 1)."""
    return total_exp // EXP_PER_LEVEL + 1


def apply_exp(current_exp: int, current_level: int, delta: int) -> ExpUpdate:
    """Add ``delta`` EXP; the resulting level never drops below ``current_level``."""
    new_exp = current_exp + delta
    new_level = max(compute_level(new_exp), current_level)
    return ExpUpdate(new_exp=new_exp, new_level=new_level, leveled_up=new_level > current_level)


def is_passing_score(score: int) -> bool:
    return score >= PASS_SCORE


def compute_exp_award(level: int, score: int, passed: bool) -> int:
    """EXP for a finished quest level: base times level multiplier plus a bonus per 10 points over the bar."""
    if not passed:
        return 0
    level_multiplier = level + 1
    performance_bonus = (score - PASS_SCORE) // 10 * 10
    return BASE_EXP * level_multiplier + performance_bonus


def next_level_unlocked(level: int, passed: bool) -> bool:
    return passed and level < MAX_QUEST_LEVEL


def is_topic_mastered(level: int, passed: bool) -> bool:
    return passed and level == MAX_QUEST_LEVEL


def validate_quest_level(level: int) -> int:
    if isinstance(level, bool) or not isinstance(level, int):
        raise ValueError("Quest level must be an integer.")
    if not MIN_QUEST_LEVEL <= level <= MAX_QUEST_LEVEL:
        raise ValueError(
            f"Quest level must be between {MIN_QUEST_LEVEL} and {MAX_QUEST_LEVEL}, got {level}."
        )
    return level


def difficulty_for_level(level: int) -> str:
    return _DIFFICULTY_BY_LEVEL[validate_quest_level(level)]


def difficulty_label(level: int) -> str:
    return difficulty_for_level(level).capitalize()


def current_quest_level(completed_levels: set[int] | list[int]) -> int:
    """Level a user should enter next for a topic, given the levels already completed."""
    if not completed_levels:
        return MIN_QUEST_LEVEL
    return min(max(completed_levels) + 1, MAX_QUEST_LEVEL)


def exp_progress_percent(exp: int, level: int) -> float:
    needed = exp_to_next_level(level)
    if needed <= 0:
        return 0.0
    return min(exp / needed * 100, 100.0)


def evaluate_achievements(
    *, exp: int, level: int, login_streak: int, completed_quests: int
) -> list[Achievement]:
    stats = {
        "exp": exp,
        "level": level,
        "login_streak": login_streak,
        "completed_quests": completed_quests,
    }
    return [
        Achievement(key=key, name=name, description=description, earned=stats[stat] >= threshold)
        for key, name, description, stat, threshold in _ACHIEVEMENT_RULES
    ]
