from __future__ import annotations

import pytest

from quest_app.core import progression


def test_apply_exp_levels_up_across_boundary():
    update = progression.apply_exp(current_exp=80, current_level=1, delta=50)

    assert update.new_exp == 130
    assert progression.compute_level(130) == 2
    assert update.new_level == 2
    assert update.leveled_up is True


def test_apply_exp_within_level():
    update = progression.apply_exp(current_exp=10, current_level=1, delta=50)

    assert update.new_exp == 60
    assert update.new_level == 1
    assert update.leveled_up is False


@pytest.mark.parametrize("current_level", [1, 2, 5, 20])
@pytest.mark.parametrize("current_exp", [0, 50, 99, 100, 450])
@pytest.mark.parametrize("delta", [0, 1, 70, 330])
def test_apply_exp_never_lowers_level(current_exp, current_level, delta):
    update = progression.apply_exp(current_exp, current_level, delta)

    assert update.new_level >= current_level
    assert update.leveled_up == (update.new_level > current_level)


@pytest.mark.parametrize(
    "total_exp, level",
    [(0, 1), (99, 1), (100, 2), (199, 2), (1000, 11)],
)
def test_compute_level(total_exp, level):
    assert progression.compute_level(total_exp) == level


def test_exp_to_next_level():
    assert progression.exp_to_next_level(1) == 100
    assert progression.exp_to_next_level(3) == 300


@pytest.mark.parametrize(
    "level, score, passed, expected",
    [
        (0, 70, True, 50),
        (0, 79, True, 50),
        (0, 80, True, 60),
        (2, 100, True, 180),
        (5, 85, True, 310),
        (3, 60, False, 0),
    ],
)
def test_compute_exp_award(level, score, passed, expected):
    assert progression.compute_exp_award(level, score, passed) == expected


def test_pass_threshold_is_inclusive():
    assert progression.is_passing_score(70)
    assert not progression.is_passing_score(69)


def test_next_level_unlock_stops_at_max_level():
    assert progression.next_level_unlocked(0, True)
    assert progression.next_level_unlocked(4, True)
    assert not progression.next_level_unlocked(5, True)
    assert not progression.next_level_unlocked(2, False)
    assert progression.is_topic_mastered(5, True)
    assert not progression.is_topic_mastered(4, True)


@pytest.mark.parametrize(
    "level, difficulty",
    [(0, "beginner"), (1, "beginner"), (2, "intermediate"), (3, "intermediate"), (4, "advanced"), (5, "advanced")],
)
def test_difficulty_for_level(level, difficulty):
    assert progression.difficulty_for_level(level) == difficulty
    assert progression.difficulty_label(level) == difficulty.capitalize()


@pytest.mark.parametrize("level", [-1, 6, True, "2"])
def test_invalid_quest_level(level):
    with pytest.raises(ValueError):
        progression.difficulty_for_level(level)


@pytest.mark.parametrize(
    "completed, expected",
    [(set(), 0), ({0}, 1), ({0, 1, 2}, 3), ({0, 1, 2, 3, 4, 5}, 5)],
)
def test_current_quest_level(completed, expected):
    assert progression.current_quest_level(completed) == expected


def test_exp_progress_percent_is_capped():
    assert progression.exp_progress_percent(50, 1) == 50.0
    assert progression.exp_progress_percent(250, 2) == 100.0


def test_achievements():
    achievements = progression.evaluate_achievements(
        exp=1200, level=5, login_streak=8, completed_quests=3
    )
    earned = {a.key for a in achievements if a.earned}

    assert earned == {"first_quest", "level_up", "streak_master", "rising_star"}
    assert len(achievements) == 6
