"""Login streak bookkeeping, compared by calendar day."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from quest_app.core.models import StreakUpdate


def to_calendar_day(value: date | datetime | str) -> date:
    """Normalise a date, datetime or ISO ``YYYY-MM-DD`` string to a calendar day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as exc:
            raise ValueError(f"Invalid calendar date: '{value}'.") from exc
    raise ValueError(f"Unsupported date value: {value!r}")


def update_streak(
    last_login_date: date | datetime | str | None,
    today: date | datetime | str,
    current_streak: int,
    longest_streak: int,
    total_logins: int,
) -> StreakUpdate:
    """Apply one login on ``today`` to the streak counters.

    Calling again on the same day with the previous output changes nothing, so
    session re-checks never double-count.
    """
    today_day = to_calendar_day(today)

    if last_login_date is None:
        new_streak = 1
        did_login_today = True
    else:
        last_day = to_calendar_day(last_login_date)
        if last_day >= today_day:
            new_streak = current_streak
            did_login_today = False
        elif last_day == today_day - timedelta(days=1):
            new_streak = current_streak + 1
            did_login_today = True
        else:
            new_streak = 1
            did_login_today = True

    return StreakUpdate(
        new_streak=new_streak,
        new_longest_streak=max(longest_streak, new_streak),
        new_total_logins=total_logins + (1 if did_login_today else 0),
        did_login_today=did_login_today,
    )
