"""Calendar-day proximity helpers. Pure functions, timezone-naive."""

from __future__ import annotations

import math
from datetime import date, datetime

DateLike = date | datetime | str


def to_date(value: DateLike) -> date:
    """Truncate a date, datetime or ISO string (YYYY-MM-DD[T...]) to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def _today(today: DateLike | None) -> date:
    return to_date(today) if today is not None else date.today()


def days_since(d: DateLike | None, today: DateLike | None = None) -> int | float:
    """Whole days from d to today. An absent date is infinitely long ago."""
    if d is None:
        return math.inf
    return (_today(today) - to_date(d)).days


def is_within_last_n_days(d: DateLike | None, n: int, today: DateLike | None = None) -> bool:
    """True if d falls no more than n days before today."""
    return days_since(d, today) <= n


def are_consecutive_days(a: DateLike | None, b: DateLike | None) -> bool:
    """True if both dates are present and at most one day apart (same day included)."""
    if a is None or b is None:
        return False
    return abs((to_date(a) - to_date(b)).days) <= 1
