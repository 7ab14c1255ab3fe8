"""Calendar arithmetic for recurrences and monthly budgets.

Everything here is pure: no clock reads except :func:`utcnow`, no store
access. Date-times are naive UTC throughout the package; aware values are
normalized once by :func:`to_naive_utc` at the input boundary.

Month-end policy
----------------
Month and year steps clamp to the last valid day of the target month
(``relativedelta`` semantics): Jan 31 + MONTHLY is Feb 29 in a leap year and
Feb 28 otherwise, Feb 29 + YEARLY is Feb 28. Each step starts from the
previous due date, so a clamped day stays clamped (Jan 31, Feb 29, Mar 29).
"""

from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta

from dateutil.relativedelta import relativedelta
from db.models.ledger import RecurrenceFrequency

Frequency = RecurrenceFrequency

_STEPS: dict[RecurrenceFrequency, relativedelta] = {
    RecurrenceFrequency.DAILY: relativedelta(days=1),
    RecurrenceFrequency.WEEKLY: relativedelta(weeks=1),
    RecurrenceFrequency.BIWEEKLY: relativedelta(weeks=2),
    RecurrenceFrequency.MONTHLY: relativedelta(months=1),
    RecurrenceFrequency.QUARTERLY: relativedelta(months=3),
    RecurrenceFrequency.YEARLY: relativedelta(years=1),
}

_DAY_SECONDS = 86_400


def next_due_date(current: datetime, frequency: RecurrenceFrequency | str) -> datetime:
    """Advance ``current`` by exactly one period of ``frequency``."""

    return current + _STEPS[RecurrenceFrequency(frequency)]


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def month_key(when: datetime) -> tuple[int, int]:
    """Return ``(month, year)`` of a naive UTC date-time."""

    return when.month, when.year


def month_bounds(month: int, year: int) -> tuple[datetime, datetime]:
    """Return ``(start, end)`` of a calendar month as a half-open interval.

    ``end`` is the first instant of the following month, so every instant of
    the last day (including its final second) is inside the month, and the
    interval agrees exactly with :func:`month_key`.
    """

    start = datetime(year, month, 1)
    return start, start + relativedelta(months=1)


def previous_month(month: int, year: int) -> tuple[int, int]:
    if month == 1:
        return 12, year - 1
    return month - 1, year


def days_until(target: datetime, now: datetime) -> int:
    """Whole days from ``now`` to ``target``, rounded up; ``<= 0`` when already due."""

    delta: timedelta = target - now
    return math.ceil(delta.total_seconds() / _DAY_SECONDS)


__all__ = [
    "Frequency",
    "next_due_date",
    "utcnow",
    "to_naive_utc",
    "month_key",
    "month_bounds",
    "previous_month",
    "days_until",
]
