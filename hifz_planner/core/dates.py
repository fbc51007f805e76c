"""
Date Calendar: local calendar-date arithmetic.

Every date in the planner is a *local* calendar date. Keys are always
rendered from local time, never UTC, so a user west of UTC never sees a
review land on the wrong day late in the evening.

Also provides the Clock abstraction used for time-of-day gating.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Protocol, Union

from .exceptions import InvalidDateError

DateLike = Union[date, datetime, str]


# =============================================================================
# Normalization
# =============================================================================


def normalize(value: DateLike) -> date:
    """
    Reduce a date-like value to its local calendar date.

    Args:
        value: date, datetime (time of day dropped) or "YYYY-MM-DD" string

    Returns:
        The calendar date

    Raises:
        InvalidDateError: If the value cannot be interpreted as a date
    """
    # datetime is a subclass of date, so it has to be checked first
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_key(value)
    raise InvalidDateError(value)


def parse_key(key: str) -> date:
    """Parse a "YYYY-MM-DD" key (an ISO datetime string is truncated)."""
    text = key.strip() if isinstance(key, str) else key
    if not isinstance(text, str) or len(text) < 10:
        raise InvalidDateError(key)
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        moment = datetime.fromisoformat(text)
    except ValueError as e:
        raise InvalidDateError(key) from e
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.date()


def to_key(value: DateLike) -> str:
    """Canonical "YYYY-MM-DD" key in local time."""
    d = normalize(value)
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


# =============================================================================
# Arithmetic
# =============================================================================


def days_between(a: DateLike, b: DateLike) -> int:
    """Whole days from b to a (negative when a is earlier)."""
    return (normalize(a) - normalize(b)).days


def add_days(value: DateLike, days: int) -> date:
    """Calendar date `days` after value."""
    return normalize(value) + timedelta(days=days)


def is_same_day(a: DateLike, b: DateLike) -> bool:
    return normalize(a) == normalize(b)


# =============================================================================
# Clock
# =============================================================================


class Clock(Protocol):
    """Source of the current local wall-clock time."""

    def now(self) -> datetime: ...


class SystemClock:
    """Clock backed by the machine's local time."""

    def now(self) -> datetime:
        return datetime.now()


@dataclass
class FixedClock:
    """
    Clock frozen at a given moment.

    Used by tests and by the CLI's --now option to make
    morning-cutoff gating reproducible.
    """

    moment: datetime

    def now(self) -> datetime:
        return self.moment

    def advance(self, **delta: float) -> None:
        """Move the clock forward, e.g. advance(hours=2)."""
        self.moment = self.moment + timedelta(**delta)


def local_now(clock: Clock) -> datetime:
    """The clock's current time, converted to local time when it is aware."""
    now = clock.now()
    if now.tzinfo is not None:
        now = now.astimezone()
    return now


def today(clock: Clock) -> date:
    """Local calendar date according to the clock."""
    return normalize(clock.now())
