"""Clock and calendar-day arithmetic.

The engine never calls ``date.today()`` directly; it asks a clock, so tests
and batch jobs can pin "now" to a known day.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Protocol, Union

DateLike = Union[date, datetime, str]


class Clock(Protocol):
    """Source of the current date and time."""

    def now(self) -> datetime: ...

    def today(self) -> date: ...


class SystemClock:
    """Clock backed by the system time (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """Clock pinned to a given day. Used by tests and replays."""

    def __init__(self, today: Optional[date] = None):
        self._today = today or date(2025, 1, 1)

    def now(self) -> datetime:
        return datetime(
            self._today.year, self._today.month, self._today.day, 12, 0, tzinfo=timezone.utc
        )

    def today(self) -> date:
        return self._today

    def set(self, today: date) -> None:
        self._today = today

    def advance(self, days: int = 1) -> date:
        """Move the clock forward and return the new day."""
        self._today = self._today + timedelta(days=days)
        return self._today


def to_date(value: DateLike) -> date:
    """Coerce a date, datetime or ISO string to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def days_between(start: DateLike, end: DateLike) -> int:
    """Whole calendar days from ``start`` to ``end``.

    Negative when ``end`` precedes ``start``; ``days_between(a, b) ==
    -days_between(b, a)`` always holds.
    """
    return (to_date(end) - to_date(start)).days


def add_days(start: DateLike, days: int) -> date:
    """Calendar date ``days`` after ``start``."""
    return to_date(start) + timedelta(days=days)
