"""
Wall-clock access for everything time-dependent.

Expiration, override expiry and reminder windows all read "now" through a
``Clock`` passed in by the caller, never through ``datetime.now`` directly.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Current instant as a timezone-aware UTC datetime."""
        ...

    def today(self) -> date:
        """Current UTC calendar date."""
        ...


class SystemClock:
    """Production clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """A clock frozen at a given instant until moved with ``advance``/``set``."""

    def __init__(self, instant: Optional[datetime] = None) -> None:
        self._instant = as_utc(instant or datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._instant

    def today(self) -> date:
        return self._instant.date()

    def set(self, instant: datetime) -> None:
        self._instant = as_utc(instant)

    def advance(self, delta: timedelta) -> None:
        self._instant = self._instant + delta


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime.

    Naive values are assumed to already be UTC (SQLite drops the offset on
    round-trip).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(day: date) -> datetime:
    """Midnight UTC at the start of *day*."""
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


system_clock = SystemClock()
