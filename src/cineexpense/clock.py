"""Injectable clock so "now" and "today" checks are deterministic in tests."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Source of the current UTC time."""

    def now(self) -> datetime:
        """Return current UTC datetime."""
        ...


class SystemClock:
    """Clock backed by the system wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Controllable clock for tests.

    Time only moves when told to, so history rows written in one test get
    exactly the timestamps the test expects.
    """

    def __init__(self, initial: datetime | None = None) -> None:
        self._current = initial or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current

    def set(self, value: datetime) -> None:
        self._current = value

    def advance(self, **kwargs: float) -> None:
        """Advance by a timedelta expressed as keyword arguments."""
        self._current += timedelta(**kwargs)


def today(clock: Clock) -> date:
    """Calendar date of the clock's current instant."""
    return clock.now().date()
