"""
Injectable time source.

Services take a ``Clock`` instead of calling ``date.today()``: settlement
dates, default assigned dates, closure dates and ``last_recomputed_at`` all
come from it, which keeps every operation reproducible under test.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """``now()`` is timezone-aware; ``today()`` is its calendar date."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Time stands still at ``fixed_time`` (default 2024-01-01 12:00 UTC) and
    only moves through ``advance``, ``advance_days`` or ``set_time``.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or DEFAULT_TEST_TIME

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int = 1) -> None:
        self._current += timedelta(days=days)
