"""
Injectable time source.

Services take a ``Clock`` in their constructor instead of reading the system
time, so posted_at, closed_at, paid_at and settled_at are reproducible under
test.  All clocks return timezone-aware UTC datetimes.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2026, 1, 15, 9, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current UTC time."""

    def today(self) -> date:
        """Calendar date of ``now()``; the default entry date for postings."""
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Time moves only when ``advance()``, ``tick()`` or ``set_time()`` is
    called.  A naive start time is taken to be UTC.
    """

    def __init__(self, start: datetime | None = None):
        self._current = self._as_utc(start or DEFAULT_TEST_TIME)

    @staticmethod
    def _as_utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._current

    def set_time(self, value: datetime) -> None:
        self._current = self._as_utc(value)

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        self.advance(1)
        return self._current
