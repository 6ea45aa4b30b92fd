"""Injectable clock.

Services that need "today" receive a Clock instead of calling
``date.today()`` so that generation windows are reproducible in tests.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, UTC


class Clock(ABC):
    """Abstract clock interface."""

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        pass

    def today(self) -> date:
        """Get the current calendar day."""
        return self.now().date()


class SystemClock(Clock):
    """Clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def today(self) -> date:
        # Whole-day granularity follows the local calendar
        return date.today()


class FixedClock(Clock):
    """Clock frozen at a given day, for tests and replays."""

    def __init__(self, today: date):
        self._today = today

    def now(self) -> datetime:
        return datetime(self._today.year, self._today.month, self._today.day, tzinfo=UTC)

    def today(self) -> date:
        return self._today

    def advance(self, days: int = 1) -> None:
        """Move the clock forward by whole days."""
        self._today = self._today + timedelta(days=days)
