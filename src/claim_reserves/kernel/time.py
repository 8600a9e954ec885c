"""
Time provider abstraction for deterministic testing

Balances only count movements and payments dated on or before "today", and
every ledger row is stamped with today's date, so the clock is injectable.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Protocol


class TimeProvider(Protocol):
    """Protocol for time providers - allows deterministic testing"""

    def now(self) -> datetime:
        """Return current UTC datetime"""
        ...


class RealTimeProvider:
    """Production time provider using system clock"""

    def now(self) -> datetime:
        """Return current UTC time from system clock"""
        return datetime.now(timezone.utc)


class TestTimeProvider:
    """
    Controllable time provider for deterministic tests

    Allows tests to freeze time and move it forward, so that movements
    dated in the future can be shown to stay out of a balance until their
    date arrives.
    """

    __test__ = False  # not a pytest test class

    def __init__(self, initial_time: datetime | None = None) -> None:
        self._current_time = initial_time or datetime(1970, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current_time

    def set_time(self, dt: datetime) -> None:
        self._current_time = dt

    def advance_days(self, days: int) -> None:
        self._current_time += timedelta(days=days)


def today(provider: TimeProvider) -> date:
    """Calendar date of the provider's current instant"""
    return provider.now().date()


# Global default time provider
default_time_provider: TimeProvider = RealTimeProvider()
