"""
Injectable clocks for engines.

Engines stamp orders and pace DCA buys with ``time_provider.now()`` whenever a
step is not given an explicit timestamp. Live runners use the wall clock;
tests and dry runs use a simulated clock that only moves when told to.

Usage::

    clock = BacktestTimeProvider(start=datetime(2024, 1, 1, tzinfo=UTC))
    engine = DCAEngine(config, time_provider=clock)
    engine.step(price)                 # stamped 2024-01-01
    clock.advance(timedelta(hours=24))
    engine.step(price)                 # stamped 2024-01-02
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

UTC = timezone.utc


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to a naive datetime; aware datetimes pass through."""
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt


class TimeProvider(ABC):
    """Source of the current time (always timezone-aware)."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def timestamp(self) -> float:
        """UNIX timestamp of ``now()``."""
        return self.now().timestamp()


class LiveTimeProvider(TimeProvider):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class BacktestTimeProvider(TimeProvider):
    """
    Simulated clock.

    Starts at ``start`` (default 2020-01-01 UTC); naive datetimes are taken
    as UTC. Time moves only through ``advance()`` and ``set_time()``.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self.start = as_utc(start) if start is not None else datetime(2020, 1, 1, tzinfo=UTC)
        self._current = self.start

    def now(self) -> datetime:
        return self._current

    @property
    def elapsed(self) -> timedelta:
        """Simulated time since ``start``."""
        return self._current - self.start

    def advance(self, delta: timedelta) -> None:
        """Move forward by a positive ``delta``."""
        if delta <= timedelta(0):
            raise ValueError(f"advance() requires positive delta, got {delta}")
        self._current += delta

    def set_time(self, dt: datetime) -> None:
        """Jump to an absolute time."""
        self._current = as_utc(dt)
