"""Clock abstraction used by the scheduling and adherence code.

All datetimes are naive and interpreted as the user's local wall clock, the
same frame scheduled meal times are expressed in.
"""

from datetime import date, datetime


class Clock:
    """Source of the current local time."""

    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Clock backed by the machine's local time."""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock(Clock):
    """Clock frozen at a given instant; tests move it with `set`."""

    def __init__(self, current: datetime):
        self._current = current

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        self._current = current


system_clock = SystemClock()

__all__ = ["Clock", "SystemClock", "FixedClock", "system_clock"]
