"""Weekly recurrence model and occurrence expansion.

A scheduled meal recurs on a set of weekdays numbered 1 (Sunday) through
7 (Saturday) at a wall-clock time of day. Expansion walks calendar dates and
combines each matching date with that time, so daylight-saving shifts never
drop or repeat a day.

Templates are duck-typed: anything with ``id``, ``time_of_day`` and
``weekdays`` attributes (the ``ScheduledMeal`` ORM model qualifies).
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Iterator, List, Optional, Tuple

from core.exceptions import ValidationError

SUNDAY, MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY, SATURDAY = range(1, 8)
WEEKDAYS = (MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY)
ALL_DAYS = tuple(range(1, 8))
DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


@dataclass(frozen=True)
class Occurrence:
    """One concrete date and time instance of a scheduled meal."""

    scheduled_meal_id: int
    occurrence_date: date
    scheduled_at: datetime

    @property
    def key(self) -> Tuple[int, date]:
        """Completion ledger key for this occurrence."""
        return (self.scheduled_meal_id, self.occurrence_date)


def weekday_number(day: date) -> int:
    """Return the weekday of ``day`` with 1 = Sunday and 7 = Saturday."""
    return day.isoweekday() % 7 + 1


def normalize_weekdays(days: Iterable[int]) -> List[int]:
    """Validate a weekday set and return it sorted without duplicates.

    Raises:
        ValidationError: If the set is empty or holds a value outside 1..7.
    """
    unique = sorted(set(days or []))
    if not unique:
        raise ValidationError("A scheduled meal must repeat on at least one day", field="days_of_week")
    invalid = [d for d in unique if not isinstance(d, int) or d < 1 or d > 7]
    if invalid:
        raise ValidationError(f"Invalid weekday values {invalid}; use 1 (Sunday) to 7 (Saturday)", field="days_of_week")
    return unique


def day_names(days: Iterable[int]) -> str:
    """Human-readable weekday list, e.g. ``"Mon, Wed, Fri"``."""
    return ", ".join(DAY_NAMES[d - 1] for d in sorted(set(days)))


def occurrence_on(template, day: date) -> Optional[Occurrence]:
    """The template's occurrence on ``day``, or None if it does not recur then."""
    if weekday_number(day) not in template.weekdays:
        return None
    return Occurrence(template.id, day, datetime.combine(day, template.time_of_day))


def expand(template, from_date: date, to_date: date) -> Iterator[Occurrence]:
    """Yield the template's occurrences for every date in ``[from_date, to_date]``.

    The generator holds no state beyond its arguments; calling it again with
    the same inputs yields the same sequence. An inverted range yields
    nothing.
    """
    weekdays = frozenset(template.weekdays)
    time_of_day: time = template.time_of_day
    day = from_date
    while day <= to_date:
        if weekday_number(day) in weekdays:
            yield Occurrence(template.id, day, datetime.combine(day, time_of_day))
        day += timedelta(days=1)


def expand_many(templates: Iterable, from_date: date, to_date: date) -> List[Occurrence]:
    """Expand several templates and order the result by time, then id."""
    occurrences = [occ for t in templates for occ in expand(t, from_date, to_date)]
    occurrences.sort(key=lambda o: (o.scheduled_at, o.scheduled_meal_id))
    return occurrences


def next_occurrence(template, after: datetime) -> Optional[Occurrence]:
    """First occurrence strictly later than ``after``.

    A week plus a day covers every weekday set, including the case where the
    only matching day is today and its time has already passed.
    """
    for occ in expand(template, after.date(), after.date() + timedelta(days=7)):
        if occ.scheduled_at > after:
            return occ
    return None


__all__ = [
    "Occurrence", "weekday_number", "normalize_weekdays", "day_names",
    "occurrence_on", "expand", "expand_many", "next_occurrence",
    "SUNDAY", "MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY",
    "WEEKDAYS", "ALL_DAYS", "DAY_NAMES",
]
