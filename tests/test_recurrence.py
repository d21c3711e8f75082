"""Tests for weekday numbering and occurrence expansion."""

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import List

import pytest

from core.exceptions import ValidationError
from services.recurrence import (
    ALL_DAYS,
    SATURDAY,
    SUNDAY,
    WEEKDAYS,
    day_names,
    expand,
    expand_many,
    next_occurrence,
    normalize_weekdays,
    occurrence_on,
    weekday_number,
)


@dataclass
class Slot:
    id: int
    time_of_day: time
    weekdays: List[int]


def test_weekday_numbering_starts_on_sunday():
    """Weekdays are numbered 1 for Sunday through 7 for Saturday."""
    assert weekday_number(date(2026, 10, 18)) == SUNDAY
    assert weekday_number(date(2026, 10, 21)) == 4
    assert weekday_number(date(2026, 10, 24)) == SATURDAY


def test_normalize_weekdays_sorts_and_dedupes():
    """Weekday sets come back sorted without duplicates."""
    assert normalize_weekdays([6, 2, 2, 4]) == [2, 4, 6]


@pytest.mark.parametrize("days", [[], [0], [8], [1, 9]])
def test_normalize_weekdays_rejects_invalid_sets(days):
    """Empty sets and values outside 1..7 are rejected."""
    with pytest.raises(ValidationError) as exc_info:
        normalize_weekdays(days)
    assert exc_info.value.details == {"field": "days_of_week"}


def test_day_names():
    """Weekday numbers render as short names."""
    assert day_names([6, 2, 4]) == "Mon, Wed, Fri"


def test_expand_weekdays_over_one_week():
    """A Monday to Friday slot expands to five occurrences in a week."""
    slot = Slot(1, time(8, 0), list(WEEKDAYS))
    occs = list(expand(slot, date(2026, 10, 18), date(2026, 10, 24)))
    assert [o.occurrence_date for o in occs] == [date(2026, 10, d) for d in range(19, 24)]
    assert occs[0].scheduled_at == datetime(2026, 10, 19, 8, 0)
    assert occs[0].key == (1, date(2026, 10, 19))


def test_expand_is_repeatable_and_empty_for_inverted_range():
    """Expansion is repeatable and yields nothing for an inverted range."""
    slot = Slot(1, time(12, 30), list(ALL_DAYS))
    first = list(expand(slot, date(2026, 10, 1), date(2026, 10, 31)))
    assert first == list(expand(slot, date(2026, 10, 1), date(2026, 10, 31)))
    assert len(first) == 31
    assert list(expand(slot, date(2026, 10, 31), date(2026, 10, 1))) == []


def test_expand_across_daylight_saving_change_keeps_wall_clock_time():
    """Each date keeps the slot's wall-clock time across a DST change."""
    slot = Slot(1, time(8, 0), list(ALL_DAYS))
    occs = list(expand(slot, date(2026, 3, 7), date(2026, 3, 9)))
    assert [o.scheduled_at for o in occs] == [
        datetime(2026, 3, 7, 8, 0),
        datetime(2026, 3, 8, 8, 0),
        datetime(2026, 3, 9, 8, 0),
    ]


def test_expand_many_orders_by_time_then_id():
    """Expanded occurrences are ordered by time, then scheduled meal id."""
    lunch = Slot(2, time(12, 0), [4])
    breakfast = Slot(3, time(8, 0), [4])
    early = Slot(1, time(8, 0), [4])
    occs = expand_many([lunch, breakfast, early], date(2026, 10, 21), date(2026, 10, 21))
    assert [o.scheduled_meal_id for o in occs] == [1, 3, 2]


def test_occurrence_on_returns_none_for_unscheduled_day():
    """A day outside the weekday set has no occurrence."""
    slot = Slot(1, time(8, 0), list(WEEKDAYS))
    assert occurrence_on(slot, date(2026, 10, 24)) is None
    assert occurrence_on(slot, date(2026, 10, 21)).scheduled_at == datetime(2026, 10, 21, 8, 0)


def test_next_occurrence_skips_passed_slot_today():
    """The next occurrence skips a slot that already passed today."""
    slot = Slot(1, time(8, 0), [4])
    occ = next_occurrence(slot, datetime(2026, 10, 21, 9, 0))
    assert occ.occurrence_date == date(2026, 10, 28)
    assert next_occurrence(slot, datetime(2026, 10, 21, 7, 0)).occurrence_date == date(2026, 10, 21)
