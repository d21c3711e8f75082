"""Tests for daily adherence reports, trends, streaks and tips."""

from datetime import date, datetime, time, timedelta

import pytest

from services.adherence import OccurrenceStatus, best_day, tip
from services.meal_log import LoggedMealData, MealItemData
from services.plan_store import ScheduledMealData

WEDNESDAY = date(2026, 10, 21)


def _meal(name, at, calories, items=None):
    return LoggedMealData(name=name, timestamp=at, total_calories=calories, items=items or [])


@pytest.fixture
def plan(tracker, weekday_breakfast):
    lunch = ScheduledMealData(name="Lunch", category="lunch", time_of_day=time(12, 30), days_of_week=[2, 3, 4, 5, 6])
    return tracker.plans.create_plan("Cut", [weekday_breakfast, lunch], daily_calorie_goal=1800)


@pytest.mark.asyncio
async def test_statuses_for_completed_and_pending(tracker, plan):
    """A linked breakfast is completed while the later lunch is still pending."""
    breakfast, lunch = plan.scheduled_meals
    meal_id = tracker.meal_log.save_meal(_meal("Oats", datetime(2026, 10, 21, 8, 10), 420))
    await tracker.complete_occurrence(breakfast.id, WEDNESDAY, meal_id)

    report = tracker.get_adherence(WEDNESDAY)
    assert [s.status for s in report.scheduled] == [OccurrenceStatus.completed, OccurrenceStatus.pending]
    assert report.completion_rate == 0.5
    assert report.off_diet_meals == []
    assert report.total_calories == 420
    assert report.daily_calorie_goal == 1800
    assert report.goal_achieved_meals == [breakfast.id]
    assert report.completed_meal_details[breakfast.id].display_string == "420 cal"


def test_past_unlogged_occurrence_is_missed(tracker, plan, clock):
    """Occurrences past their time with no record are missed."""
    clock.set(datetime(2026, 10, 21, 13, 0))
    report = tracker.get_adherence(WEDNESDAY)
    assert [s.status for s in report.missed] == [OccurrenceStatus.missed] * 2
    assert report.completion_rate == 0.0
    assert not report.has_perfect_adherence


@pytest.mark.asyncio
async def test_skipped_occurrence_is_not_missed(tracker, plan, clock):
    """An explicit skip is reported as skipped, not missed."""
    clock.set(datetime(2026, 10, 21, 13, 0))
    breakfast, _ = plan.scheduled_meals
    await tracker.skip_occurrence(breakfast.id, WEDNESDAY)
    report = tracker.get_adherence(WEDNESDAY)
    assert [s.scheduled_meal.id for s in report.skipped] == [breakfast.id]
    assert len(report.missed) == 1
    assert report.completion_rate == 0.0


@pytest.mark.asyncio
async def test_unlinked_meals_are_off_plan(tracker, plan):
    """Meals not linked to any occurrence count as off-plan."""
    breakfast, _ = plan.scheduled_meals
    linked = tracker.meal_log.save_meal(_meal("Oats", datetime(2026, 10, 21, 8, 5), 400))
    await tracker.complete_occurrence(breakfast.id, WEDNESDAY, linked)
    donut = tracker.meal_log.save_meal(_meal("Donut", datetime(2026, 10, 21, 10, 0), 350))
    pizza = tracker.meal_log.save_meal(_meal("Pizza", datetime(2026, 10, 21, 22, 0), 300))

    report = tracker.get_adherence(WEDNESDAY)
    assert [m.id for m in report.off_diet_meals] == [donut, pizza]
    assert report.off_diet_calories == 650
    assert report.total_calories == 1050
    assert tip(report) == "plan_ahead_off_diet"


def test_meal_near_slot_time_is_not_matched_implicitly(tracker, plan):
    """A meal eaten at the slot time stays off-plan until it is linked."""
    tracker.meal_log.save_meal(_meal("Oats", datetime(2026, 10, 21, 8, 0), 400))
    report = tracker.get_adherence(WEDNESDAY)
    assert report.completed == []
    assert len(report.off_diet_meals) == 1


def test_day_without_scheduled_meals_has_zero_rate(tracker, plan):
    """A day with nothing scheduled reports a zero rate without dividing by zero."""
    report = tracker.get_adherence(date(2026, 10, 24))
    assert report.scheduled == []
    assert report.completion_rate == 0.0
    assert report.goal_achievement_rate == 0.0
    assert tip(report) == "start_tracking"


@pytest.mark.asyncio
async def test_goal_missed_meal_reported(tracker, plan):
    """A meal far above its target is recorded and reported as a missed goal."""
    breakfast, _ = plan.scheduled_meals
    items = [MealItemData("Pancakes", 500), MealItemData("Syrup", 150), MealItemData("Bacon", 200), MealItemData("Juice", 120)]
    meal_id = tracker.meal_log.save_meal(_meal("Diner breakfast", datetime(2026, 10, 21, 8, 0), 0, items))
    record = await tracker.complete_occurrence(breakfast.id, WEDNESDAY, meal_id)
    assert record.goal_achieved is False
    assert record.goal_deviation == 570

    report = tracker.get_adherence(WEDNESDAY)
    assert report.goal_missed_meals == [breakfast.id]
    assert report.goal_achievement_rate == 0.0
    details = report.completed_meal_details[breakfast.id]
    assert details.display_string == "Pancakes, Syrup, Bacon... • 970 cal"


@pytest.mark.asyncio
async def test_trend_streak_and_best_day(tracker, plan, clock):
    """Trend rates, the streak and the best day follow the completed days."""
    breakfast, lunch = plan.scheduled_meals
    # Monday and Tuesday fully completed, Wednesday still open at 09:00.
    for day in (date(2026, 10, 19), date(2026, 10, 20)):
        for slot in (breakfast, lunch):
            at = datetime.combine(day, slot.time_of_day)
            meal_id = tracker.meal_log.save_meal(_meal(slot.name, at, 400))
            await tracker.complete_occurrence(slot.id, day, meal_id)

    trend = tracker.get_weekly_trend(date(2026, 10, 17), WEDNESDAY)
    assert [d.completion_rate for d in trend] == [0.0, 0.0, 1.0, 1.0, 0.0]
    assert [d.total_meals for d in trend] == [0, 0, 2, 2, 2]
    assert best_day(trend).date == date(2026, 10, 19)

    # Weekend days are passed over and today's open meals do not break it.
    assert tracker.get_streak() == 2

    clock.set(datetime(2026, 10, 22, 9, 0))
    assert tracker.get_streak() == 0


def test_default_trend_covers_last_week(tracker, plan):
    """The default trend covers the seven days ending today."""
    trend = tracker.get_weekly_trend()
    assert trend[0].date == WEDNESDAY - timedelta(days=6)
    assert len(trend) == 7
    assert trend[-1].date == WEDNESDAY


def test_best_day_without_scheduled_days():
    """An empty trend has no best day."""
    assert best_day([]) is None
