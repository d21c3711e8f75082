"""End-to-end flow through the HTTP endpoint functions.

A weekday breakfast plan is created on a Wednesday at 09:00, the morning's
breakfast is logged against it and the day's adherence is read back.
"""

from datetime import date

import pytest

from api.adherence import get_adherence, get_streak, get_trend
from api.meals import delete_meal, list_meals, log_meal
from api.plans import (
    activate_plan,
    create_meal_template,
    create_plan,
    deactivate_plan,
    get_next_occurrence,
    list_meal_templates,
    list_plans,
)
from api.reminders import (
    complete_occurrence,
    get_completion_record,
    list_completion_records,
    open_reminder,
    pending_reminders,
    reschedule,
)
from core.exceptions import NotFoundError, ValidationError
from schemas.meal_schema import LoggedMealCreateRequest
from schemas.plan_schema import MealTemplateCreateRequest, PlanCreateRequest
from schemas.reminder_schema import OccurrenceCompleteRequest

WEDNESDAY = date(2026, 10, 21)


@pytest.fixture
def template(tracker):
    payload = MealTemplateCreateRequest(
        name="Oats and berries",
        items=[{"name": "Oatmeal", "calories": 300}, {"name": "Berries", "calories": 100}],
    )
    return create_meal_template(payload, tracker=tracker)


def _plan_payload(name, template_id):
    return PlanCreateRequest(
        name=name,
        daily_calorie_goal=1800,
        scheduled_meals=[{
            "name": "Breakfast",
            "category": "breakfast",
            "time_of_day": "08:00",
            "days_of_week": [2, 3, 4, 5, 6],
            "meal_template_id": template_id,
        }],
    )


@pytest.mark.asyncio
async def test_log_breakfast_against_plan(tracker, notifications, template):
    """Logging Wednesday's breakfast completes it and meets its calorie goal."""
    assert template.expected_calories == 400
    plan = await create_plan(_plan_payload("Weekday plan", template.id), tracker=tracker)
    assert plan.is_active
    breakfast = plan.scheduled_meals[0]
    assert breakfast.day_names == "Mon, Tue, Wed, Thu, Fri"
    assert breakfast.expected_calories == 400

    pending = await pending_reminders(notifications=notifications)
    assert [p.identifier for p in pending][0] == f"meal_reminder_{breakfast.id}_2026-10-22"
    assert len(pending) == 5

    meal = LoggedMealCreateRequest(
        name="Breakfast",
        timestamp="2026-10-21T08:20:00",
        category="breakfast",
        items=[{"name": "Oatmeal", "calories": 310}, {"name": "Berries", "calories": 110}],
    )
    record = await complete_occurrence(breakfast.id, WEDNESDAY, OccurrenceCompleteRequest(meal=meal), tracker=tracker)
    assert record.was_completed is True
    assert record.skipped is False
    assert record.goal_achieved is True
    assert record.goal_deviation == 20

    report = get_adherence(WEDNESDAY, tracker=tracker)
    assert report.completion_rate == 1.0
    assert [o.status for o in report.completed] == ["completed"]
    assert report.completed[0].completed_meal.display == "Oatmeal, Berries • 420 cal"
    assert report.off_diet_meals == []
    assert report.goal_achieved_meals == [breakfast.id]
    assert report.has_perfect_adherence is True
    assert report.tip == "great_job_keep_consistency"

    assert get_streak(tracker=tracker).days == 1
    trend = get_trend(start=None, end=None, tracker=tracker)
    assert trend.best_day == "2026-10-21"


@pytest.mark.asyncio
async def test_deleting_linked_meal_reopens_occurrence(tracker, template):
    """Deleting a linked meal turns the occurrence back into a missed one."""
    plan = await create_plan(_plan_payload("Weekday plan", template.id), tracker=tracker)
    breakfast_id = plan.scheduled_meals[0].id
    logged = log_meal(LoggedMealCreateRequest(name="Oats", timestamp="2026-10-21T07:55:00", total_calories=380), tracker=tracker)

    # Logged on its own the meal is off-plan until it is linked.
    assert [m.id for m in get_adherence(WEDNESDAY, tracker=tracker).off_diet_meals] == [logged.id]
    await complete_occurrence(breakfast_id, WEDNESDAY, OccurrenceCompleteRequest(meal_id=logged.id), tracker=tracker)
    assert get_adherence(WEDNESDAY, tracker=tracker).off_diet_meals == []

    await delete_meal(logged.id, tracker=tracker)
    report = get_adherence(WEDNESDAY, tracker=tracker)
    assert list_meals(day=WEDNESDAY, tracker=tracker) == []
    assert [o.status for o in report.missed] == ["missed"]
    assert report.completion_rate == 0.0


@pytest.mark.asyncio
async def test_switching_active_plan_moves_reminders(tracker, notifications, template):
    """Activating another plan moves the pending reminders to its meals."""
    first = await create_plan(_plan_payload("First", template.id), tracker=tracker)
    second = await create_plan(_plan_payload("Second", template.id), tracker=tracker)
    assert [p.is_active for p in list_plans(tracker=tracker)] == [True, False]

    result = await reschedule(tracker=tracker)
    assert result.scheduled == 5
    owners = {p.payload["scheduled_meal_id"] for p in await pending_reminders(notifications=notifications)}
    assert owners == {str(second.scheduled_meals[0].id)}

    await activate_plan(first.id, tracker=tracker)
    owners = {p.payload["scheduled_meal_id"] for p in await pending_reminders(notifications=notifications)}
    assert owners == {str(first.scheduled_meals[0].id)}


@pytest.mark.asyncio
async def test_tapped_reminder_opens_its_occurrence(tracker, notifications, template):
    """A pending reminder's payload resolves to the occurrence it announces."""
    plan = await create_plan(_plan_payload("Weekday plan", template.id), tracker=tracker)
    breakfast_id = plan.scheduled_meals[0].id
    assert [t.id for t in list_meal_templates(tracker=tracker)] == [template.id]

    nxt = get_next_occurrence(breakfast_id, tracker=tracker)
    assert nxt.occurrence_date == "2026-10-22"
    assert nxt.scheduled_at.startswith("2026-10-22T08:00")

    pending = await pending_reminders(notifications=notifications)
    action = open_reminder(pending[0].payload, tracker=tracker)
    assert action.scheduled_meal_id == breakfast_id
    assert action.category == "breakfast"
    assert action.occurrence_date == "2026-10-22"

    with pytest.raises(ValidationError):
        open_reminder({"scheduled_meal_id": "x"}, tracker=tracker)
    with pytest.raises(NotFoundError):
        open_reminder({
            "scheduled_meal_id": "999", "meal_name": "Gone", "category": "breakfast", "occurrence_date": "2026-10-22",
        }, tracker=tracker)

    await deactivate_plan(plan.id, tracker=tracker)
    nxt = get_next_occurrence(breakfast_id, tracker=tracker)
    assert nxt.occurrence_date is None
    assert nxt.scheduled_at is None


@pytest.mark.asyncio
async def test_completion_records_are_readable(tracker, template):
    """Completion records can be listed per day and fetched by id."""
    plan = await create_plan(_plan_payload("Weekday plan", template.id), tracker=tracker)
    breakfast_id = plan.scheduled_meals[0].id
    logged = log_meal(LoggedMealCreateRequest(name="Oats", timestamp="2026-10-21T08:05:00", total_calories=400), tracker=tracker)
    record = await complete_occurrence(breakfast_id, WEDNESDAY, OccurrenceCompleteRequest(meal_id=logged.id), tracker=tracker)

    assert [r.id for r in list_completion_records(day=WEDNESDAY, tracker=tracker)] == [record.id]
    fetched = get_completion_record(record.id, tracker=tracker)
    assert fetched.completed_meal_id == logged.id
    assert fetched.goal_achieved is True
    with pytest.raises(NotFoundError):
        get_completion_record(999, tracker=tracker)
