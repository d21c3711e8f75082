"""Tests for the reminder reschedule pass."""

from datetime import date, datetime, time

import pytest

from core.exceptions import NotificationPermissionError
from database.models import MealReminder
from services.diet_tracker import DietTracker
from services.notifications import InMemoryNotificationCenter, NotificationRequest
from services.plan_store import ScheduledMealData
from services.reminder_scheduler import (
    OWNER_TAG,
    notification_identifier,
    parse_notification_payload,
)


@pytest.fixture
def plan(tracker, weekday_breakfast):
    return tracker.plans.create_plan("Cut", [weekday_breakfast])


def _identifiers(requests):
    return [r.identifier for r in requests]


def test_notification_identifier_format():
    """Notification identifiers name the scheduled meal and the date."""
    assert notification_identifier(12, date(2026, 10, 22)) == "meal_reminder_12_2026-10-22"


@pytest.mark.asyncio
async def test_reschedule_covers_future_occurrences_in_window(tracker, plan, notifications):
    """A pass schedules every future occurrence in the window."""
    result = await tracker.reschedule()
    breakfast_id = plan.scheduled_meals[0].id

    # Wednesday 08:00 already passed; Thu, Fri, Mon, Tue, Wed remain.
    expected = [notification_identifier(breakfast_id, date(2026, 10, d)) for d in (22, 23, 26, 27, 28)]
    assert result.scheduled == 5
    assert result.skipped_past == 1
    assert result.permission_granted is True
    assert _identifiers(await notifications.pending(OWNER_TAG)) == expected

    first = (await notifications.pending(OWNER_TAG))[0]
    assert first.fire_at == datetime(2026, 10, 22, 8, 0)
    assert first.title == "Time for Breakfast"
    assert first.payload["expected_calories"] == "400"


@pytest.mark.asyncio
async def test_reschedule_is_idempotent(tracker, plan, notifications, session):
    """Running the pass twice leaves the same alerts and ledger rows."""
    await tracker.reschedule()
    before = _identifiers(await notifications.pending(OWNER_TAG))
    result = await tracker.reschedule()
    assert result.cancelled == 5
    assert _identifiers(await notifications.pending(OWNER_TAG)) == before
    assert session.query(MealReminder).count() == 5


@pytest.mark.asyncio
async def test_completed_occurrence_gets_no_reminder(tracker, plan, notifications):
    """A completed or skipped occurrence gets no alert."""
    breakfast_id = plan.scheduled_meals[0].id
    await tracker.skip_occurrence(breakfast_id, date(2026, 10, 22))
    result = tracker.last_reschedule
    assert result.skipped_completed == 1
    assert notification_identifier(breakfast_id, date(2026, 10, 22)) not in _identifiers(
        await notifications.pending(OWNER_TAG)
    )


@pytest.mark.asyncio
async def test_other_owners_alerts_survive(tracker, plan, notifications):
    """Cancelling meal reminders leaves other owners' alerts alone."""
    other = NotificationRequest("water", "HYDRATION", datetime(2026, 10, 21, 10, 0), "Drink", "Water")
    await notifications.schedule(other)
    await tracker.reschedule()
    await tracker.reschedule()
    assert _identifiers(await notifications.pending("HYDRATION")) == ["water"]


@pytest.mark.asyncio
async def test_missing_permission_is_reported_not_raised(session, clock, bus, weekday_breakfast):
    """Without permission the pass reports the alerts it could not schedule."""
    center = InMemoryNotificationCenter(authorized=False, grant_on_request=False)
    tracker = DietTracker(session, center, clock=clock, bus=bus, window_days=7)
    plan = await tracker.create_plan("Cut", [weekday_breakfast])

    result = tracker.last_reschedule
    assert plan.is_active
    assert result.permission_granted is False
    assert result.scheduled == 0
    assert result.not_authorized == 5
    assert await center.pending() == []

    with pytest.raises(NotificationPermissionError) as exc_info:
        await tracker.request_notification_permission()
    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_granting_permission_schedules_reminders(session, clock, bus, weekday_breakfast):
    """Granting permission schedules the pending reminders."""
    center = InMemoryNotificationCenter(authorized=False)
    tracker = DietTracker(session, center, clock=clock, bus=bus, window_days=7)
    await tracker.create_plan("Cut", [weekday_breakfast])
    result = await tracker.request_notification_permission()
    assert result.permission_granted is True
    assert result.scheduled == 5


@pytest.mark.asyncio
async def test_one_failing_alert_does_not_stop_the_pass(tracker, plan, notifications, monkeypatch):
    """One failing alert is counted and the rest are scheduled."""
    original = notifications.schedule

    async def flaky(request):
        if request.fire_at.date() == date(2026, 10, 23):
            raise RuntimeError("notification service unavailable")
        await original(request)

    monkeypatch.setattr(notifications, "schedule", flaky)
    result = await tracker.reschedule()
    assert result.failed == 1
    assert result.scheduled == 4


@pytest.mark.asyncio
async def test_deleting_plan_cancels_its_reminders(tracker, plan, notifications):
    """Deleting the active plan leaves no meal reminders."""
    await tracker.reschedule()
    await tracker.delete_plan(plan.id)
    assert await notifications.pending(OWNER_TAG) == []


@pytest.mark.asyncio
async def test_inactive_plan_gets_no_reminders(tracker, notifications):
    """An inactive plan gets no reminders."""
    lunch = ScheduledMealData(name="Lunch", category="lunch", time_of_day=time(12, 0), days_of_week=[1, 2, 3, 4, 5, 6, 7])
    await tracker.create_plan("Draft", [lunch], is_active=False)
    assert await notifications.pending(OWNER_TAG) == []


def test_parse_notification_payload():
    """Valid payloads become actions and malformed ones become None."""
    action = parse_notification_payload({
        "scheduled_meal_id": "3",
        "meal_name": "Breakfast",
        "category": "breakfast",
        "occurrence_date": "2026-10-22",
    })
    assert action.scheduled_meal_id == 3
    assert action.occurrence_date == date(2026, 10, 22)
    assert parse_notification_payload({"scheduled_meal_id": "x"}) is None
    assert parse_notification_payload({
        "scheduled_meal_id": "3", "meal_name": "B", "category": "brunch", "occurrence_date": "2026-10-22",
    }) is None
