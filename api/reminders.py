"""Reminder and occurrence API router.

Exposes the reschedule pass, the pending alert list, notification
authorization, the complete/skip actions a tapped reminder leads to and
the completion records behind them.
"""

from datetime import date
from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool
from typing import Dict, List

from core.logger import get_logger
from database.deps import get_notification_center, get_read_tracker, get_tracker
from schemas.reminder_schema import (
    CompletionRecordResponse,
    OccurrenceCompleteRequest,
    PendingReminderResponse,
    ReminderActionResponse,
    RescheduleResponse,
)
from services.diet_tracker import DietTracker
from services.notifications import NotificationCenter
from services.reminder_scheduler import OWNER_TAG

logger = get_logger("api.reminders")
router = APIRouter(prefix="/api", tags=["reminders"])


@router.post("/reminders/reschedule", response_model=RescheduleResponse)
async def reschedule(tracker: DietTracker = Depends(get_tracker)):
    """Rebuild all pending meal reminders for the active plan."""
    return RescheduleResponse.from_result(await tracker.reschedule())


@router.get("/reminders/pending", response_model=List[PendingReminderResponse])
async def pending_reminders(notifications: NotificationCenter = Depends(get_notification_center)):
    return [PendingReminderResponse.from_request(r) for r in await notifications.pending(OWNER_TAG)]


@router.post("/reminders/authorize", response_model=RescheduleResponse)
async def authorize(tracker: DietTracker = Depends(get_tracker)):
    """Ask for notification permission and schedule reminders once granted.

    Raises:
        NotificationPermissionError: If permission was denied.
    """
    return RescheduleResponse.from_result(await tracker.request_notification_permission())


@router.post("/reminders/open", response_model=ReminderActionResponse)
def open_reminder(payload: Dict[str, str], tracker: DietTracker = Depends(get_read_tracker)):
    """Turn a tapped reminder's payload into the occurrence to log against.

    Raises:
        ValidationError: If the payload is malformed.
        NotFoundError: If the scheduled meal was removed since the alert fired.
    """
    return ReminderActionResponse.from_action(tracker.reminder_action(payload))


@router.get("/completion-records", response_model=List[CompletionRecordResponse])
def list_completion_records(day: date = Query(..., alias="date"), tracker: DietTracker = Depends(get_read_tracker)):
    return [CompletionRecordResponse.from_model(r) for r in tracker.completion_records_for(day)]


@router.get("/completion-records/{record_id}", response_model=CompletionRecordResponse)
def get_completion_record(record_id: int, tracker: DietTracker = Depends(get_read_tracker)):
    return CompletionRecordResponse.from_model(tracker.get_completion_record(record_id))


@router.post("/occurrences/{scheduled_meal_id}/{occurrence_date}/complete", response_model=CompletionRecordResponse)
async def complete_occurrence(
    scheduled_meal_id: int,
    occurrence_date: date,
    payload: OccurrenceCompleteRequest,
    tracker: DietTracker = Depends(get_tracker),
):
    """Mark an occurrence completed by an existing or newly logged meal."""
    if payload.meal is not None:
        record = await tracker.log_meal_for_occurrence(scheduled_meal_id, occurrence_date, payload.meal.to_data())
    else:
        record = await tracker.complete_occurrence(scheduled_meal_id, occurrence_date, payload.meal_id)
    return await run_in_threadpool(CompletionRecordResponse.from_model, record)


@router.post("/occurrences/{scheduled_meal_id}/{occurrence_date}/skip", response_model=CompletionRecordResponse)
async def skip_occurrence(scheduled_meal_id: int, occurrence_date: date, tracker: DietTracker = Depends(get_tracker)):
    record = await tracker.skip_occurrence(scheduled_meal_id, occurrence_date)
    return await run_in_threadpool(CompletionRecordResponse.from_model, record)
