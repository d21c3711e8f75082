"""Reminder scheduling for active diet plans.

A reschedule pass cancels every alert this service owns and then requests
one alert per future, still-open occurrence inside the scheduling window.
Starting from "cancel everything" is what keeps the alert set free of
duplicates, so the pass can run after any plan edit, meal log or restart
and always converges to the same result.

The pass never raises on notification problems: missing authorization
turns alert requests into no-ops and is reported in the result, and a
failing request is logged and counted.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool

from core.clock import Clock, system_clock
from core.config import REMINDER_WINDOW_DAYS
from core.exceptions import NotificationPermissionError, PersistenceError
from core.logger import get_logger
from database.models import DietPlan, MealCategory, ScheduledMeal
from services.completion_ledger import CompletionLedger
from services.notifications import MEAL_REMINDER_CATEGORY, NotificationCenter, NotificationRequest
from services.recurrence import Occurrence, expand_many

logger = get_logger("services.reminder_scheduler")

OWNER_TAG = MEAL_REMINDER_CATEGORY


def notification_identifier(scheduled_meal_id: int, occurrence_date: date) -> str:
    return f"meal_reminder_{scheduled_meal_id}_{occurrence_date.isoformat()}"


@dataclass
class RescheduleResult:
    """Outcome of one reschedule pass."""

    cancelled: int = 0
    scheduled: int = 0
    skipped_completed: int = 0
    skipped_past: int = 0
    not_authorized: int = 0
    failed: int = 0
    permission_granted: bool = True
    notification_ids: List[str] = field(default_factory=list)


@dataclass
class ReminderAction:
    """What the app should open when the user taps a meal reminder."""

    scheduled_meal_id: int
    meal_name: str
    category: MealCategory
    occurrence_date: date


class ReminderScheduler:
    def __init__(self, notifications: NotificationCenter, ledger: CompletionLedger,
                 clock: Clock = system_clock):
        self.notifications = notifications
        self.ledger = ledger
        self.clock = clock

    async def request_authorization(self) -> None:
        """Ask the notification capability for permission.

        Raises:
            NotificationPermissionError: If the user denied it.
        """
        granted = await self.notifications.request_authorization()
        if not granted:
            logger.warning("Notification authorization denied")
            raise NotificationPermissionError()

    async def reschedule(self, active_plans: Iterable[DietPlan],
                         window_days: int = REMINDER_WINDOW_DAYS) -> RescheduleResult:
        """Rebuild the pending alert set for ``[today, today + window_days]``.

        Ledger reads and writes run in the threadpool; only the notification
        calls run on the event loop.
        """
        result = RescheduleResult()
        try:
            result.cancelled = await self.notifications.cancel_all(OWNER_TAG)
        except Exception:
            logger.exception("Cancelling pending meal reminders failed")

        try:
            result.permission_granted = bool(await self.notifications.authorization_status())
        except Exception:
            logger.exception("Reading notification authorization failed")
            result.permission_granted = False

        candidates = await run_in_threadpool(self._collect_candidates, list(active_plans), window_days, result)

        for occ, request in candidates:
            if not result.permission_granted:
                result.not_authorized += 1
                continue
            try:
                await self.notifications.schedule(request)
            except Exception:
                logger.exception("Scheduling reminder %s failed", request.identifier)
                result.failed += 1
                continue
            result.scheduled += 1
            result.notification_ids.append(request.identifier)
            await run_in_threadpool(self._record_reminder, occ, request.identifier)

        if not result.permission_granted:
            logger.warning("Notifications not authorized; %d reminders left unscheduled", result.not_authorized)
        logger.info(
            "Reschedule pass: cancelled=%d scheduled=%d completed=%d past=%d failed=%d",
            result.cancelled, result.scheduled, result.skipped_completed, result.skipped_past, result.failed,
        )
        return result

    def _collect_candidates(self, active_plans: List[DietPlan], window_days: int,
                            result: RescheduleResult) -> List[Tuple[Occurrence, NotificationRequest]]:
        """Future, still-open occurrences in the window with their alert requests."""
        today = self.clock.today()
        now = self.clock.now()
        end = today + timedelta(days=window_days)
        templates: Dict[int, ScheduledMeal] = {
            meal.id: meal for plan in active_plans for meal in plan.scheduled_meals
        }
        # A completion committed after this read gets one stale alert that the next pass removes.
        records = self.ledger.fetch_range(templates, today, end)

        candidates = []
        for occ in expand_many(templates.values(), today, end):
            record = records.get(occ.key)
            if record is not None and record.was_completed:
                result.skipped_completed += 1
                continue
            if occ.scheduled_at <= now:
                result.skipped_past += 1
                continue
            candidates.append((occ, self._build_request(occ, templates[occ.scheduled_meal_id])))
        return candidates

    def _record_reminder(self, occ: Occurrence, identifier: str) -> None:
        try:
            self.ledger.upsert_reminder(occ.scheduled_meal_id, occ.occurrence_date, identifier)
        except PersistenceError:
            logger.warning("Could not record reminder %s in the ledger", identifier)

    def _build_request(self, occ: Occurrence, meal: ScheduledMeal) -> NotificationRequest:
        expected = meal.expected_calories
        payload = {
            "scheduled_meal_id": str(meal.id),
            "meal_name": meal.name,
            "category": meal.category,
            "occurrence_date": occ.occurrence_date.isoformat(),
        }
        if expected:
            payload["expected_calories"] = str(expected)
            body = f"Log your meal to check it against {expected} calories"
        else:
            body = f"It's time for your {meal.category} meal."
        return NotificationRequest(
            identifier=notification_identifier(meal.id, occ.occurrence_date),
            owner_tag=OWNER_TAG,
            fire_at=occ.scheduled_at,
            title=f"Time for {meal.name}",
            body=body,
            payload=payload,
        )


def parse_notification_payload(payload: dict) -> Optional[ReminderAction]:
    """Turn a tapped reminder's payload back into an action, or None if malformed."""
    try:
        return ReminderAction(
            scheduled_meal_id=int(payload["scheduled_meal_id"]),
            meal_name=str(payload["meal_name"]),
            category=MealCategory(payload["category"]),
            occurrence_date=date.fromisoformat(payload["occurrence_date"]),
        )
    except (KeyError, TypeError, ValueError):
        return None


__all__ = [
    "OWNER_TAG", "ReminderScheduler", "RescheduleResult", "ReminderAction",
    "notification_identifier", "parse_notification_payload",
]
