"""Diet tracker facade.

The single entry point the HTTP layer (or any other UI) talks to. It wires
the plan store, completion ledger, food log, adherence evaluator and
reminder scheduler over one session, and sequences multi-step operations:
a mutation is committed first and the reschedule pass runs only after it
succeeded, so a failed write never triggers a pass over stale state and a
deleted plan never leaves alerts behind.
"""

from datetime import date, timedelta
from typing import List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from core.clock import Clock, system_clock
from core.config import REMINDER_WINDOW_DAYS
from core.events import (
    EventBus,
    GLOBAL_EVENT_BUS,
    OCCURRENCE_COMPLETED,
    OCCURRENCE_SKIPPED,
    REMINDERS_RESCHEDULED,
)
from core.exceptions import ValidationError
from core.logger import get_logger
from database.models import DietPlan, MealReminder, ScheduledMeal
from services.adherence import AdherenceEvaluator, AdherenceReport, DailyAdherence, evaluate_goal
from services.completion_ledger import CompletionLedger
from services.meal_log import LoggedMealData, MealLog
from services.notifications import NotificationCenter
from services.plan_store import PlanStore, ScheduledMealData
from services.recurrence import Occurrence, next_occurrence, weekday_number
from services.reminder_scheduler import (
    ReminderAction,
    ReminderScheduler,
    RescheduleResult,
    parse_notification_payload,
)

logger = get_logger("services.diet_tracker")


class DietTracker:
    def __init__(
        self,
        session: Session,
        notifications: NotificationCenter,
        clock: Clock = system_clock,
        bus: EventBus = GLOBAL_EVENT_BUS,
        window_days: int = REMINDER_WINDOW_DAYS,
    ):
        self.session = session
        self.clock = clock
        self.bus = bus
        self.window_days = window_days
        self.plans = PlanStore(session, bus)
        self.ledger = CompletionLedger(session, clock)
        self.meal_log = MealLog(session, bus)
        self.evaluator = AdherenceEvaluator(session, clock, self.ledger, self.meal_log)
        self.scheduler = ReminderScheduler(notifications, self.ledger, clock)
        self.last_reschedule: Optional[RescheduleResult] = None

    # Read side -------------------------------------------------------------

    def get_adherence(self, day: date) -> AdherenceReport:
        return self.evaluator.evaluate(day, self.plans.active_plans())

    def get_weekly_trend(self, start: date = None, end: date = None) -> List[DailyAdherence]:
        """Per-day completion rates; defaults to the seven days ending today."""
        end = end or self.clock.today()
        start = start or end - timedelta(days=6)
        if start > end:
            raise ValidationError("Trend start date must not be after its end date", field="start")
        return self.evaluator.weekly_trend(start, end, self.plans.active_plans())

    def get_streak(self) -> int:
        return self.evaluator.streak(self.plans.active_plans())

    def get_completion_record(self, record_id: int) -> MealReminder:
        return self.ledger.get(record_id)

    def completion_records_for(self, day: date) -> List[MealReminder]:
        return self.ledger.fetch_for_date(day)

    def next_occurrence(self, scheduled_meal_id: int) -> Optional[Occurrence]:
        """Next time a scheduled meal comes up after now, or None if it is not in an active plan."""
        scheduled_meal = self.plans.get_scheduled_meal(scheduled_meal_id)
        if not scheduled_meal.diet_plan.is_active:
            return None
        return next_occurrence(scheduled_meal, self.clock.now())

    def reminder_action(self, payload: dict) -> ReminderAction:
        """Resolve a tapped reminder's payload to the occurrence it refers to.

        Raises:
            ValidationError: If the payload is malformed.
            NotFoundError: If the scheduled meal no longer exists.
        """
        action = parse_notification_payload(payload)
        if action is None:
            raise ValidationError("Malformed meal reminder payload", field="payload")
        self.plans.get_scheduled_meal(action.scheduled_meal_id)
        return action

    # Reminders -------------------------------------------------------------

    async def reschedule(self) -> RescheduleResult:
        plans = await run_in_threadpool(self.plans.active_plans)
        result = await self.scheduler.reschedule(plans, self.window_days)
        self.last_reschedule = result
        self.bus.publish(REMINDERS_RESCHEDULED, {
            "scheduled": result.scheduled,
            "permission_granted": result.permission_granted,
        })
        return result

    async def request_notification_permission(self) -> RescheduleResult:
        await self.scheduler.request_authorization()
        return await self.reschedule()

    # Plan mutations --------------------------------------------------------
    # Each write commits in the threadpool before the reschedule pass starts.

    async def _mutate(self, fn, *args, **kwargs):
        outcome = await run_in_threadpool(fn, *args, **kwargs)
        await self.reschedule()
        return outcome

    async def create_plan(self, name: str, scheduled_meals: List[ScheduledMealData], **fields) -> DietPlan:
        return await self._mutate(self.plans.create_plan, name, scheduled_meals, **fields)

    async def update_plan(self, plan_id: int, name: str, scheduled_meals: List[ScheduledMealData], **fields) -> DietPlan:
        return await self._mutate(self.plans.update_plan, plan_id, name, scheduled_meals, **fields)

    async def set_active(self, plan_id: int) -> DietPlan:
        return await self._mutate(self.plans.set_active, plan_id)

    async def deactivate(self, plan_id: int) -> DietPlan:
        return await self._mutate(self.plans.deactivate, plan_id)

    async def delete_plan(self, plan_id: int) -> List[int]:
        return await self._mutate(self.plans.delete_plan, plan_id)

    async def add_scheduled_meal(self, plan_id: int, data: ScheduledMealData) -> ScheduledMeal:
        return await self._mutate(self.plans.add_scheduled_meal, plan_id, data)

    async def update_scheduled_meal(self, scheduled_meal_id: int, data: ScheduledMealData) -> ScheduledMeal:
        return await self._mutate(self.plans.update_scheduled_meal, scheduled_meal_id, data)

    async def delete_scheduled_meal(self, scheduled_meal_id: int) -> None:
        await self._mutate(self.plans.delete_scheduled_meal, scheduled_meal_id)

    # Occurrence state ------------------------------------------------------

    async def log_meal_for_occurrence(self, scheduled_meal_id: int, occurrence_date: date,
                                      data: LoggedMealData) -> MealReminder:
        """Save a meal logged from an occurrence's reminder and link it."""
        return await self._mutate(self._log_and_complete, scheduled_meal_id, occurrence_date, data)

    async def complete_occurrence(self, scheduled_meal_id: int, occurrence_date: date, meal_id: int) -> MealReminder:
        """Link an existing logged meal to an occurrence and evaluate its goal."""
        return await self._mutate(self._complete, scheduled_meal_id, occurrence_date, meal_id)

    async def skip_occurrence(self, scheduled_meal_id: int, occurrence_date: date) -> MealReminder:
        return await self._mutate(self._skip, scheduled_meal_id, occurrence_date)

    async def delete_meal(self, meal_id: int) -> None:
        await self._mutate(self.meal_log.delete_meal, meal_id)

    def _log_and_complete(self, scheduled_meal_id: int, occurrence_date: date, data: LoggedMealData) -> MealReminder:
        scheduled_meal = self.plans.get_scheduled_meal(scheduled_meal_id)
        self._check_occurrence(scheduled_meal, occurrence_date)
        meal_id = self.meal_log.save_meal(data)
        return self._complete(scheduled_meal_id, occurrence_date, meal_id)

    def _complete(self, scheduled_meal_id: int, occurrence_date: date, meal_id: int) -> MealReminder:
        scheduled_meal = self.plans.get_scheduled_meal(scheduled_meal_id)
        self._check_occurrence(scheduled_meal, occurrence_date)
        meal = self.meal_log.get_meal(meal_id)

        record = self.ledger.upsert_completion(scheduled_meal_id, occurrence_date, meal.id)
        expected = scheduled_meal.expected_calories
        if expected:
            evaluation = evaluate_goal(meal.total_calories, expected)
            record = self.ledger.record_goal_evaluation(record, evaluation.achieved, evaluation.deviation)
            logger.info(
                "Goal for occurrence %s/%s: %s (deviation %.0f kcal)",
                scheduled_meal_id, occurrence_date.isoformat(), evaluation.status.value, evaluation.deviation,
            )

        self.bus.publish(OCCURRENCE_COMPLETED, {
            "scheduled_meal_id": scheduled_meal_id,
            "occurrence_date": occurrence_date,
            "meal_id": meal.id,
        })
        return record

    def _skip(self, scheduled_meal_id: int, occurrence_date: date) -> MealReminder:
        scheduled_meal = self.plans.get_scheduled_meal(scheduled_meal_id)
        self._check_occurrence(scheduled_meal, occurrence_date)
        record = self.ledger.upsert_skip(scheduled_meal_id, occurrence_date)
        self.bus.publish(OCCURRENCE_SKIPPED, {
            "scheduled_meal_id": scheduled_meal_id,
            "occurrence_date": occurrence_date,
        })
        return record

    @staticmethod
    def _check_occurrence(scheduled_meal: ScheduledMeal, occurrence_date: date) -> None:
        if weekday_number(occurrence_date) not in scheduled_meal.weekdays:
            raise ValidationError(
                f"'{scheduled_meal.name}' is not scheduled on {occurrence_date.isoformat()}",
                field="occurrence_date",
            )


__all__ = ["DietTracker"]
