"""Plan store: diet plans, their scheduled meals and nutrition templates.

Owns the single-active-plan invariant. Every operation that can make a plan
active clears the flag on all other plans inside the same transaction, so
no committed state ever has two active plans.

Structural mutations publish ``plan.changed`` after commit. Callers that
mutate plans are expected to run a reminder reschedule afterwards; the
`DietTracker` facade does that sequencing.
"""

import json
from dataclasses import dataclass
from datetime import time
from typing import List, Optional

from sqlalchemy.orm import Session

from core.events import EventBus, GLOBAL_EVENT_BUS, PLAN_CHANGED
from core.exceptions import ValidationError
from core.logger import get_logger
from core.repository import BaseRepository
from database.models import DietPlan, MealCategory, MealTemplate, ScheduledMeal
from services.completion_ledger import CompletionLedger
from services.recurrence import normalize_weekdays

logger = get_logger("services.plan_store")


@dataclass
class ScheduledMealData:
    """Input describing one scheduled meal slot.

    ``id`` is only meaningful on update: a known id updates that slot in
    place and keeps its completion history.
    """

    name: str
    category: str
    time_of_day: time
    days_of_week: List[int]
    meal_template_id: Optional[int] = None
    id: Optional[int] = None


@dataclass
class TemplateItemData:
    name: str
    calories: int
    portion: float = 1.0
    unit: str = "serving"
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0


class PlanStore(BaseRepository[DietPlan]):
    """CRUD for diet plans with the single-active invariant."""

    def __init__(self, session: Session, bus: EventBus = GLOBAL_EVENT_BUS):
        super().__init__(DietPlan, session)
        self.bus = bus

    # Queries ---------------------------------------------------------------

    def get_plan(self, plan_id: int) -> DietPlan:
        return self.get_or_404(plan_id)

    def list_plans(self) -> List[DietPlan]:
        return self.session.query(DietPlan).order_by(DietPlan.created_at.desc(), DietPlan.id.desc()).all()

    def active_plans(self) -> List[DietPlan]:
        return (
            self.session.query(DietPlan)
            .filter(DietPlan.is_active.is_(True))
            .order_by(DietPlan.created_at.desc())
            .all()
        )

    def get_scheduled_meal(self, scheduled_meal_id: int) -> ScheduledMeal:
        return BaseRepository(ScheduledMeal, self.session).get_or_404(scheduled_meal_id)

    def get_meal_template(self, template_id: int) -> MealTemplate:
        return BaseRepository(MealTemplate, self.session).get_or_404(template_id)

    def list_meal_templates(self) -> List[MealTemplate]:
        return self.session.query(MealTemplate).order_by(MealTemplate.name, MealTemplate.id).all()

    # Plans -----------------------------------------------------------------

    def create_plan(
        self,
        name: str,
        scheduled_meals: List[ScheduledMealData],
        description: Optional[str] = None,
        is_active: bool = True,
        daily_calorie_goal: Optional[int] = None,
    ) -> DietPlan:
        """Create a plan; an active plan replaces the currently active one.

        Raises:
            ValidationError: On an empty name, no scheduled meals, bad weekdays,
                an unknown category or template, or a non-positive calorie goal.
        """
        self._validate_plan_fields(name, daily_calorie_goal)
        self._validate_meals(scheduled_meals)

        plan = DietPlan(
            name=name.strip(),
            description=description,
            is_active=is_active,
            daily_calorie_goal=daily_calorie_goal,
            scheduled_meals=[self._build_meal(data, position) for position, data in enumerate(scheduled_meals)],
        )
        with self.transaction("create_plan"):
            if is_active:
                self._deactivate_others(None)
            self.session.add(plan)
        logger.info("Created plan %s '%s' with %d meals (active=%s)", plan.id, plan.name, len(scheduled_meals), is_active)
        self._changed(plan.id, "created")
        return plan

    def update_plan(
        self,
        plan_id: int,
        name: str,
        scheduled_meals: List[ScheduledMealData],
        description: Optional[str] = None,
        is_active: bool = True,
        daily_calorie_goal: Optional[int] = None,
    ) -> DietPlan:
        """Replace a plan's fields and scheduled meals.

        Meals whose id belongs to this plan are updated in place, meals without
        an id are added, and existing meals not listed are removed together
        with their pending ledger rows.
        """
        plan = self.get_plan(plan_id)
        self._validate_plan_fields(name, daily_calorie_goal)
        self._validate_meals(scheduled_meals)

        existing = {m.id: m for m in plan.scheduled_meals}
        unknown = [d.id for d in scheduled_meals if d.id is not None and d.id not in existing]
        if unknown:
            raise ValidationError(f"Scheduled meals {unknown} do not belong to plan {plan_id}", field="scheduled_meals")

        kept_ids = {d.id for d in scheduled_meals if d.id is not None}
        removed_ids = [mid for mid in existing if mid not in kept_ids]
        with self.transaction("update_plan"):
            if is_active:
                self._deactivate_others(plan.id)
            meals = []
            for position, data in enumerate(scheduled_meals):
                if data.id is not None:
                    meal = existing[data.id]
                    self._apply_meal(meal, data, position)
                else:
                    meal = self._build_meal(data, position)
                meals.append(meal)
            plan.scheduled_meals = meals
            plan.name = name.strip()
            plan.description = description
            plan.is_active = is_active
            plan.daily_calorie_goal = daily_calorie_goal
            CompletionLedger(self.session).purge_pending(removed_ids)
        logger.info("Updated plan %s (%d meals, %d removed)", plan.id, len(meals), len(removed_ids))
        self._changed(plan.id, "updated")
        return plan

    def set_active(self, plan_id: int) -> DietPlan:
        """Make ``plan_id`` the only active plan in one transaction."""
        plan = self.get_plan(plan_id)
        with self.transaction("set_active"):
            self._deactivate_others(plan.id)
            plan.is_active = True
        logger.info("Activated plan %s", plan.id)
        self._changed(plan.id, "activated")
        return plan

    def deactivate(self, plan_id: int) -> DietPlan:
        plan = self.get_plan(plan_id)
        with self.transaction("deactivate_plan"):
            plan.is_active = False
        logger.info("Deactivated plan %s", plan.id)
        self._changed(plan.id, "deactivated")
        return plan

    def delete_plan(self, plan_id: int) -> List[int]:
        """Delete a plan and its scheduled meals.

        Pending ledger rows of the removed meals are purged in the same
        transaction; completed and skipped rows stay as history.

        Returns:
            Ids of the scheduled meals that were removed.
        """
        plan = self.get_plan(plan_id)
        removed_ids = [m.id for m in plan.scheduled_meals]
        with self.transaction("delete_plan"):
            CompletionLedger(self.session).purge_pending(removed_ids)
            self.session.delete(plan)
        logger.info("Deleted plan %s with %d scheduled meals", plan_id, len(removed_ids))
        self._changed(plan_id, "deleted")
        return removed_ids

    # Scheduled meals -------------------------------------------------------

    def add_scheduled_meal(self, plan_id: int, data: ScheduledMealData) -> ScheduledMeal:
        plan = self.get_plan(plan_id)
        self._validate_meals([data])
        meal = self._build_meal(data, len(plan.scheduled_meals))
        with self.transaction("add_scheduled_meal"):
            plan.scheduled_meals.append(meal)
        logger.info("Added scheduled meal %s to plan %s", meal.id, plan.id)
        self._changed(plan.id, "meal_added")
        return meal

    def update_scheduled_meal(self, scheduled_meal_id: int, data: ScheduledMealData) -> ScheduledMeal:
        meal = self.get_scheduled_meal(scheduled_meal_id)
        self._validate_meals([data])
        with self.transaction("update_scheduled_meal"):
            self._apply_meal(meal, data, meal.position)
            # Pending reminders of the old schedule are re-derived by the next reschedule.
            CompletionLedger(self.session).purge_pending([meal.id])
        self._changed(meal.plan_id, "meal_updated")
        return meal

    def delete_scheduled_meal(self, scheduled_meal_id: int) -> None:
        """Remove a scheduled meal; a plan must keep at least one."""
        meal = self.get_scheduled_meal(scheduled_meal_id)
        plan = meal.diet_plan
        if len(plan.scheduled_meals) <= 1:
            raise ValidationError("A diet plan must have at least one scheduled meal", field="scheduled_meals")
        with self.transaction("delete_scheduled_meal"):
            CompletionLedger(self.session).purge_pending([meal.id])
            plan.scheduled_meals.remove(meal)
        self._changed(plan.id, "meal_deleted")

    # Nutrition templates ---------------------------------------------------

    def create_meal_template(self, name: str, items: List[TemplateItemData], notes: Optional[str] = None) -> MealTemplate:
        if not name or not name.strip():
            raise ValidationError("Template name is required", field="name")
        if any(item.calories < 0 for item in items):
            raise ValidationError("Template item calories cannot be negative", field="items")
        template = MealTemplate(
            name=name.strip(),
            notes=notes,
            items=json.dumps([item.__dict__ for item in items]),
        )
        with self.transaction("create_meal_template"):
            self.session.add(template)
        logger.info("Created meal template %s (%s kcal)", template.id, template.expected_calories)
        return template

    # Helpers ---------------------------------------------------------------

    def _deactivate_others(self, keep_id: Optional[int]) -> None:
        query = self.session.query(DietPlan).filter(DietPlan.is_active.is_(True))
        if keep_id is not None:
            query = query.filter(DietPlan.id != keep_id)
        query.update({DietPlan.is_active: False}, synchronize_session="fetch")

    def _validate_plan_fields(self, name: str, daily_calorie_goal: Optional[int]) -> None:
        if not name or not name.strip():
            raise ValidationError("Plan name is required", field="name")
        if daily_calorie_goal is not None and daily_calorie_goal <= 0:
            raise ValidationError("Daily calorie goal must be positive", field="daily_calorie_goal")

    def _validate_meals(self, meals: List[ScheduledMealData]) -> None:
        if not meals:
            raise ValidationError("A diet plan must have at least one scheduled meal", field="scheduled_meals")
        for data in meals:
            if not data.name or not data.name.strip():
                raise ValidationError("Scheduled meal name is required", field="name")
            try:
                MealCategory(data.category)
            except ValueError:
                raise ValidationError(f"Unknown meal category '{data.category}'", field="category") from None
            data.days_of_week = normalize_weekdays(data.days_of_week)
            if data.meal_template_id is not None:
                self.get_meal_template(data.meal_template_id)

    def _build_meal(self, data: ScheduledMealData, position: int) -> ScheduledMeal:
        meal = ScheduledMeal()
        self._apply_meal(meal, data, position)
        return meal

    @staticmethod
    def _apply_meal(meal: ScheduledMeal, data: ScheduledMealData, position: int) -> None:
        meal.name = data.name.strip()
        meal.category = MealCategory(data.category).value
        meal.time_of_day = data.time_of_day.replace(second=0, microsecond=0)
        meal.weekdays = data.days_of_week
        meal.position = position
        meal.meal_template_id = data.meal_template_id

    def _changed(self, plan_id: int, action: str) -> None:
        self.bus.publish(PLAN_CHANGED, {"plan_id": plan_id, "action": action})


__all__ = ["PlanStore", "ScheduledMealData", "TemplateItemData"]
