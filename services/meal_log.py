"""Food logging collaborator.

Stores the meals a user actually ate. The adherence core only reads these
records and links them from the completion ledger; it never creates them.
Totals are computed from line items when items are supplied.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from core.events import EventBus, GLOBAL_EVENT_BUS, MEAL_DELETED, MEAL_LOGGED
from core.logger import get_logger
from core.repository import BaseRepository
from database.models import LoggedMeal, LoggedMealItem
from services.completion_ledger import CompletionLedger

logger = get_logger("services.meal_log")


@dataclass
class MealItemData:
    name: str
    calories: int = 0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    portion: Optional[float] = None
    unit: Optional[str] = None


@dataclass
class LoggedMealData:
    """Input for `MealLog.save_meal`.

    ``total_calories`` and the macro totals are used only when ``items`` is
    empty; otherwise they are derived from the items.
    """

    name: str
    timestamp: datetime
    category: Optional[str] = None
    notes: Optional[str] = None
    total_calories: int = 0
    total_protein: float = 0.0
    total_carbs: float = 0.0
    total_fat: float = 0.0
    items: List[MealItemData] = field(default_factory=list)


class MealLog(BaseRepository[LoggedMeal]):
    """SQLAlchemy-backed food log."""

    def __init__(self, session: Session, bus: EventBus = GLOBAL_EVENT_BUS):
        super().__init__(LoggedMeal, session)
        self.bus = bus

    def save_meal(self, data: LoggedMealData) -> int:
        """Persist a logged meal and broadcast ``meal.logged``.

        Returns:
            The new meal id.
        """
        items = [
            LoggedMealItem(
                name=i.name,
                portion=i.portion,
                unit=i.unit,
                calories=int(i.calories),
                protein_g=i.protein_g,
                carbs_g=i.carbs_g,
                fat_g=i.fat_g,
            )
            for i in data.items
        ]
        meal = LoggedMeal(
            name=data.name,
            timestamp=data.timestamp,
            category=data.category,
            notes=data.notes,
            items=items,
        )
        if items:
            meal.total_calories = sum(i.calories for i in items)
            meal.total_protein = round(sum(i.protein_g for i in items), 1)
            meal.total_carbs = round(sum(i.carbs_g for i in items), 1)
            meal.total_fat = round(sum(i.fat_g for i in items), 1)
        else:
            meal.total_calories = int(data.total_calories)
            meal.total_protein = data.total_protein
            meal.total_carbs = data.total_carbs
            meal.total_fat = data.total_fat

        with self.transaction("save_meal"):
            self.session.add(meal)
        logger.info("Logged meal %s '%s' (%s kcal)", meal.id, meal.name, meal.total_calories)
        self.bus.publish(MEAL_LOGGED, {"meal_id": meal.id, "timestamp": meal.timestamp})
        return meal.id

    def get_meal(self, meal_id: int) -> LoggedMeal:
        return self.get_or_404(meal_id)

    def meals_for_date(self, day: date) -> List[LoggedMeal]:
        """Meals whose timestamp falls on ``day``, oldest first."""
        start = datetime.combine(day, time.min)
        end = start + timedelta(days=1)
        return (
            self.session.query(LoggedMeal)
            .options(selectinload(LoggedMeal.items))
            .filter(LoggedMeal.timestamp >= start, LoggedMeal.timestamp < end)
            .order_by(LoggedMeal.timestamp)
            .all()
        )

    def delete_meal(self, meal_id: int) -> None:
        """Delete a logged meal and reopen any occurrence it completed."""
        meal = self.get_or_404(meal_id)
        with self.transaction("delete_meal"):
            released = CompletionLedger(self.session).release_meal(meal_id)
            self.session.delete(meal)
        logger.info("Deleted meal %s (%s linked occurrences reopened)", meal_id, released)
        self.bus.publish(MEAL_DELETED, {"meal_id": meal_id})


__all__ = ["MealLog", "LoggedMealData", "MealItemData"]
