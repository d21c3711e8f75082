"""Food log API router.

Logs meals the user ate, lists them per day and deletes them. Deleting a
meal reopens any occurrence it completed.
"""

from datetime import date
from fastapi import APIRouter, Depends, Query
from typing import List

from core.logger import get_logger
from database.deps import get_read_tracker, get_tracker
from schemas.meal_schema import LoggedMealCreateRequest, LoggedMealResponse
from services.diet_tracker import DietTracker

logger = get_logger("api.meals")
router = APIRouter(prefix="/api", tags=["meals"])


@router.post("/meals", response_model=LoggedMealResponse, status_code=201)
def log_meal(payload: LoggedMealCreateRequest, tracker: DietTracker = Depends(get_tracker)):
    """Record a meal that is not tied to a scheduled occurrence.

    Such a meal counts as off-plan until it is linked to an occurrence.
    """
    meal_id = tracker.meal_log.save_meal(payload.to_data())
    return LoggedMealResponse.from_model(tracker.meal_log.get_meal(meal_id))


@router.get("/meals", response_model=List[LoggedMealResponse])
def list_meals(day: date = Query(..., alias="date"), tracker: DietTracker = Depends(get_read_tracker)):
    """Return the meals logged on one local calendar day."""
    return [LoggedMealResponse.from_model(m) for m in tracker.meal_log.meals_for_date(day)]


@router.get("/meals/{meal_id}", response_model=LoggedMealResponse)
def get_meal(meal_id: int, tracker: DietTracker = Depends(get_read_tracker)):
    return LoggedMealResponse.from_model(tracker.meal_log.get_meal(meal_id))


@router.delete("/meals/{meal_id}")
async def delete_meal(meal_id: int, tracker: DietTracker = Depends(get_tracker)):
    await tracker.delete_meal(meal_id)
    return {"deleted": meal_id}
