"""Diet plan API router.

CRUD for diet plans, their scheduled meals and nutrition templates. Every
mutation goes through the `DietTracker`, which reschedules meal reminders
after the change is committed.
"""

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from typing import List

from core.logger import get_logger
from database.deps import get_read_tracker, get_tracker
from schemas.plan_schema import (
    MealTemplateCreateRequest,
    MealTemplateResponse,
    NextOccurrenceResponse,
    PlanCreateRequest,
    PlanResponse,
    ScheduledMealPayload,
    ScheduledMealResponse,
)
from services.diet_tracker import DietTracker

logger = get_logger("api.plans")
router = APIRouter(prefix="/api", tags=["plans"])


@router.post("/plans", response_model=PlanResponse, status_code=201)
async def create_plan(payload: PlanCreateRequest, tracker: DietTracker = Depends(get_tracker)):
    """Create a diet plan with its scheduled meals.

    An active plan replaces the currently active one and reminders are
    rebuilt for it.

    Raises:
        ValidationError: If the plan has no meals or a meal is malformed.
    """
    logger.info("Creating plan '%s' with %d meals", payload.name, len(payload.scheduled_meals))
    plan = await tracker.create_plan(
        payload.name,
        payload.meal_data(),
        description=payload.description,
        is_active=payload.is_active,
        daily_calorie_goal=payload.daily_calorie_goal,
    )
    return await run_in_threadpool(PlanResponse.from_model, plan)


@router.get("/plans", response_model=List[PlanResponse])
def list_plans(tracker: DietTracker = Depends(get_read_tracker)):
    return [PlanResponse.from_model(p) for p in tracker.plans.list_plans()]


@router.get("/plans/{plan_id}", response_model=PlanResponse)
def get_plan(plan_id: int, tracker: DietTracker = Depends(get_read_tracker)):
    return PlanResponse.from_model(tracker.plans.get_plan(plan_id))


@router.put("/plans/{plan_id}", response_model=PlanResponse)
async def update_plan(plan_id: int, payload: PlanCreateRequest, tracker: DietTracker = Depends(get_tracker)):
    """Replace a plan; scheduled meals carrying an ``id`` keep their history."""
    plan = await tracker.update_plan(
        plan_id,
        payload.name,
        payload.meal_data(),
        description=payload.description,
        is_active=payload.is_active,
        daily_calorie_goal=payload.daily_calorie_goal,
    )
    return await run_in_threadpool(PlanResponse.from_model, plan)


@router.post("/plans/{plan_id}/activate", response_model=PlanResponse)
async def activate_plan(plan_id: int, tracker: DietTracker = Depends(get_tracker)):
    plan = await tracker.set_active(plan_id)
    return await run_in_threadpool(PlanResponse.from_model, plan)


@router.post("/plans/{plan_id}/deactivate", response_model=PlanResponse)
async def deactivate_plan(plan_id: int, tracker: DietTracker = Depends(get_tracker)):
    plan = await tracker.deactivate(plan_id)
    return await run_in_threadpool(PlanResponse.from_model, plan)


@router.delete("/plans/{plan_id}")
async def delete_plan(plan_id: int, tracker: DietTracker = Depends(get_tracker)):
    removed = await tracker.delete_plan(plan_id)
    return {"deleted": plan_id, "scheduled_meal_ids": removed}


@router.post("/plans/{plan_id}/meals", response_model=ScheduledMealResponse, status_code=201)
async def add_scheduled_meal(plan_id: int, payload: ScheduledMealPayload, tracker: DietTracker = Depends(get_tracker)):
    meal = await tracker.add_scheduled_meal(plan_id, payload.to_data())
    return await run_in_threadpool(ScheduledMealResponse.from_model, meal)


@router.get("/scheduled-meals/{scheduled_meal_id}/next", response_model=NextOccurrenceResponse)
def get_next_occurrence(scheduled_meal_id: int, tracker: DietTracker = Depends(get_read_tracker)):
    """When a scheduled meal next comes up; empty if its plan is not active."""
    occ = tracker.next_occurrence(scheduled_meal_id)
    return NextOccurrenceResponse.from_occurrence(scheduled_meal_id, occ)


@router.put("/scheduled-meals/{scheduled_meal_id}", response_model=ScheduledMealResponse)
async def update_scheduled_meal(
    scheduled_meal_id: int,
    payload: ScheduledMealPayload,
    tracker: DietTracker = Depends(get_tracker),
):
    meal = await tracker.update_scheduled_meal(scheduled_meal_id, payload.to_data())
    return await run_in_threadpool(ScheduledMealResponse.from_model, meal)


@router.delete("/scheduled-meals/{scheduled_meal_id}")
async def delete_scheduled_meal(scheduled_meal_id: int, tracker: DietTracker = Depends(get_tracker)):
    await tracker.delete_scheduled_meal(scheduled_meal_id)
    return {"deleted": scheduled_meal_id}


@router.post("/meal-templates", response_model=MealTemplateResponse, status_code=201)
def create_meal_template(payload: MealTemplateCreateRequest, tracker: DietTracker = Depends(get_tracker)):
    template = tracker.plans.create_meal_template(payload.name, payload.item_data(), notes=payload.notes)
    return MealTemplateResponse.from_model(template)


@router.get("/meal-templates", response_model=List[MealTemplateResponse])
def list_meal_templates(tracker: DietTracker = Depends(get_read_tracker)):
    return [MealTemplateResponse.from_model(t) for t in tracker.plans.list_meal_templates()]


@router.get("/meal-templates/{template_id}", response_model=MealTemplateResponse)
def get_meal_template(template_id: int, tracker: DietTracker = Depends(get_read_tracker)):
    return MealTemplateResponse.from_model(tracker.plans.get_meal_template(template_id))
