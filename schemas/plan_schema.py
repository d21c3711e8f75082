"""Schemas for diet plans, scheduled meals and nutrition templates."""

from datetime import time
from pydantic import BaseModel, Field
from typing import List, Optional

from database import models
from services.plan_store import ScheduledMealData, TemplateItemData
from services.recurrence import Occurrence, day_names


class ScheduledMealPayload(BaseModel):
    """One recurring meal slot inside a plan request."""

    id: Optional[int] = Field(None, examples=[3], description="Existing scheduled meal id (updates only)")
    name: str = Field(..., min_length=1, examples=["Breakfast"])
    category: models.MealCategory = Field(..., examples=["breakfast"])
    time_of_day: time = Field(..., examples=["08:00"], description="Local wall-clock time")
    days_of_week: List[int] = Field(..., min_length=1, examples=[[2, 3, 4, 5, 6]], description="1 = Sunday .. 7 = Saturday")
    meal_template_id: Optional[int] = Field(None, examples=[1], description="Nutrition template with the calorie target")

    def to_data(self) -> ScheduledMealData:
        return ScheduledMealData(
            id=self.id,
            name=self.name,
            category=self.category.value,
            time_of_day=self.time_of_day,
            days_of_week=list(self.days_of_week),
            meal_template_id=self.meal_template_id,
        )


class PlanCreateRequest(BaseModel):
    """Payload for creating or replacing a diet plan."""

    name: str = Field(..., min_length=1, examples=["Weekday cut"])
    description: Optional[str] = Field(None, examples=["Light breakfasts, no late snacks"])
    is_active: bool = Field(True, description="Activating a plan deactivates the current one")
    daily_calorie_goal: Optional[int] = Field(None, gt=0, examples=[1800])
    scheduled_meals: List[ScheduledMealPayload] = Field(default_factory=list)

    def meal_data(self) -> List[ScheduledMealData]:
        return [m.to_data() for m in self.scheduled_meals]


class ScheduledMealResponse(BaseModel):
    id: int
    plan_id: int
    name: str
    category: str
    time_of_day: str
    days_of_week: List[int]
    day_names: str
    meal_template_id: Optional[int] = None
    expected_calories: Optional[int] = None

    @classmethod
    def from_model(cls, meal: models.ScheduledMeal) -> "ScheduledMealResponse":
        return cls(
            id=meal.id,
            plan_id=meal.plan_id,
            name=meal.name,
            category=meal.category,
            time_of_day=meal.time_of_day.strftime("%H:%M"),
            days_of_week=meal.weekdays,
            day_names=day_names(meal.weekdays),
            meal_template_id=meal.meal_template_id,
            expected_calories=meal.expected_calories,
        )


class PlanResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    daily_calorie_goal: Optional[int] = None
    created_at: str
    scheduled_meals: List[ScheduledMealResponse]

    @classmethod
    def from_model(cls, plan: models.DietPlan) -> "PlanResponse":
        return cls(
            id=plan.id,
            name=plan.name,
            description=plan.description,
            is_active=plan.is_active,
            daily_calorie_goal=plan.daily_calorie_goal,
            created_at=plan.created_at.isoformat(),
            scheduled_meals=[ScheduledMealResponse.from_model(m) for m in plan.scheduled_meals],
        )


class TemplateItemPayload(BaseModel):
    name: str = Field(..., min_length=1, examples=["Oatmeal"])
    calories: int = Field(..., ge=0, examples=[300])
    portion: float = Field(1.0, gt=0)
    unit: str = Field("serving")
    protein_g: float = Field(0.0, ge=0)
    carbs_g: float = Field(0.0, ge=0)
    fat_g: float = Field(0.0, ge=0)


class MealTemplateCreateRequest(BaseModel):
    """Nutrition template a scheduled meal can be checked against."""

    name: str = Field(..., min_length=1, examples=["Oats and berries"])
    notes: Optional[str] = None
    items: List[TemplateItemPayload] = Field(default_factory=list)

    def item_data(self) -> List[TemplateItemData]:
        return [TemplateItemData(**item.model_dump()) for item in self.items]


class MealTemplateResponse(BaseModel):
    id: int
    name: str
    notes: Optional[str] = None
    items: List[TemplateItemPayload]
    expected_calories: int

    @classmethod
    def from_model(cls, template: models.MealTemplate) -> "MealTemplateResponse":
        return cls(
            id=template.id,
            name=template.name,
            notes=template.notes,
            items=[TemplateItemPayload(**item) for item in template.template_items],
            expected_calories=template.expected_calories,
        )


class NextOccurrenceResponse(BaseModel):
    scheduled_meal_id: int
    occurrence_date: Optional[str] = None
    scheduled_at: Optional[str] = None

    @classmethod
    def from_occurrence(cls, scheduled_meal_id: int, occ: Optional[Occurrence]) -> "NextOccurrenceResponse":
        if occ is None:
            return cls(scheduled_meal_id=scheduled_meal_id)
        return cls(
            scheduled_meal_id=scheduled_meal_id,
            occurrence_date=occ.occurrence_date.isoformat(),
            scheduled_at=occ.scheduled_at.isoformat(),
        )
