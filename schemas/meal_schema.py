"""Schemas for logged meals."""

from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional

from database import models
from services.meal_log import LoggedMealData, MealItemData


class MealItemPayload(BaseModel):
    name: str = Field(..., min_length=1, examples=["Scrambled eggs"])
    calories: int = Field(0, ge=0, examples=[220])
    protein_g: float = Field(0.0, ge=0)
    carbs_g: float = Field(0.0, ge=0)
    fat_g: float = Field(0.0, ge=0)
    portion: Optional[float] = Field(None, gt=0)
    unit: Optional[str] = None


class LoggedMealCreateRequest(BaseModel):
    """A meal the user ate. Totals are ignored when items are given."""

    name: str = Field(..., min_length=1, examples=["Breakfast"])
    timestamp: datetime = Field(..., examples=["2026-10-21T08:15:00"], description="Local time the meal was eaten")
    category: Optional[models.MealCategory] = Field(None, examples=["breakfast"])
    notes: Optional[str] = Field(None, max_length=2000)
    total_calories: int = Field(0, ge=0, examples=[420])
    total_protein: float = Field(0.0, ge=0)
    total_carbs: float = Field(0.0, ge=0)
    total_fat: float = Field(0.0, ge=0)
    items: List[MealItemPayload] = Field(default_factory=list)

    def to_data(self) -> LoggedMealData:
        return LoggedMealData(
            name=self.name,
            timestamp=self.timestamp,
            category=self.category.value if self.category else None,
            notes=self.notes,
            total_calories=self.total_calories,
            total_protein=self.total_protein,
            total_carbs=self.total_carbs,
            total_fat=self.total_fat,
            items=[MealItemData(**item.model_dump()) for item in self.items],
        )


class LoggedMealResponse(BaseModel):
    id: int
    name: str
    timestamp: str
    category: Optional[str] = None
    notes: Optional[str] = None
    total_calories: int
    total_protein: float
    total_carbs: float
    total_fat: float
    items: List[MealItemPayload] = []

    @classmethod
    def from_model(cls, meal: models.LoggedMeal) -> "LoggedMealResponse":
        return cls(
            id=meal.id,
            name=meal.name,
            timestamp=meal.timestamp.isoformat(),
            category=meal.category,
            notes=meal.notes,
            total_calories=meal.total_calories,
            total_protein=meal.total_protein,
            total_carbs=meal.total_carbs,
            total_fat=meal.total_fat,
            items=[
                MealItemPayload(
                    name=i.name,
                    calories=i.calories,
                    protein_g=i.protein_g,
                    carbs_g=i.carbs_g,
                    fat_g=i.fat_g,
                    portion=i.portion,
                    unit=i.unit,
                )
                for i in meal.items
            ],
        )
