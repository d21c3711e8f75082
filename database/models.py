"""SQLAlchemy ORM models for the diet adherence service.

This module defines the database schema: DietPlan, ScheduledMeal,
MealTemplate, MealReminder (the per-occurrence completion ledger) and the
LoggedMeal records produced by food logging. Line items and weekday sets are
stored as JSON-encoded text columns.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime
from enum import Enum
import json

Base = declarative_base()


class MealCategory(str, Enum):
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"
    snack = "snack"


class DietPlan(Base):
    """A named diet plan made of weekly recurring scheduled meals.

    At most one plan has ``is_active`` set; the plan store enforces it.
    """

    __tablename__ = "diet_plans"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=False, index=True)
    daily_calorie_goal = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    scheduled_meals = relationship(
        "ScheduledMeal",
        back_populates="diet_plan",
        cascade="all, delete-orphan",
        order_by="ScheduledMeal.position",
    )

    def scheduled_meals_for(self, weekday: int):
        """Scheduled meals that recur on the given weekday (1 = Sunday)."""
        return [m for m in self.scheduled_meals if weekday in m.weekdays]


class MealTemplate(Base):
    """Nutrition template a scheduled meal is expected to match."""

    __tablename__ = "meal_templates"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    notes = Column(Text, nullable=True)
    items = Column(Text, nullable=False, default="[]")
    created_at = Column(DateTime, default=datetime.now)

    @property
    def template_items(self):
        return json.loads(self.items) if self.items else []

    @property
    def expected_calories(self) -> int:
        return int(sum(item.get("calories", 0) for item in self.template_items))


class ScheduledMeal(Base):
    """A meal slot repeating on a set of weekdays at a wall-clock time."""

    __tablename__ = "scheduled_meals"
    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("diet_plans.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=False)
    time_of_day = Column(Time, nullable=False)
    days_of_week = Column(Text, nullable=False)  # JSON list, 1 = Sunday .. 7 = Saturday
    position = Column(Integer, nullable=False, default=0)
    meal_template_id = Column(Integer, ForeignKey("meal_templates.id", ondelete="SET NULL"), nullable=True)

    diet_plan = relationship("DietPlan", back_populates="scheduled_meals")
    meal_template = relationship("MealTemplate")

    @property
    def weekdays(self):
        return json.loads(self.days_of_week) if self.days_of_week else []

    @weekdays.setter
    def weekdays(self, value):
        self.days_of_week = json.dumps(list(value))

    @property
    def expected_calories(self):
        """Calorie target from the linked template, or None without one."""
        if self.meal_template is None:
            return None
        return self.meal_template.expected_calories


class MealReminder(Base):
    """Completion ledger row: one per (scheduled meal, calendar date).

    A skip is stored as ``was_completed`` with no ``completed_meal_id``.
    """

    __tablename__ = "meal_reminders"
    __table_args__ = (
        UniqueConstraint("scheduled_meal_id", "occurrence_date", name="uq_meal_reminder_occurrence"),
    )
    id = Column(Integer, primary_key=True, index=True)
    scheduled_meal_id = Column(Integer, nullable=False, index=True)
    occurrence_date = Column(Date, nullable=False, index=True)
    notification_id = Column(String, nullable=True)
    was_completed = Column(Boolean, nullable=False, default=False)
    completed_meal_id = Column(Integer, nullable=True, index=True)
    completed_at = Column(DateTime, nullable=True)
    goal_achieved = Column(Boolean, nullable=True)
    goal_deviation = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    @property
    def is_skipped(self) -> bool:
        return bool(self.was_completed) and self.completed_meal_id is None

    @property
    def is_completion(self) -> bool:
        return bool(self.was_completed) and self.completed_meal_id is not None


class LoggedMeal(Base):
    """A meal the user actually ate, as recorded by food logging."""

    __tablename__ = "logged_meals"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    timestamp = Column(DateTime, nullable=False, index=True)
    category = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    total_calories = Column(Integer, nullable=False, default=0)
    total_protein = Column(Float, nullable=False, default=0.0)
    total_carbs = Column(Float, nullable=False, default=0.0)
    total_fat = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, default=datetime.now)

    items = relationship("LoggedMealItem", back_populates="meal", cascade="all, delete-orphan")


class LoggedMealItem(Base):
    """A single food line inside a logged meal."""

    __tablename__ = "logged_meal_items"
    id = Column(Integer, primary_key=True, index=True)
    meal_id = Column(Integer, ForeignKey("logged_meals.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    portion = Column(Float, nullable=True)
    unit = Column(String, nullable=True)
    calories = Column(Integer, nullable=False, default=0)
    protein_g = Column(Float, nullable=False, default=0.0)
    carbs_g = Column(Float, nullable=False, default=0.0)
    fat_g = Column(Float, nullable=False, default=0.0)

    meal = relationship("LoggedMeal", back_populates="items")
