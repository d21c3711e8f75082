"""Schemas for occurrence completion and reminder scheduling."""

from pydantic import BaseModel, Field, model_validator
from typing import Dict, List, Optional

from database import models
from schemas.meal_schema import LoggedMealCreateRequest
from services.notifications import NotificationRequest
from services.reminder_scheduler import ReminderAction, RescheduleResult


class OccurrenceCompleteRequest(BaseModel):
    """Link an already logged meal, or log a new one, for an occurrence."""

    meal_id: Optional[int] = Field(None, examples=[12], description="Existing logged meal to link")
    meal: Optional[LoggedMealCreateRequest] = Field(None, description="Meal to log and link in one step")

    @model_validator(mode="after")
    def _exactly_one_source(self):
        if (self.meal_id is None) == (self.meal is None):
            raise ValueError("Provide exactly one of meal_id or meal")
        return self


class CompletionRecordResponse(BaseModel):
    id: int
    scheduled_meal_id: int
    occurrence_date: str
    was_completed: bool
    skipped: bool
    completed_meal_id: Optional[int] = None
    completed_at: Optional[str] = None
    goal_achieved: Optional[bool] = None
    goal_deviation: Optional[float] = None
    notification_id: Optional[str] = None

    @classmethod
    def from_model(cls, record: models.MealReminder) -> "CompletionRecordResponse":
        return cls(
            id=record.id,
            scheduled_meal_id=record.scheduled_meal_id,
            occurrence_date=record.occurrence_date.isoformat(),
            was_completed=record.was_completed,
            skipped=record.is_skipped,
            completed_meal_id=record.completed_meal_id,
            completed_at=record.completed_at.isoformat() if record.completed_at else None,
            goal_achieved=record.goal_achieved,
            goal_deviation=record.goal_deviation,
            notification_id=record.notification_id,
        )


class RescheduleResponse(BaseModel):
    cancelled: int
    scheduled: int
    skipped_completed: int
    skipped_past: int
    not_authorized: int
    failed: int
    permission_granted: bool
    notification_ids: List[str]

    @classmethod
    def from_result(cls, result: RescheduleResult) -> "RescheduleResponse":
        return cls(**result.__dict__)


class PendingReminderResponse(BaseModel):
    identifier: str
    fire_at: str
    title: str
    body: str
    payload: Dict[str, str]

    @classmethod
    def from_request(cls, request: NotificationRequest) -> "PendingReminderResponse":
        return cls(
            identifier=request.identifier,
            fire_at=request.fire_at.isoformat(),
            title=request.title,
            body=request.body,
            payload=request.payload,
        )


class ReminderActionResponse(BaseModel):
    """The occurrence a tapped meal reminder opens."""

    scheduled_meal_id: int
    meal_name: str
    category: str
    occurrence_date: str

    @classmethod
    def from_action(cls, action: ReminderAction) -> "ReminderActionResponse":
        return cls(
            scheduled_meal_id=action.scheduled_meal_id,
            meal_name=action.meal_name,
            category=action.category.value,
            occurrence_date=action.occurrence_date.isoformat(),
        )
