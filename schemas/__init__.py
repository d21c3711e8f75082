"""Pydantic schema package for request and response models."""

from .plan_schema import PlanCreateRequest, PlanResponse, ScheduledMealPayload, ScheduledMealResponse
from .meal_schema import LoggedMealCreateRequest, LoggedMealResponse
from .adherence_schema import AdherenceReportResponse, TrendResponse, StreakResponse
from .reminder_schema import CompletionRecordResponse, OccurrenceCompleteRequest, RescheduleResponse

__all__ = [
    "PlanCreateRequest",
    "PlanResponse",
    "ScheduledMealPayload",
    "ScheduledMealResponse",
    "LoggedMealCreateRequest",
    "LoggedMealResponse",
    "AdherenceReportResponse",
    "TrendResponse",
    "StreakResponse",
    "CompletionRecordResponse",
    "OccurrenceCompleteRequest",
    "RescheduleResponse",
]
