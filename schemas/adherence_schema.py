"""Schemas for adherence reports, trends and streaks."""

from pydantic import BaseModel
from typing import List, Optional

from schemas.meal_schema import LoggedMealResponse
from services.adherence import AdherenceReport, DailyAdherence, OccurrenceState, tip


class CompletedMealResponse(BaseModel):
    meal_id: int
    meal_name: str
    calories: int
    food_items_summary: str
    display: str


class OccurrenceResponse(BaseModel):
    scheduled_meal_id: int
    name: str
    category: str
    scheduled_at: str
    status: str
    expected_calories: Optional[int] = None
    goal_achieved: Optional[bool] = None
    goal_deviation: Optional[float] = None
    completed_meal: Optional[CompletedMealResponse] = None

    @classmethod
    def from_state(cls, state: OccurrenceState) -> "OccurrenceResponse":
        info = state.meal_info
        return cls(
            scheduled_meal_id=state.scheduled_meal.id,
            name=state.scheduled_meal.name,
            category=state.scheduled_meal.category,
            scheduled_at=state.occurrence.scheduled_at.isoformat(),
            status=state.status.value,
            expected_calories=state.scheduled_meal.expected_calories,
            goal_achieved=state.goal_achieved,
            goal_deviation=state.goal_deviation,
            completed_meal=CompletedMealResponse(
                meal_id=info.meal_id,
                meal_name=info.meal_name,
                calories=info.calories,
                food_items_summary=info.food_items_summary,
                display=info.display_string,
            ) if info else None,
        )


class AdherenceReportResponse(BaseModel):
    """Adherence summary for one calendar day."""

    date: str
    scheduled: List[OccurrenceResponse]
    completed: List[OccurrenceResponse]
    skipped: List[OccurrenceResponse]
    missed: List[OccurrenceResponse]
    pending: List[OccurrenceResponse]
    off_diet_meals: List[LoggedMealResponse]
    off_diet_calories: int
    completion_rate: float
    goal_achievement_rate: float
    goal_achieved_meals: List[int]
    goal_missed_meals: List[int]
    total_calories: int
    daily_calorie_goal: Optional[int] = None
    has_perfect_adherence: bool
    tip: str

    @classmethod
    def from_report(cls, report: AdherenceReport) -> "AdherenceReportResponse":
        def states(items):
            return [OccurrenceResponse.from_state(s) for s in items]

        return cls(
            date=report.date.isoformat(),
            scheduled=states(report.scheduled),
            completed=states(report.completed),
            skipped=states(report.skipped),
            missed=states(report.missed),
            pending=states(report.pending),
            off_diet_meals=[LoggedMealResponse.from_model(m) for m in report.off_diet_meals],
            off_diet_calories=report.off_diet_calories,
            completion_rate=report.completion_rate,
            goal_achievement_rate=report.goal_achievement_rate,
            goal_achieved_meals=report.goal_achieved_meals,
            goal_missed_meals=report.goal_missed_meals,
            total_calories=report.total_calories,
            daily_calorie_goal=report.daily_calorie_goal,
            has_perfect_adherence=report.has_perfect_adherence,
            tip=tip(report),
        )


class DailyAdherenceResponse(BaseModel):
    date: str
    completion_rate: float
    completed_meals: int
    total_meals: int
    goal_achievement_rate: float

    @classmethod
    def from_day(cls, day: DailyAdherence) -> "DailyAdherenceResponse":
        return cls(
            date=day.date.isoformat(),
            completion_rate=day.completion_rate,
            completed_meals=day.completed_meals,
            total_meals=day.total_meals,
            goal_achievement_rate=day.goal_achievement_rate,
        )


class TrendResponse(BaseModel):
    days: List[DailyAdherenceResponse]
    best_day: Optional[str] = None


class StreakResponse(BaseModel):
    days: int
