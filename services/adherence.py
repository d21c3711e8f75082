"""Adherence evaluation for diet plans.

Given a calendar day and the active plans, classifies every scheduled
occurrence as completed, skipped, missed or pending, separates off-plan
meals from the ones linked to occurrences, and reports goal achievement.

Goal achievement uses three calorie bands: a *match* is within
``MATCH_TOLERANCE_CALORIES`` of the target, *close* is within
``CLOSE_TOLERANCE_RATIO`` of it, anything else is a *mismatch*. Match and
close both count as achieved. Streak and insight logic depend on these exact
boundaries.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from core.clock import Clock, system_clock
from core.config import STREAK_LOOKBACK_DAYS, STREAK_THRESHOLD
from core.exceptions import ValidationError
from core.logger import get_logger
from database.models import DietPlan, LoggedMeal, MealReminder, ScheduledMeal
from services.completion_ledger import CompletionLedger
from services.meal_log import MealLog
from services.recurrence import Occurrence, occurrence_on

logger = get_logger("services.adherence")

MATCH_TOLERANCE_CALORIES = 50
CLOSE_TOLERANCE_RATIO = 0.20


class GoalStatus(str, Enum):
    match = "match"
    close = "close"
    mismatch = "mismatch"


@dataclass(frozen=True)
class GoalEvaluation:
    status: GoalStatus
    expected_calories: int
    actual_calories: int
    deviation: float

    @property
    def achieved(self) -> bool:
        return self.status in (GoalStatus.match, GoalStatus.close)

    @property
    def deviation_ratio(self) -> float:
        return self.deviation / self.expected_calories


def evaluate_goal(actual_calories: float, expected_calories: float) -> GoalEvaluation:
    """Classify how closely a meal's calories matched its target.

    Args:
        actual_calories: Calories of the logged meal.
        expected_calories: Calorie target of the occurrence, must be positive.

    Returns:
        GoalEvaluation whose ``deviation`` is the absolute calorie difference.

    Raises:
        ValidationError: If there is no positive target to compare against.
    """
    if not expected_calories or expected_calories <= 0:
        raise ValidationError("Goal evaluation needs a positive expected calorie target", field="expected_calories")
    diff = abs(actual_calories - expected_calories)
    if diff <= MATCH_TOLERANCE_CALORIES:
        status = GoalStatus.match
    elif diff / expected_calories <= CLOSE_TOLERANCE_RATIO:
        status = GoalStatus.close
    else:
        status = GoalStatus.mismatch
    return GoalEvaluation(status, int(expected_calories), int(actual_calories), float(diff))


class OccurrenceStatus(str, Enum):
    completed = "completed"
    skipped = "skipped"
    missed = "missed"
    pending = "pending"


@dataclass
class CompletedMealInfo:
    """Display details of the logged meal that completed an occurrence."""

    meal_id: int
    meal_name: str
    calories: int
    food_items_summary: str

    @property
    def display_string(self) -> str:
        if not self.food_items_summary:
            return f"{self.calories} cal"
        return f"{self.food_items_summary} • {self.calories} cal"

    @classmethod
    def from_meal(cls, meal: LoggedMeal) -> "CompletedMealInfo":
        names = [item.name for item in meal.items]
        summary = ", ".join(names[:3])
        if len(names) > 3:
            summary += "..."
        return cls(meal.id, meal.name, meal.total_calories, summary)


@dataclass
class OccurrenceState:
    occurrence: Occurrence
    scheduled_meal: ScheduledMeal
    status: OccurrenceStatus
    record: Optional[MealReminder] = None
    meal_info: Optional[CompletedMealInfo] = None

    @property
    def goal_achieved(self) -> Optional[bool]:
        return self.record.goal_achieved if self.record is not None else None

    @property
    def goal_deviation(self) -> Optional[float]:
        return self.record.goal_deviation if self.record is not None else None


@dataclass
class AdherenceReport:
    date: date
    scheduled: List[OccurrenceState] = field(default_factory=list)
    off_diet_meals: List[LoggedMeal] = field(default_factory=list)
    total_calories: int = 0
    daily_calorie_goal: Optional[int] = None

    def _with_status(self, status: OccurrenceStatus) -> List[OccurrenceState]:
        return [s for s in self.scheduled if s.status == status]

    @property
    def completed(self) -> List[OccurrenceState]:
        return self._with_status(OccurrenceStatus.completed)

    @property
    def skipped(self) -> List[OccurrenceState]:
        return self._with_status(OccurrenceStatus.skipped)

    @property
    def missed(self) -> List[OccurrenceState]:
        return self._with_status(OccurrenceStatus.missed)

    @property
    def pending(self) -> List[OccurrenceState]:
        return self._with_status(OccurrenceStatus.pending)

    @property
    def off_diet_calories(self) -> int:
        return sum(m.total_calories for m in self.off_diet_meals)

    @property
    def goal_achieved_meals(self) -> List[int]:
        return [s.scheduled_meal.id for s in self.completed if s.goal_achieved is True]

    @property
    def goal_missed_meals(self) -> List[int]:
        return [s.scheduled_meal.id for s in self.completed if s.goal_achieved is False]

    @property
    def completed_meal_details(self) -> Dict[int, CompletedMealInfo]:
        return {s.scheduled_meal.id: s.meal_info for s in self.completed if s.meal_info is not None}

    @property
    def completion_rate(self) -> float:
        # Nothing scheduled is reported as 0, not as perfect adherence.
        if not self.scheduled:
            return 0.0
        return len(self.completed) / len(self.scheduled)

    @property
    def goal_achievement_rate(self) -> float:
        completed = self.completed
        if not completed:
            return 0.0
        return len(self.goal_achieved_meals) / len(completed)

    @property
    def has_perfect_adherence(self) -> bool:
        return not self.missed and not self.off_diet_meals and not self.goal_missed_meals


@dataclass
class DailyAdherence:
    date: date
    completion_rate: float
    completed_meals: int
    total_meals: int
    goal_achievement_rate: float


class AdherenceEvaluator:
    """Computes adherence reports from plans, the ledger and the food log."""

    def __init__(self, session: Session, clock: Clock = system_clock,
                 ledger: CompletionLedger = None, meal_log: MealLog = None):
        self.session = session
        self.clock = clock
        self.ledger = ledger or CompletionLedger(session, clock)
        self.meal_log = meal_log or MealLog(session)

    def evaluate(self, day: date, active_plans: Iterable[DietPlan]) -> AdherenceReport:
        plans = list(active_plans)
        pairs = []
        for plan in plans:
            for scheduled_meal in plan.scheduled_meals:
                occ = occurrence_on(scheduled_meal, day)
                if occ is not None:
                    pairs.append((occ, scheduled_meal))
        pairs.sort(key=lambda p: (p[0].scheduled_at, p[0].scheduled_meal_id))

        records = self.ledger.fetch_range([occ.scheduled_meal_id for occ, _ in pairs], day, day)
        meals = self.meal_log.meals_for_date(day)
        meals_by_id = {m.id: m for m in meals}
        now = self.clock.now()

        report = AdherenceReport(
            date=day,
            total_calories=sum(m.total_calories for m in meals),
            daily_calorie_goal=next((p.daily_calorie_goal for p in plans if p.daily_calorie_goal), None),
        )
        for occ, scheduled_meal in pairs:
            record = records.get(occ.key)
            state = OccurrenceState(occ, scheduled_meal, OccurrenceStatus.pending, record)
            if record is not None and record.is_completion:
                state.status = OccurrenceStatus.completed
                meal = meals_by_id.get(record.completed_meal_id) or self.meal_log.get_by_id(record.completed_meal_id)
                if meal is not None:
                    state.meal_info = CompletedMealInfo.from_meal(meal)
            elif record is not None and record.is_skipped:
                state.status = OccurrenceStatus.skipped
            elif occ.scheduled_at < now:
                state.status = OccurrenceStatus.missed
            report.scheduled.append(state)

        linked = self.ledger.linked_meal_ids(meals_by_id)
        report.off_diet_meals = [m for m in meals if m.id not in linked]

        logger.debug(
            "Adherence %s: %d scheduled, %d completed, %d off-plan",
            day.isoformat(), len(report.scheduled), len(report.completed), len(report.off_diet_meals),
        )
        return report

    def weekly_trend(self, start: date, end: date, active_plans: Iterable[DietPlan]) -> List[DailyAdherence]:
        """Per-day adherence for every date in ``[start, end]``."""
        plans = list(active_plans)
        trend = []
        day = start
        while day <= end:
            report = self.evaluate(day, plans)
            trend.append(DailyAdherence(
                date=day,
                completion_rate=report.completion_rate,
                completed_meals=len(report.completed),
                total_meals=len(report.scheduled),
                goal_achievement_rate=report.goal_achievement_rate,
            ))
            day += timedelta(days=1)
        return trend

    def streak(self, active_plans: Iterable[DietPlan], threshold: float = STREAK_THRESHOLD,
               lookback_days: int = STREAK_LOOKBACK_DAYS) -> int:
        """Count consecutive adherent days ending today.

        Days with nothing scheduled are passed over. Today only adds to the
        streak; an unfinished today below the threshold does not break it.
        """
        plans = list(active_plans)
        today = self.clock.today()
        streak = 0
        for offset in range(lookback_days):
            day = today - timedelta(days=offset)
            report = self.evaluate(day, plans)
            if not report.scheduled:
                continue
            if report.completion_rate >= threshold:
                streak += 1
            elif day != today:
                break
        return streak


def best_day(trend: Iterable[DailyAdherence]) -> Optional[DailyAdherence]:
    """Day with the highest completion rate among days that had meals scheduled."""
    candidates = [d for d in trend if d.total_meals > 0]
    if not candidates:
        return None
    return max(candidates, key=lambda d: d.completion_rate)


def tip(report: Optional[AdherenceReport]) -> str:
    """Pick an insight code for a day's report."""
    if report is None or not report.scheduled:
        return "start_tracking"
    if report.completion_rate < 0.5:
        return "try_setting_reminders"
    if report.off_diet_calories > 500:
        return "plan_ahead_off_diet"
    if report.completion_rate >= 0.9:
        return "great_job_keep_consistency"
    return "doing_well_small_improvements"


__all__ = [
    "MATCH_TOLERANCE_CALORIES", "CLOSE_TOLERANCE_RATIO",
    "GoalStatus", "GoalEvaluation", "evaluate_goal",
    "OccurrenceStatus", "OccurrenceState", "CompletedMealInfo",
    "AdherenceReport", "DailyAdherence", "AdherenceEvaluator",
    "best_day", "tip",
]
