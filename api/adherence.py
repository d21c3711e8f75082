"""Adherence API router: daily reports, trends and streaks."""

from datetime import date
from fastapi import APIRouter, Depends, Query
from typing import Optional

from database.deps import get_read_tracker
from schemas.adherence_schema import (
    AdherenceReportResponse,
    DailyAdherenceResponse,
    StreakResponse,
    TrendResponse,
)
from services.adherence import best_day
from services.diet_tracker import DietTracker

router = APIRouter(prefix="/api/adherence", tags=["adherence"])


@router.get("/trend", response_model=TrendResponse)
def get_trend(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    tracker: DietTracker = Depends(get_read_tracker),
):
    """Per-day completion rates, defaulting to the last seven days.

    Raises:
        ValidationError: If ``start`` is after ``end``.
    """
    trend = tracker.get_weekly_trend(start, end)
    best = best_day(trend)
    return TrendResponse(
        days=[DailyAdherenceResponse.from_day(d) for d in trend],
        best_day=best.date.isoformat() if best else None,
    )


@router.get("/streak", response_model=StreakResponse)
def get_streak(tracker: DietTracker = Depends(get_read_tracker)):
    return StreakResponse(days=tracker.get_streak())


@router.get("/{day}", response_model=AdherenceReportResponse)
def get_adherence(day: date, tracker: DietTracker = Depends(get_read_tracker)):
    """Adherence report for one calendar day of the active plan."""
    return AdherenceReportResponse.from_report(tracker.get_adherence(day))
