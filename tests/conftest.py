"""Shared fixtures: an in-memory database, a frozen clock and a tracker."""

from datetime import datetime, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.clock import FixedClock
from core.events import EventBus
from database import init_db
from services.diet_tracker import DietTracker
from services.notifications import InMemoryNotificationCenter
from services.plan_store import ScheduledMealData, TemplateItemData
from services.recurrence import WEEKDAYS

# Wednesday, one hour after the weekday breakfast slot.
WEDNESDAY_9AM = datetime(2026, 10, 21, 9, 0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    db = sessionmaker(bind=engine)()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock():
    return FixedClock(WEDNESDAY_9AM)


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def notifications():
    return InMemoryNotificationCenter()


@pytest.fixture
def tracker(session, notifications, clock, bus):
    return DietTracker(session, notifications, clock=clock, bus=bus, window_days=7)


@pytest.fixture
def breakfast_template(tracker):
    """A 400 kcal breakfast template."""
    return tracker.plans.create_meal_template(
        "Oats and berries",
        [TemplateItemData(name="Oatmeal", calories=300), TemplateItemData(name="Berries", calories=100)],
    )


@pytest.fixture
def weekday_breakfast(breakfast_template):
    """Data for a Monday to Friday 08:00 breakfast slot."""
    return ScheduledMealData(
        name="Breakfast",
        category="breakfast",
        time_of_day=time(8, 0),
        days_of_week=list(WEEKDAYS),
        meal_template_id=breakfast_template.id,
    )
