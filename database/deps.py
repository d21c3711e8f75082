"""Dependency helpers for FastAPI endpoints.

`get_db_write` and `get_db_read` yield sessions; `get_tracker` builds the
`DietTracker` facade over a write session and the process-wide notification
center, and `get_read_tracker` does the same over a read session for
routes that never mutate.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from core.config import NOTIFICATIONS_AUTHORIZED
from services.diet_tracker import DietTracker
from services.notifications import InMemoryNotificationCenter, NotificationCenter
from .database import get_read_session, get_write_session

_notification_center = InMemoryNotificationCenter(authorized=NOTIFICATIONS_AUTHORIZED)


def get_db_write():
    """Yield a write-capable DB session for FastAPI dependency injection."""
    yield from get_write_session()


def get_db_read():
    """Yield a read-only DB session for FastAPI dependency injection."""
    yield from get_read_session()


def get_notification_center() -> NotificationCenter:
    return _notification_center


def get_tracker(
    db: Session = Depends(get_db_write),
    notifications: NotificationCenter = Depends(get_notification_center),
) -> DietTracker:
    return DietTracker(db, notifications)


def get_read_tracker(
    db: Session = Depends(get_db_read),
    notifications: NotificationCenter = Depends(get_notification_center),
) -> DietTracker:
    return DietTracker(db, notifications)
