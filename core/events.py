"""In-process event bus for diet tracking notifications.

Event names:
  plan.changed -> payload {"plan_id": int, "action": str}
  meal.logged -> payload {"meal_id": int, "timestamp": datetime}
  meal.deleted -> payload {"meal_id": int}
  occurrence.completed -> payload {"scheduled_meal_id": int, "occurrence_date": date, "meal_id": int | None}
  occurrence.skipped -> payload {"scheduled_meal_id": int, "occurrence_date": date}
  reminders.rescheduled -> payload {"scheduled": int, "permission_granted": bool}

Subscribers are callables taking ``(event_name, payload)``. They run
synchronously after the publishing operation has committed; a failing
subscriber is logged and never affects the publisher.
"""

from collections import defaultdict
from typing import Any, Callable, Dict, List

from core.logger import get_logger

logger = get_logger("core.events")

PLAN_CHANGED = "plan.changed"
MEAL_LOGGED = "meal.logged"
MEAL_DELETED = "meal.deleted"
OCCURRENCE_COMPLETED = "occurrence.completed"
OCCURRENCE_SKIPPED = "occurrence.skipped"
REMINDERS_RESCHEDULED = "reminders.rescheduled"

Subscriber = Callable[[str, Any], None]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)

    def subscribe(self, event_name: str, callback: Subscriber) -> None:
        if callback not in self._subscribers[event_name]:
            self._subscribers[event_name].append(callback)

    def unsubscribe(self, event_name: str, callback: Subscriber) -> None:
        try:
            self._subscribers[event_name].remove(callback)
        except ValueError:
            pass

    def publish(self, event_name: str, payload: Any = None) -> None:
        for cb in list(self._subscribers.get(event_name, [])):
            try:
                cb(event_name, payload)
            except Exception:
                logger.exception("Error delivering %s to %r", event_name, cb)


# Process-wide bus used by the HTTP layer.
GLOBAL_EVENT_BUS = EventBus()

__all__ = [
    "EventBus", "GLOBAL_EVENT_BUS",
    "PLAN_CHANGED", "MEAL_LOGGED", "MEAL_DELETED",
    "OCCURRENCE_COMPLETED", "OCCURRENCE_SKIPPED", "REMINDERS_RESCHEDULED",
]
