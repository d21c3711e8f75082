"""Local notification capability.

The reminder scheduler talks to a `NotificationCenter`: it asks for the
authorization state, cancels every alert it owns and requests new ones. The
in-memory center below backs the HTTP service and the tests; a push-based
implementation only has to provide the same five coroutines.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from core.logger import get_logger

logger = get_logger("services.notifications")

MEAL_REMINDER_CATEGORY = "MEAL_REMINDER"


@dataclass
class NotificationRequest:
    """A one-shot alert to deliver at ``fire_at`` (local wall clock)."""

    identifier: str
    owner_tag: str
    fire_at: datetime
    title: str
    body: str
    payload: Dict[str, str] = field(default_factory=dict)


class NotificationCenter:
    """Interface of the external notification capability."""

    async def authorization_status(self) -> bool:
        raise NotImplementedError

    async def request_authorization(self) -> bool:
        raise NotImplementedError

    async def schedule(self, request: NotificationRequest) -> None:
        raise NotImplementedError

    async def cancel_all(self, owner_tag: str) -> int:
        raise NotImplementedError

    async def pending(self, owner_tag: Optional[str] = None) -> List[NotificationRequest]:
        raise NotImplementedError


class InMemoryNotificationCenter(NotificationCenter):
    """Keeps pending alerts in a dict keyed by identifier.

    Scheduling an identifier that is already pending replaces it, the same
    rule local notification systems apply.
    """

    def __init__(self, authorized: bool = True, grant_on_request: bool = True):
        self._authorized = authorized
        self._grant_on_request = grant_on_request
        self._pending: Dict[str, NotificationRequest] = {}

    async def authorization_status(self) -> bool:
        return self._authorized

    async def request_authorization(self) -> bool:
        if not self._authorized and self._grant_on_request:
            self._authorized = True
            logger.info("Notification authorization granted")
        return self._authorized

    async def schedule(self, request: NotificationRequest) -> None:
        if not self._authorized:
            raise PermissionError("notifications are not authorized")
        self._pending[request.identifier] = request
        logger.debug("Scheduled %s at %s", request.identifier, request.fire_at.isoformat())

    async def cancel_all(self, owner_tag: str) -> int:
        owned = [key for key, req in self._pending.items() if req.owner_tag == owner_tag]
        for key in owned:
            del self._pending[key]
        return len(owned)

    async def pending(self, owner_tag: Optional[str] = None) -> List[NotificationRequest]:
        requests = [r for r in self._pending.values() if owner_tag is None or r.owner_tag == owner_tag]
        return sorted(requests, key=lambda r: (r.fire_at, r.identifier))


__all__ = ["NotificationRequest", "NotificationCenter", "InMemoryNotificationCenter", "MEAL_REMINDER_CATEGORY"]
