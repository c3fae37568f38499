# pharmaroute/core/events.py
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

ORDER_CREATED = "order.created"
ORDER_STATUS_CHANGED = "order.status.changed"
ORDER_DELETED = "order.deleted"


def _utcnow():
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OrderEvent:
    type: str
    order_id: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    courier_id: Optional[str] = None
    previous_courier_id: Optional[str] = None
    by_user: Optional[str] = None
    at: datetime = field(default_factory=_utcnow)


Handler = Callable[[OrderEvent], Awaitable[None]]


class EventBus:
    """In-process fan-out of committed order mutations to the views that cache orders."""

    def __init__(self):
        self._handlers: List[Handler] = []

    def subscribe(self, handler: Handler) -> None:
        self._handlers.append(handler)

    async def publish(self, event: OrderEvent) -> None:
        # the mutation is already committed; a failing view must not undo it
        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception:
                logger.exception("event handler %r failed for %s on %s", handler, event.type, event.order_id)
