"""
Order lifecycle engine.

All order mutations go through ``OrderLifecycle`` so that every committed
change is followed by exactly one ``OrderEvent`` on the bus. Assignment rules:

- target ``pending`` always detaches the courier, whatever courier was sent;
- a supplied courier id replaces ``assigned_to``;
- no courier id leaves ``assigned_to`` as it was (assigned -> in_transit).
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from pharmaroute.core.config import Settings
from pharmaroute.core.errors import CourierUnavailable, OrderNotFound, UserNotFound
from pharmaroute.core.events import (
    ORDER_CREATED, ORDER_DELETED, ORDER_STATUS_CHANGED, EventBus, OrderEvent,
)
from pharmaroute.core.states import check_transition, ensure_known_status
from pharmaroute.schemas import Order, OrderCreate, StatusChange, StatusEvent

logger = logging.getLogger(__name__)


def _utcnow():
    return datetime.now(timezone.utc)


def resolve_courier(current: Optional[str], target_status: str, courier_id: Optional[str]) -> Optional[str]:
    """Courier the order holds after moving to ``target_status``."""
    if target_status == "pending":
        return None
    if courier_id:
        return courier_id
    return current


class OrderLifecycle:
    def __init__(self, repo, bus: EventBus, settings: Settings):
        self.repo = repo
        self.bus = bus
        self.settings = settings

    async def create(self, payload: OrderCreate, by_user: str) -> Order:
        client = await self.repo.upsert_client_by_phone(
            payload.client_name, payload.client_phone, payload.delivery_location
        )
        now = _utcnow()
        order = Order(
            id="",
            client=client,
            delivery_location=payload.delivery_location,
            items=payload.items,
            status="pending",
            assigned_to=None,
            created_by=by_user,
            total=payload.total,
            payment_method=payload.payment_method,
            delivery_notes=payload.delivery_notes,
            created_at=now,
            updated_at=now,
            history=[StatusEvent(at=now, by_user=by_user, to_status="pending", note="created")],
        )
        saved = await self.repo.create_order(order)
        logger.info("order %s created by %s for client %s", saved.id, by_user, client.id)
        await self.bus.publish(OrderEvent(type=ORDER_CREATED, order_id=saved.id, to_status="pending", by_user=by_user))
        return saved

    async def set_status(self, order_id: str, change: StatusChange, by_user: Optional[str] = None) -> Order:
        target = ensure_known_status(change.target_status)
        order = await self.repo.get_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)

        courier_after = resolve_courier(order.assigned_to, target, change.courier_id)
        check_transition(order.status, target, courier_after, lock_terminal=self.settings.lock_terminal_statuses)
        if change.courier_id and target != "pending" and self.settings.block_offline_couriers:
            await self._ensure_courier_can_take(change.courier_id)

        entry = StatusEvent(
            at=_utcnow(),
            by_user=by_user,
            from_status=order.status,
            to_status=target,
            courier_id=courier_after,
            note=change.note,
        )
        updated = await self.repo.update_order(
            order_id,
            {"status": target, "assigned_to": courier_after},
            expected_version=change.expected_version,
            history_entry=entry,
        )
        logger.info(
            "order %s: %s -> %s (courier %s -> %s)",
            order_id, order.status, target, order.assigned_to, courier_after,
        )
        await self.bus.publish(OrderEvent(
            type=ORDER_STATUS_CHANGED,
            order_id=order_id,
            from_status=order.status,
            to_status=target,
            courier_id=courier_after,
            previous_courier_id=order.assigned_to,
            by_user=by_user,
        ))
        return updated

    async def delete(self, order_id: str, by_user: Optional[str] = None) -> None:
        order = await self.repo.get_order(order_id)
        if order is None or not await self.repo.delete_order(order_id):
            raise OrderNotFound(order_id)
        logger.info("order %s deleted by %s", order_id, by_user)
        await self.bus.publish(OrderEvent(
            type=ORDER_DELETED, order_id=order_id, from_status=order.status,
            previous_courier_id=order.assigned_to, by_user=by_user,
        ))

    async def _ensure_courier_can_take(self, courier_id: str) -> None:
        courier = await self.repo.get_user(courier_id)
        if courier is None:
            raise UserNotFound(courier_id)
        if courier.role != "delivery":
            raise CourierUnavailable("User is not a delivery courier", courier_id=courier_id)
        if courier.status == "offline":
            raise CourierUnavailable("Courier is offline", courier_id=courier_id)
