# pharmaroute/services/board.py
import logging
from typing import Dict, List, Optional, Tuple

from pharmaroute.core.events import OrderEvent
from pharmaroute.schemas import CashReconciliation, Order
from pharmaroute.services.grouping import group_orders
from pharmaroute.services.reconciliation import reconcile

logger = logging.getLogger(__name__)


class DispatchBoard:
    """
    Cached read views over the order set: the pending queue, the per-courier
    routes and the cash reconciliation. Both are dropped on every order event
    and rebuilt from the repository on the next read.

    Every invalidation bumps ``generation``; a rebuild is only cached when no
    invalidation happened while it was reading, so a result read before a
    commit never outlives that commit.
    """

    def __init__(self, repo):
        self.repo = repo
        self.generation = 0
        self._groups: Optional[Tuple[List[Order], Dict[str, List[Order]]]] = None
        self._cash: Optional[CashReconciliation] = None

    async def invalidate(self, event: Optional[OrderEvent] = None) -> None:
        if event is not None:
            logger.debug("board invalidated by %s on %s", event.type, event.order_id)
        self.generation += 1
        self._groups = None
        self._cash = None

    @property
    def is_cached(self) -> bool:
        return self._groups is not None or self._cash is not None

    async def snapshot(self) -> Tuple[List[Order], Dict[str, List[Order]]]:
        groups = self._groups
        if groups is None:
            generation = self.generation
            orders = await self.repo.list_orders(status=["pending", "assigned", "in_transit"])
            groups = group_orders(orders)
            if generation == self.generation:
                self._groups = groups
        pending, routes = groups
        return list(pending), {k: list(v) for k, v in routes.items()}

    async def reconciliation(self) -> CashReconciliation:
        cash = self._cash
        if cash is None:
            generation = self.generation
            delivered = await self.repo.list_orders(status="delivered")
            couriers = await self.repo.list_users(role="delivery")
            cash = reconcile(delivered, {c.id: c.name for c in couriers})
            if generation == self.generation:
                self._cash = cash
        return cash.model_copy(deep=True)
