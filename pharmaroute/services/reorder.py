# pharmaroute/services/reorder.py
import logging
from dataclasses import dataclass
from typing import List, Optional

from pharmaroute.core.errors import OracleResponseInvalid, OracleUnavailable
from pharmaroute.schemas import Order, RoutePlan

logger = logging.getLogger(__name__)


@dataclass
class ReorderResult:
    orders: List[Order]
    applied: bool
    plan: Optional[RoutePlan] = None
    warning: Optional[str] = None


def apply_route_plan(pending: List[Order], plan: RoutePlan) -> List[Order]:
    """
    Reorder ``pending`` by the plan's stop numbers.
    Unknown or repeated order ids are dropped; the result must still hold
    every input order exactly once.
    """
    by_id = {o.id: o for o in pending}
    seen = set()
    out: List[Order] = []
    for stop in sorted(plan.stops, key=lambda s: s.stop_number):
        order = by_id.get(stop.order_id)
        if order is None:
            logger.warning("route plan references unknown order %s; ignoring", stop.order_id)
            continue
        if stop.order_id in seen:
            continue
        seen.add(stop.order_id)
        out.append(order)

    missing = [o.id for o in pending if o.id not in seen]
    if missing:
        raise OracleResponseInvalid("Route plan does not cover every pending order", missing=missing)
    return out


async def reorder_pending(pending: List[Order], start_address: str, oracle) -> ReorderResult:
    """
    Ask the oracle for a visiting order and apply it to ``pending``.
    On any oracle failure the batch comes back untouched with a warning.
    """
    if not pending:
        return ReorderResult(orders=[], applied=True)

    stops = [(o.id, o.delivery_location.address) for o in pending]
    try:
        plan = await oracle.optimize(start_address, stops)
        ordered = apply_route_plan(pending, plan)
    except OracleUnavailable as ex:
        logger.warning("route optimization not applied to %d orders: %s", len(pending), ex.message)
        return ReorderResult(orders=list(pending), applied=False, warning=ex.message)
    return ReorderResult(orders=ordered, applied=True, plan=plan)
