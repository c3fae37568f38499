# pharmaroute/services/grouping.py
from typing import Dict, Iterable, List, Tuple

from pharmaroute.core.states import ACTIVE_STATES
from pharmaroute.schemas import Order


def pending_queue(orders: Iterable[Order]) -> List[Order]:
    """Unassigned orders, oldest first."""
    return sorted((o for o in orders if o.status == "pending"), key=lambda o: o.created_at)


def routes_by_courier(orders: Iterable[Order]) -> Dict[str, List[Order]]:
    """
    Active orders grouped by courier id, each route oldest first.
    Active orders without a courier are skipped rather than reported.
    """
    routes: Dict[str, List[Order]] = {}
    for o in orders:
        if o.status in ACTIVE_STATES and o.assigned_to:
            routes.setdefault(o.assigned_to, []).append(o)
    for route in routes.values():
        # stable sort keeps input order for equal timestamps
        route.sort(key=lambda o: o.created_at)
    return routes


def group_orders(orders: Iterable[Order]) -> Tuple[List[Order], Dict[str, List[Order]]]:
    orders = list(orders)
    return pending_queue(orders), routes_by_courier(orders)
