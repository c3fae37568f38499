# pharmaroute/services/reconciliation.py
from typing import Dict, Iterable, Mapping

from pharmaroute.schemas import CashReconciliation, CourierCash, Order


def reconcile(orders: Iterable[Order], courier_names: Mapping[str, str]) -> CashReconciliation:
    """
    Cash totals over delivered orders.

    Orders without a courier, or whose courier is no longer known, count
    towards the payment-method and grand totals but not the per-courier rows.
    """
    delivered = [o for o in orders if o.status == "delivered"]

    total_cash = sum(o.total for o in delivered if o.payment_method == "cash")
    total_transfer = sum(o.total for o in delivered if o.payment_method == "transfer")

    rows: Dict[str, CourierCash] = {}
    unattributed = 0
    for o in delivered:
        name = courier_names.get(o.assigned_to) if o.assigned_to else None
        if name is None:
            unattributed += 1
            continue
        row = rows.setdefault(o.assigned_to, CourierCash(
            courier_id=o.assigned_to, courier_name=name, order_count=0, subtotal=0.0,
        ))
        row.order_count += 1
        row.subtotal += o.total
        row.order_ids.append(o.id)

    return CashReconciliation(
        order_count=len(delivered),
        total_cash=total_cash,
        total_transfer=total_transfer,
        grand_total=total_cash + total_transfer,
        by_courier=sorted(rows.values(), key=lambda r: r.courier_name),
        unattributed_count=unattributed,
    )
