from pharmaroute.services.reconciliation import reconcile

NAMES = {"K1": "Juan Pérez", "K2": "María Gómez"}


def test_totals_by_method_and_courier(make_order):
    orders = [
        make_order("1", 0, "delivered", "K1", total=12000, payment_method="cash"),
        make_order("2", 1, "delivered", "K1", total=8000, payment_method="transfer"),
        make_order("3", 2, "delivered", "K2", total=5000, payment_method="cash"),
        make_order("4", 3, "in_transit", "K2", total=99000, payment_method="cash"),
        make_order("5", 4, "cancelled", None, total=77000, payment_method="transfer"),
    ]
    cash = reconcile(orders, NAMES)

    assert cash.order_count == 3
    assert cash.total_cash == 17000
    assert cash.total_transfer == 8000
    assert cash.grand_total == 25000
    rows = {r.courier_name: (r.order_count, r.subtotal, r.order_ids) for r in cash.by_courier}
    assert rows == {"Juan Pérez": (2, 20000, ["1", "2"]), "María Gómez": (1, 5000, ["3"])}


def test_unattributed_orders_only_count_in_totals(make_order):
    orders = [
        make_order("1", 0, "delivered", "K1", total=10000),
        make_order("2", 1, "delivered", None, total=3000, payment_method="transfer"),
        make_order("3", 2, "delivered", "K-removed", total=4000),
    ]
    cash = reconcile(orders, NAMES)

    assert cash.grand_total == 17000
    assert cash.total_cash + cash.total_transfer == cash.grand_total
    assert sum(r.subtotal for r in cash.by_courier) == 10000
    assert cash.unattributed_count == 2


def test_empty_day(make_order):
    cash = reconcile([make_order("1", 0, "pending")], NAMES)
    assert (cash.order_count, cash.grand_total, cash.by_courier) == (0, 0, [])
