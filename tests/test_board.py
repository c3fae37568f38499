import anyio
import pytest

from pharmaroute.core.config import Settings
from pharmaroute.core.events import EventBus
from pharmaroute.repos.inmemory import InMemoryRepo
from pharmaroute.schemas import StatusChange, UserIn
from pharmaroute.services.board import DispatchBoard
from pharmaroute.services.lifecycle import OrderLifecycle

pytestmark = pytest.mark.anyio


@pytest.fixture
def wired(repo):
    bus = EventBus()
    board = DispatchBoard(repo)
    bus.subscribe(board.invalidate)
    return board, OrderLifecycle(repo, bus, Settings())


async def test_status_change_refreshes_board(repo, wired, make_order):
    board, lifecycle = wired
    for oid, minute in (("A", 0), ("B", 5)):
        await repo.create_order(make_order(oid, minute))

    pending, routes = await board.snapshot()
    assert [o.id for o in pending] == ["A", "B"]
    assert board.is_cached

    await lifecycle.set_status("A", StatusChange(target_status="in_transit", courier_id="K1"))
    assert not board.is_cached

    pending, routes = await board.snapshot()
    assert [o.id for o in pending] == ["B"]
    assert [o.id for o in routes["K1"]] == ["A"]


async def test_reconciliation_follows_deliveries(repo, wired, make_order):
    board, lifecycle = wired
    k1 = await repo.create_user(UserIn(name="Juan Pérez", role="delivery", cedula="3", phone="300"))
    await repo.create_order(make_order("A", 0, "in_transit", k1.id, total=15000))

    assert (await board.reconciliation()).grand_total == 0

    await lifecycle.set_status("A", StatusChange(target_status="delivered"))
    cash = await board.reconciliation()
    assert cash.grand_total == 15000
    assert [(r.courier_name, r.order_count) for r in cash.by_courier] == [("Juan Pérez", 1)]


async def test_snapshot_copies_do_not_leak_into_cache(repo, wired, make_order):
    board, _ = wired
    await repo.create_order(make_order("A", 0))
    pending, _ = await board.snapshot()
    pending.clear()
    again, _ = await board.snapshot()
    assert [o.id for o in again] == ["A"]


class SlowRepo(InMemoryRepo):
    """Lets other tasks run between reading the orders and handing them back."""

    async def list_orders(self, *args, **kwargs):
        orders = await super().list_orders(*args, **kwargs)
        await anyio.sleep(0.05)
        return orders

    async def list_users(self, *args, **kwargs):
        users = await super().list_users(*args, **kwargs)
        await anyio.sleep(0.05)
        return users


async def test_commit_during_rebuild_is_not_hidden(make_order):
    repo = SlowRepo()
    bus = EventBus()
    board = DispatchBoard(repo)
    bus.subscribe(board.invalidate)
    lifecycle = OrderLifecycle(repo, bus, Settings())
    await repo.create_order(make_order("A", 0))

    async with anyio.create_task_group() as tg:
        tg.start_soon(board.snapshot)
        await anyio.sleep(0.01)  # snapshot has read "A" as pending and is parked
        await lifecycle.set_status("A", StatusChange(target_status="assigned", courier_id="K1"))

    assert not board.is_cached
    pending, routes = await board.snapshot()
    assert pending == []
    assert [o.id for o in routes["K1"]] == ["A"]


async def test_delivery_during_cash_rebuild_is_not_hidden(make_order):
    repo = SlowRepo()
    bus = EventBus()
    board = DispatchBoard(repo)
    bus.subscribe(board.invalidate)
    lifecycle = OrderLifecycle(repo, bus, Settings())
    await repo.create_order(make_order("A", 0, "in_transit", "K1", total=12000))

    async with anyio.create_task_group() as tg:
        tg.start_soon(board.reconciliation)
        await anyio.sleep(0.01)
        await lifecycle.set_status("A", StatusChange(target_status="delivered"))

    assert (await board.reconciliation()).grand_total == 12000
