import pytest

from pharmaroute.core.errors import OracleResponseInvalid, OracleUnavailable
from pharmaroute.schemas import OptimizedStop, RoutePlan
from pharmaroute.services.reorder import apply_route_plan, reorder_pending

pytestmark = pytest.mark.anyio

START = "Droguería Avenida, Ocaña, Norte de Santander"


@pytest.fixture
def batch(make_order):
    return [make_order("A", 0), make_order("B", 5), make_order("C", 10)]


async def test_oracle_permutation_is_applied(batch, fake_oracle):
    oracle = fake_oracle(waypoint_order=[2, 0, 1])
    result = await reorder_pending(batch, START, oracle)

    assert result.applied is True
    assert [o.id for o in result.orders] == ["C", "A", "B"]
    assert result.plan.estimated_time == "25 minutes"

    start, stops = oracle.calls[0]
    assert start == START
    assert stops == [(o.id, o.delivery_location.address) for o in batch]


async def test_oracle_failure_keeps_the_batch(batch, fake_oracle):
    oracle = fake_oracle(error=OracleUnavailable("Google Maps API key is not configured."))
    result = await reorder_pending(batch, START, oracle)

    assert result.applied is False
    assert result.orders == batch
    assert result.orders is not batch
    assert "not configured" in result.warning
    assert [o.id for o in batch] == ["A", "B", "C"]


async def test_empty_batch_never_calls_the_oracle(fake_oracle):
    oracle = fake_oracle(error=AssertionError("must not be called"))
    result = await reorder_pending([], START, oracle)
    assert result.orders == []
    assert oracle.calls == []


async def test_unknown_ids_from_oracle_are_dropped(batch, fake_oracle):
    oracle = fake_oracle(waypoint_order=[1, 2, 0], extra_ids=["ZZZ"])
    result = await reorder_pending(batch, START, oracle)
    assert result.applied is True
    assert [o.id for o in result.orders] == ["B", "C", "A"]


async def test_incomplete_plan_falls_back(batch, fake_oracle):
    oracle = fake_oracle(waypoint_order=[0, 2])
    result = await reorder_pending(batch, START, oracle)
    assert result.applied is False
    assert [o.id for o in result.orders] == ["A", "B", "C"]


def test_apply_route_plan_uses_stop_numbers_and_skips_repeats(batch):
    plan = RoutePlan(
        stops=[
            OptimizedStop(order_id="A", stop_number=3),
            OptimizedStop(order_id="C", stop_number=1),
            OptimizedStop(order_id="C", stop_number=4),
            OptimizedStop(order_id="B", stop_number=2),
        ],
        estimated_time="9 minutes",
        estimated_distance="2.0 km",
    )
    assert [o.id for o in apply_route_plan(batch, plan)] == ["C", "B", "A"]


def test_apply_route_plan_reports_missing_orders(batch):
    plan = RoutePlan(stops=[OptimizedStop(order_id="A", stop_number=1)], estimated_time="1 minutes", estimated_distance="0.1 km")
    with pytest.raises(OracleResponseInvalid) as ex:
        apply_route_plan(batch, plan)
    assert ex.value.context["missing"] == ["B", "C"]
