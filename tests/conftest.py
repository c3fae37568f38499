# tests/conftest.py
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import httpx
import pytest
from asgi_lifespan import LifespanManager
from bson import ObjectId
from httpx import ASGITransport, AsyncClient

from pharmaroute.core.config import Settings
from pharmaroute.core.security import create_token
from pharmaroute.main import create_app
from pharmaroute.repos.inmemory import InMemoryRepo
from pharmaroute.schemas import ClientRef, Location, Order, OrderItem, RoutePlan, OptimizedStop, UserIn
from pharmaroute.services.routing import GoogleDirectionsOracle

BASE_TIME = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def anyio_backend():
    # keep AnyIO on asyncio for the whole test session
    return "asyncio"


def build_order(oid, minute=0, status="pending", assigned_to=None, total=10000.0, payment_method="cash", address=None):
    return Order(
        id=oid,
        client=ClientRef(id="C1", full_name="Ana Torres", phone="3001234567"),
        delivery_location=Location(address=address or f"Calle {minute + 10} # 4-20, Ocaña"),
        items=[OrderItem(id="i1", name="Acetaminofén 500mg", quantity=2, price=total / 2)],
        status=status,
        assigned_to=assigned_to,
        created_by="agent01",
        total=total,
        payment_method=payment_method,
        created_at=BASE_TIME + timedelta(minutes=minute),
    )


@pytest.fixture
def make_order():
    return build_order


class FakeOracle:
    """Stands in for the Directions API: answers with a fixed permutation or fails."""

    def __init__(self, waypoint_order=None, error=None, extra_ids=()):
        self.waypoint_order = waypoint_order
        self.error = error
        self.extra_ids = list(extra_ids)
        self.calls = []

    async def optimize(self, start_address, stops):
        self.calls.append((start_address, list(stops)))
        if self.error is not None:
            raise self.error
        order = self.waypoint_order if self.waypoint_order is not None else list(range(len(stops)))
        ids = [stops[i][0] for i in order] + self.extra_ids
        return RoutePlan(
            stops=[OptimizedStop(order_id=oid, stop_number=n) for n, oid in enumerate(ids, start=1)],
            estimated_time="25 minutes",
            estimated_distance="7.4 km",
        )


@pytest.fixture
def settings():
    return Settings(google_maps_api_key="test-key", use_mongo=False, jwt_secret="test-secret")


@pytest.fixture
def repo():
    return InMemoryRepo()


def directions_body(waypoint_order):
    legs = [{"distance": {"value": 1500}, "duration": {"value": 300}} for _ in range(len(waypoint_order) + 1)]
    return {"status": "OK", "routes": [{"waypoint_order": waypoint_order, "legs": legs}]}


@pytest.fixture
def directions():
    """Mutable Directions API stub; tests set ``state['response']`` before calling."""
    state = {"response": httpx.Response(200, json=directions_body([])), "requests": []}

    def handler(request: httpx.Request):
        state["requests"].append(request)
        return state["response"]

    state["transport"] = httpx.MockTransport(handler)
    return state


@pytest.fixture
async def users(repo):
    return {
        "admin": await repo.create_user(UserIn(name="Admin Droguería", role="admin", cedula="1091000001", phone="3000000000")),
        "agent": await repo.create_user(UserIn(name="Carlos Rivas", role="agent", cedula="1091000002", phone="3001112233")),
        "k1": await repo.create_user(UserIn(name="Juan Pérez", role="delivery", cedula="1091000003", phone="3002223344", status="available")),
        "k2": await repo.create_user(UserIn(name="María Gómez", role="delivery", cedula="1091000004", phone="3003334455", status="offline")),
    }


@pytest.fixture
def auth(users, settings):
    return {name: {"Authorization": f"Bearer {create_token(u.id, settings=settings)}"} for name, u in users.items()}


@asynccontextmanager
async def serve_app(app):
    async with LifespanManager(app):
        transport = ASGITransport(app=app, raise_app_exceptions=True)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


@pytest.fixture
def serve():
    """Run any app built by a test through its lifespan and hand back a client."""
    return serve_app


@pytest.fixture
async def test_client(settings, repo, directions):
    oracle = GoogleDirectionsOracle.from_settings(settings, transport=directions["transport"])
    app = create_app(settings, repo=repo, oracle=oracle)
    async with serve_app(app) as ac:
        yield ac


@pytest.fixture
def fake_oracle():
    return FakeOracle


@pytest.fixture
def directions_json():
    return directions_body


class FakeCollection:
    """
    The slice of a Motor collection that MongoRepo's order paths use.
    Filters are plain equality on top-level keys; ``fail_with`` makes every
    call raise, the way a dropped connection would.
    """

    def __init__(self, docs=(), fail_with=None):
        self.docs = [dict(d) for d in docs]
        self.fail_with = fail_with

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    def _find(self, q):
        return next((d for d in self.docs if all(d.get(k) == v for k, v in q.items())), None)

    async def insert_one(self, doc):
        self._check()
        stored = dict(doc, _id=doc.get("_id") or ObjectId())
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    async def find_one(self, q, projection=None):
        self._check()
        doc = self._find(q)
        return dict(doc) if doc else None

    async def find_one_and_update(self, q, update, return_document=None, upsert=False):
        self._check()
        doc = self._find(q)
        if doc is None:
            return None
        doc.update(update.get("$set", {}))
        for key, n in update.get("$inc", {}).items():
            doc[key] = doc.get(key, 0) + n
        for key, value in update.get("$push", {}).items():
            doc.setdefault(key, []).append(value)
        return dict(doc)

    async def delete_one(self, q):
        self._check()
        doc = self._find(q)
        if doc is not None:
            self.docs.remove(doc)
        return SimpleNamespace(deleted_count=1 if doc is not None else 0)


@pytest.fixture
def fake_db():
    return SimpleNamespace(orders=FakeCollection(), users=FakeCollection(), clients=FakeCollection())
