# pharmaroute/repos/mongo.py
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Union

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from pharmaroute.core.errors import (
    AlreadyExists, ClientNotFound, OrderNotFound, PersistenceFailure, UserNotFound, VersionConflict,
)
from pharmaroute.repos.inmemory import DEFAULT_PHARMACY
from pharmaroute.schemas import (
    Client, ClientRef, Location, Order, PharmacySettings, StatusEvent, User, UserIn,
)

logger = logging.getLogger(__name__)

SINGLETON_ID = "main_pharmacy"


def _utcnow():
    return datetime.now(timezone.utc)


def _maybe_oid(x: Any) -> ObjectId | None:
    if isinstance(x, ObjectId):
        return x
    if isinstance(x, str) and ObjectId.is_valid(x):
        return ObjectId(x)
    return None


def _plain(doc: dict) -> dict:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


def to_order(doc: dict) -> Order:
    return Order.model_validate(_plain(doc))


def to_user(doc: dict) -> User:
    return User.model_validate(_plain(doc))


def to_client(doc: dict) -> Client:
    return Client.model_validate(_plain(doc))


def order_filter(
    status: Union[str, Iterable[str], None] = None,
    assigned_to: Optional[str] = None,
    client_id: Optional[str] = None,
) -> dict:
    q: dict = {}
    if isinstance(status, str):
        q["status"] = status
    elif status is not None:
        q["status"] = {"$in": list(status)}
    if assigned_to is not None:
        q["assigned_to"] = assigned_to
    if client_id is not None:
        q["client.id"] = client_id
    return q


@contextmanager
def _guard(op: str):
    try:
        yield
    except DuplicateKeyError as ex:
        key = (ex.details or {}).get("keyValue")
        raise AlreadyExists(f"Duplicate key during {op}", operation=op, key=key) from ex
    except PyMongoError as ex:
        logger.error("mongo %s failed: %s", op, ex)
        raise PersistenceFailure(f"Storage error during {op}", operation=op) from ex


class MongoRepo:
    """Motor-backed repository. References (client, courier, agent) are stored as id strings."""

    def __init__(self, db):
        self.db = db

    # Orders
    async def create_order(self, order: Order) -> Order:
        doc = order.model_dump(exclude={"id"})
        with _guard("create_order"):
            res = await self.db.orders.insert_one(doc)
        doc["_id"] = res.inserted_id
        return to_order(doc)

    async def get_order(self, order_id: str) -> Optional[Order]:
        oid = _maybe_oid(order_id)
        if not oid:
            return None
        with _guard("get_order"):
            doc = await self.db.orders.find_one({"_id": oid})
        return to_order(doc) if doc else None

    async def list_orders(
        self,
        status: Union[str, Iterable[str], None] = None,
        assigned_to: Optional[str] = None,
        client_id: Optional[str] = None,
        newest_first: bool = False,
    ) -> List[Order]:
        q = order_filter(status, assigned_to, client_id)
        with _guard("list_orders"):
            cur = self.db.orders.find(q).sort("created_at", DESCENDING if newest_first else ASCENDING)
            return [to_order(d) async for d in cur]

    async def update_order(
        self,
        order_id: str,
        fields: dict,
        expected_version: Optional[int] = None,
        history_entry: Optional[StatusEvent] = None,
    ) -> Order:
        oid = _maybe_oid(order_id)
        if not oid:
            raise OrderNotFound(order_id)
        q: dict = {"_id": oid}
        if expected_version is not None:
            q["version"] = expected_version
        upd: dict = {
            "$set": {**fields, "updated_at": _utcnow()},
            "$inc": {"version": 1},
        }
        if history_entry is not None:
            upd["$push"] = {"history": history_entry.model_dump()}
        with _guard("update_order"):
            doc = await self.db.orders.find_one_and_update(q, upd, return_document=ReturnDocument.AFTER)
            if doc:
                return to_order(doc)
            current = await self.db.orders.find_one({"_id": oid}, {"version": 1})
        if not current:
            raise OrderNotFound(order_id)
        raise VersionConflict(
            "Version conflict. Refresh and retry.",
            order_id=order_id, expected_version=expected_version, version=current.get("version"),
        )

    async def delete_order(self, order_id: str) -> bool:
        oid = _maybe_oid(order_id)
        if not oid:
            return False
        with _guard("delete_order"):
            res = await self.db.orders.delete_one({"_id": oid})
        return res.deleted_count > 0

    # Users
    async def create_user(self, user: UserIn) -> User:
        doc = user.model_dump()
        doc["created_at"] = _utcnow()
        with _guard("create_user"):
            res = await self.db.users.insert_one(doc)
        doc["_id"] = res.inserted_id
        return to_user(doc)

    async def get_user(self, user_id: str) -> Optional[User]:
        oid = _maybe_oid(user_id)
        if not oid:
            return None
        with _guard("get_user"):
            doc = await self.db.users.find_one({"_id": oid})
        return to_user(doc) if doc else None

    async def list_users(self, role: Optional[str] = None, status: Optional[str] = None) -> List[User]:
        q = {}
        if role is not None:
            q["role"] = role
        if status is not None:
            q["status"] = status
        with _guard("list_users"):
            return [to_user(d) async for d in self.db.users.find(q).sort("name", ASCENDING)]

    async def update_user(self, user_id: str, fields: dict) -> User:
        oid = _maybe_oid(user_id)
        if not oid:
            raise UserNotFound(user_id)
        with _guard("update_user"):
            doc = await self.db.users.find_one_and_update(
                {"_id": oid}, {"$set": fields}, return_document=ReturnDocument.AFTER
            )
        if not doc:
            raise UserNotFound(user_id)
        return to_user(doc)

    async def delete_user(self, user_id: str) -> bool:
        oid = _maybe_oid(user_id)
        if not oid:
            return False
        with _guard("delete_user"):
            res = await self.db.users.delete_one({"_id": oid})
        return res.deleted_count > 0

    # Clients
    async def create_client(self, full_name: str, phone: str) -> Client:
        doc = {"full_name": full_name, "phone": phone, "addresses": []}
        with _guard("create_client"):
            res = await self.db.clients.insert_one(doc)
        doc["_id"] = res.inserted_id
        return to_client(doc)

    async def update_client(self, client_id: str, fields: dict) -> Client:
        oid = _maybe_oid(client_id)
        if not oid:
            raise ClientNotFound(client_id)
        with _guard("update_client"):
            doc = await self.db.clients.find_one_and_update(
                {"_id": oid}, {"$set": fields}, return_document=ReturnDocument.AFTER
            )
        if not doc:
            raise ClientNotFound(client_id)
        return to_client(doc)

    async def delete_client(self, client_id: str) -> bool:
        oid = _maybe_oid(client_id)
        if not oid:
            return False
        with _guard("delete_client"):
            res = await self.db.clients.delete_one({"_id": oid})
        return res.deleted_count > 0

    async def upsert_client_by_phone(self, full_name: str, phone: str, location: Location) -> ClientRef:
        with _guard("upsert_client"):
            doc = await self.db.clients.find_one_and_update(
                {"phone": phone},
                {"$setOnInsert": {"full_name": full_name, "addresses": []}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
            # only append the address when no stored address has the same text
            await self.db.clients.update_one(
                {"_id": doc["_id"], "addresses.address": {"$ne": location.address}},
                {"$push": {"addresses": location.model_dump()}},
            )
        return ClientRef(id=str(doc["_id"]), full_name=doc["full_name"], phone=doc["phone"])

    async def get_client(self, client_id: str) -> Optional[Client]:
        oid = _maybe_oid(client_id)
        if not oid:
            return None
        with _guard("get_client"):
            doc = await self.db.clients.find_one({"_id": oid})
        return to_client(doc) if doc else None

    async def list_clients(self) -> List[Client]:
        with _guard("list_clients"):
            return [to_client(d) async for d in self.db.clients.find().sort("full_name", ASCENDING)]

    # Pharmacy settings (singleton)
    async def get_pharmacy_settings(self) -> PharmacySettings:
        with _guard("get_pharmacy_settings"):
            doc = await self.db.pharmacy_settings.find_one_and_update(
                {"singleton": SINGLETON_ID},
                {"$setOnInsert": dict(DEFAULT_PHARMACY)},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        return PharmacySettings(name=doc["name"], address=doc["address"], phone=doc["phone"])

    async def update_pharmacy_settings(self, settings: PharmacySettings) -> PharmacySettings:
        with _guard("update_pharmacy_settings"):
            await self.db.pharmacy_settings.update_one(
                {"singleton": SINGLETON_ID},
                {"$set": {**settings.model_dump(), "updated_at": _utcnow()}},
                upsert=True,
            )
        return settings


async def ensure_indexes(db) -> None:
    async def ensure_index(col, keys, name: str, **kwargs):
        existing = [ix["name"] async for ix in col.list_indexes()]
        if name in existing:
            return
        await col.create_index(keys, name=name, **kwargs)

    await ensure_index(db.orders, [("status", ASCENDING), ("created_at", ASCENDING)], "status_1_created_at_1")
    await ensure_index(db.orders, [("assigned_to", ASCENDING), ("status", ASCENDING)], "assigned_to_1_status_1")
    await ensure_index(db.orders, [("client.id", ASCENDING)], "client_id_1")
    await ensure_index(db.users, [("cedula", ASCENDING)], "cedula_1", unique=True)
    await ensure_index(db.users, [("role", ASCENDING)], "role_1")
    await ensure_index(db.clients, [("phone", ASCENDING)], "phone_1", unique=True)
    await ensure_index(db.pharmacy_settings, [("singleton", ASCENDING)], "singleton_1", unique=True)
