# pharmaroute/repos/inmemory.py
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Union

from pharmaroute.core.errors import AlreadyExists, ClientNotFound, OrderNotFound, UserNotFound, VersionConflict
from pharmaroute.schemas import (
    Client, ClientRef, Location, Order, PharmacySettings, StatusEvent, User, UserIn,
)

DEFAULT_PHARMACY = {
    "name": "Droguería Avenida",
    "address": "Avenida Cra 30 # 22-10, Bogotá",
    "phone": "601-555-4321",
}


def _id() -> str:
    return uuid.uuid4().hex


def _utcnow():
    return datetime.now(timezone.utc)


def _as_set(status: Union[str, Iterable[str], None]):
    if status is None:
        return None
    if isinstance(status, str):
        return {status}
    return set(status)


class InMemoryRepo:
    """Dict-backed repository with the same async surface as MongoRepo."""

    def __init__(self):
        self.orders: Dict[str, Order] = {}
        self.users: Dict[str, User] = {}
        self.clients: Dict[str, Client] = {}
        self.pharmacy: Optional[PharmacySettings] = None

    # Orders
    async def create_order(self, order: Order) -> Order:
        doc = order.model_copy(deep=True)
        if not doc.id:
            doc.id = _id()
        self.orders[doc.id] = doc
        return doc.model_copy(deep=True)

    async def get_order(self, order_id: str) -> Optional[Order]:
        doc = self.orders.get(order_id)
        return doc.model_copy(deep=True) if doc else None

    async def list_orders(
        self,
        status: Union[str, Iterable[str], None] = None,
        assigned_to: Optional[str] = None,
        client_id: Optional[str] = None,
        newest_first: bool = False,
    ) -> List[Order]:
        wanted = _as_set(status)
        out = [
            o for o in self.orders.values()
            if (wanted is None or o.status in wanted)
            and (assigned_to is None or o.assigned_to == assigned_to)
            and (client_id is None or o.client.id == client_id)
        ]
        out.sort(key=lambda o: o.created_at, reverse=newest_first)
        return [o.model_copy(deep=True) for o in out]

    async def update_order(
        self,
        order_id: str,
        fields: dict,
        expected_version: Optional[int] = None,
        history_entry: Optional[StatusEvent] = None,
    ) -> Order:
        # no await between the read and the write: atomic per id on one event loop
        current = self.orders.get(order_id)
        if current is None:
            raise OrderNotFound(order_id)
        if expected_version is not None and current.version != expected_version:
            raise VersionConflict(
                "Version conflict. Refresh and retry.",
                order_id=order_id, expected_version=expected_version, version=current.version,
            )
        data = current.model_dump()
        data.update(fields)
        data["version"] = current.version + 1
        data["updated_at"] = _utcnow()
        if history_entry is not None:
            data["history"] = data["history"] + [history_entry.model_dump()]
        updated = Order.model_validate(data)
        self.orders[order_id] = updated
        return updated.model_copy(deep=True)

    async def delete_order(self, order_id: str) -> bool:
        return self.orders.pop(order_id, None) is not None

    # Users
    async def create_user(self, user: UserIn) -> User:
        self._ensure_unique_cedula(user.cedula)
        doc = User(id=_id(), **user.model_dump())
        self.users[doc.id] = doc
        return doc.model_copy()

    async def get_user(self, user_id: str) -> Optional[User]:
        doc = self.users.get(user_id)
        return doc.model_copy() if doc else None

    async def list_users(self, role: Optional[str] = None, status: Optional[str] = None) -> List[User]:
        out = [
            u for u in self.users.values()
            if (role is None or u.role == role) and (status is None or u.status == status)
        ]
        out.sort(key=lambda u: u.name)
        return [u.model_copy() for u in out]

    async def update_user(self, user_id: str, fields: dict) -> User:
        current = self.users.get(user_id)
        if current is None:
            raise UserNotFound(user_id)
        if "cedula" in fields:
            self._ensure_unique_cedula(fields["cedula"], user_id)
        updated = current.model_copy(update=fields)
        self.users[user_id] = updated
        return updated.model_copy()

    async def delete_user(self, user_id: str) -> bool:
        return self.users.pop(user_id, None) is not None

    def _ensure_unique_cedula(self, cedula: str, user_id: Optional[str] = None) -> None:
        if any(u.cedula == cedula and u.id != user_id for u in self.users.values()):
            raise AlreadyExists("A user with this cedula already exists", cedula=cedula)

    # Clients
    async def create_client(self, full_name: str, phone: str) -> Client:
        self._ensure_unique_phone(phone)
        client = Client(id=_id(), full_name=full_name, phone=phone, addresses=[])
        self.clients[client.id] = client
        return client.model_copy(deep=True)

    async def update_client(self, client_id: str, fields: dict) -> Client:
        current = self.clients.get(client_id)
        if current is None:
            raise ClientNotFound(client_id)
        if "phone" in fields:
            self._ensure_unique_phone(fields["phone"], client_id)
        updated = current.model_copy(update=fields, deep=True)
        self.clients[client_id] = updated
        return updated.model_copy(deep=True)

    async def delete_client(self, client_id: str) -> bool:
        return self.clients.pop(client_id, None) is not None

    def _ensure_unique_phone(self, phone: str, client_id: Optional[str] = None) -> None:
        if any(c.phone == phone and c.id != client_id for c in self.clients.values()):
            raise AlreadyExists("A client with this phone already exists", phone=phone)

    async def upsert_client_by_phone(self, full_name: str, phone: str, location: Location) -> ClientRef:
        client = next((c for c in self.clients.values() if c.phone == phone), None)
        if client is None:
            client = Client(id=_id(), full_name=full_name, phone=phone, addresses=[location])
            self.clients[client.id] = client
        elif not any(a.address == location.address for a in client.addresses):
            client.addresses.append(location)
        return ClientRef(id=client.id, full_name=client.full_name, phone=client.phone)

    async def get_client(self, client_id: str) -> Optional[Client]:
        doc = self.clients.get(client_id)
        return doc.model_copy(deep=True) if doc else None

    async def list_clients(self) -> List[Client]:
        return sorted((c.model_copy(deep=True) for c in self.clients.values()), key=lambda c: c.full_name)

    # Pharmacy settings (singleton)
    async def get_pharmacy_settings(self) -> PharmacySettings:
        if self.pharmacy is None:
            self.pharmacy = PharmacySettings(**DEFAULT_PHARMACY)
        return self.pharmacy.model_copy()

    async def update_pharmacy_settings(self, settings: PharmacySettings) -> PharmacySettings:
        self.pharmacy = settings.model_copy()
        return self.pharmacy.model_copy()
