from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

# --------------------------
# Enumerations
# --------------------------
OrderStatus = Literal["pending", "assigned", "in_transit", "delivered", "cancelled"]
PaymentMethod = Literal["cash", "transfer"]
Role = Literal["admin", "agent", "delivery"]
CourierStatus = Literal["available", "in_route", "offline"]

# --------------------------
# Shared Submodels
# --------------------------
class Location(BaseModel):
    address: str = Field(..., min_length=5)
    lat: Optional[float] = None
    lng: Optional[float] = None


class OrderItem(BaseModel):
    id: str
    name: str
    quantity: int = Field(..., gt=0)
    price: float = Field(..., gt=0)


class ClientRef(BaseModel):
    id: str
    full_name: str
    phone: str

# --------------------------
# Users & Clients
# --------------------------
class UserIn(BaseModel):
    name: str = Field(..., min_length=3)
    role: Role
    cedula: str
    phone: str
    status: Optional[CourierStatus] = None


class User(UserIn):
    id: str


class UserUpdate(BaseModel):
    """Partial profile edit; omitted fields are left as stored."""
    name: Optional[str] = Field(None, min_length=3)
    phone: Optional[str] = Field(None, pattern=r"^\d{10}$")
    cedula: Optional[str] = Field(None, min_length=5)
    role: Optional[Role] = None


class CourierStatusIn(BaseModel):
    status: CourierStatus


class ClientIn(BaseModel):
    full_name: str = Field(..., min_length=3)
    phone: str = Field(..., pattern=r"^\d{10}$")


class ClientUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=3)
    phone: Optional[str] = Field(None, pattern=r"^\d{10}$")


class Client(BaseModel):
    id: str
    full_name: str
    phone: str
    addresses: List[Location] = []

# --------------------------
# Orders
# --------------------------
class StatusEvent(BaseModel):
    at: datetime
    by_user: Optional[str] = None
    from_status: Optional[OrderStatus] = None
    to_status: OrderStatus
    courier_id: Optional[str] = None
    note: Optional[str] = None


class OrderCreate(BaseModel):
    client_name: str = Field(..., min_length=3)
    client_phone: str = Field(..., pattern=r"^\d{10}$")
    delivery_location: Location
    items: List[OrderItem] = Field(..., min_length=1)
    total: float = Field(..., gt=0)
    payment_method: PaymentMethod
    delivery_notes: Optional[str] = None


class Order(BaseModel):
    id: str
    client: ClientRef
    delivery_location: Location
    items: List[OrderItem]
    status: OrderStatus = "pending"
    assigned_to: Optional[str] = None
    created_by: str
    total: float
    payment_method: PaymentMethod
    delivery_notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    version: int = 1
    history: List[StatusEvent] = []


class StatusChange(BaseModel):
    """Explicit request for a lifecycle transition."""
    target_status: str
    courier_id: Optional[str] = None
    expected_version: Optional[int] = None
    note: Optional[str] = None

    @field_validator("courier_id")
    @classmethod
    def _blank_courier_is_none(cls, v):
        return v or None


class AssignIn(BaseModel):
    courier_id: str
    status: Literal["assigned", "in_transit"] = "in_transit"
    expected_version: Optional[int] = None

# --------------------------
# Routing
# --------------------------
class OptimizedStop(BaseModel):
    order_id: str
    stop_number: int


class RoutePlan(BaseModel):
    stops: List[OptimizedStop]
    estimated_time: str
    estimated_distance: str
    distance_m: float = 0.0
    duration_s: float = 0.0


class OptimizeIn(BaseModel):
    start_address: Optional[str] = None


class OptimizeOut(BaseModel):
    applied: bool
    orders: List[Order]
    estimated_time: Optional[str] = None
    estimated_distance: Optional[str] = None
    warning: Optional[str] = None


class BoardOut(BaseModel):
    pending: List[Order]
    routes: Dict[str, List[Order]]

# --------------------------
# Cash reconciliation
# --------------------------
class CourierCash(BaseModel):
    courier_id: str
    courier_name: str
    order_count: int
    subtotal: float
    order_ids: List[str] = []


class CashReconciliation(BaseModel):
    order_count: int
    total_cash: float
    total_transfer: float
    grand_total: float
    by_courier: List[CourierCash]
    unattributed_count: int = 0

# --------------------------
# Pharmacy settings
# --------------------------
class PharmacySettings(BaseModel):
    name: str = Field(..., min_length=3)
    address: str = Field(..., min_length=5)
    phone: str = Field(..., min_length=7)
