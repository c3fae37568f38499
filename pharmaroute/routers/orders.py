# pharmaroute/routers/orders.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from pharmaroute.core.errors import OrderNotFound
from pharmaroute.core.security import require_scopes
from pharmaroute.deps import get_lifecycle, get_repo
from pharmaroute.schemas import AssignIn, Order, OrderCreate, OrderStatus, StatusChange, User

router = APIRouter(prefix="/api/orders", tags=["orders"])


def _ensure_courier_scope(user: User, courier_id: str) -> None:
    # Couriers only see and touch their own route
    if user.role == "delivery" and user.id != courier_id:
        raise HTTPException(403, "Couriers can only access their own orders")


@router.post("", response_model=Order, status_code=201)
async def create_order(
    payload: OrderCreate,
    lifecycle=Depends(get_lifecycle),
    user: User = Depends(require_scopes(["orders:create"])),
):
    return await lifecycle.create(payload, by_user=user.id)


@router.get("", response_model=List[Order])
async def list_orders(
    status: Optional[OrderStatus] = Query(None),
    repo=Depends(get_repo),
    user: User = Depends(require_scopes(["orders:view"])),
):
    return await repo.list_orders(status=status, newest_first=True)


@router.get("/courier/{courier_id}", response_model=List[Order])
async def courier_route(
    courier_id: str,
    repo=Depends(get_repo),
    user: User = Depends(require_scopes(["orders:view"])),
):
    """Active route of one courier, oldest order first."""
    _ensure_courier_scope(user, courier_id)
    return await repo.list_orders(status=["assigned", "in_transit"], assigned_to=courier_id)


@router.get("/courier/{courier_id}/delivered", response_model=List[Order])
async def courier_delivered(
    courier_id: str,
    repo=Depends(get_repo),
    user: User = Depends(require_scopes(["orders:view"])),
):
    _ensure_courier_scope(user, courier_id)
    return await repo.list_orders(status="delivered", assigned_to=courier_id, newest_first=True)


@router.get("/client/{client_id}", response_model=List[Order])
async def client_orders(
    client_id: str,
    repo=Depends(get_repo),
    user: User = Depends(require_scopes(["orders:view", "clients:view"])),
):
    return await repo.list_orders(client_id=client_id, newest_first=True)


@router.get("/{order_id}", response_model=Order)
async def get_order(
    order_id: str,
    repo=Depends(get_repo),
    user: User = Depends(require_scopes(["orders:view"])),
):
    order = await repo.get_order(order_id)
    if not order:
        raise OrderNotFound(order_id)
    return order


@router.delete("/{order_id}")
async def delete_order(
    order_id: str,
    lifecycle=Depends(get_lifecycle),
    user: User = Depends(require_scopes(["orders:delete"])),
):
    await lifecycle.delete(order_id, by_user=user.id)
    return {"deleted": True}


@router.post("/{order_id}/status", response_model=Order)
async def change_status(
    order_id: str,
    change: StatusChange,
    repo=Depends(get_repo),
    lifecycle=Depends(get_lifecycle),
    user: User = Depends(require_scopes(["orders:update_status"])),
):
    if user.role == "delivery":
        order = await repo.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)
        if order.assigned_to != user.id:
            raise HTTPException(403, "Couriers can only update orders assigned to them")
        if change.courier_id and change.courier_id != user.id:
            raise HTTPException(403, "Couriers cannot reassign orders")
    return await lifecycle.set_status(order_id, change, by_user=user.id)


@router.post("/{order_id}/assign", response_model=Order)
async def assign_courier(
    order_id: str,
    body: AssignIn,
    lifecycle=Depends(get_lifecycle),
    user: User = Depends(require_scopes(["orders:assign"])),
):
    change = StatusChange(
        target_status=body.status,
        courier_id=body.courier_id,
        expected_version=body.expected_version,
    )
    return await lifecycle.set_status(order_id, change, by_user=user.id)


@router.post("/{order_id}/unassign", response_model=Order)
async def unassign_courier(
    order_id: str,
    lifecycle=Depends(get_lifecycle),
    user: User = Depends(require_scopes(["orders:assign"])),
):
    return await lifecycle.set_status(order_id, StatusChange(target_status="pending"), by_user=user.id)
