# pharmaroute/routers/couriers.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from pharmaroute.core.policy import has_scopes
from pharmaroute.core.security import get_current_user, require_scopes
from pharmaroute.deps import get_board, get_repo
from pharmaroute.schemas import CourierStatus, CourierStatusIn, User, UserIn, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/couriers", tags=["couriers"])


async def _get_courier(repo, courier_id: str) -> User:
    courier = await repo.get_user(courier_id)
    if not courier or courier.role != "delivery":
        raise HTTPException(404, "Courier not found")
    return courier


@router.get("", response_model=List[User])
async def list_couriers(
    status: Optional[CourierStatus] = Query(None),
    repo=Depends(get_repo),
    user: User = Depends(require_scopes(["couriers:view"])),
):
    return await repo.list_users(role="delivery", status=status)


@router.post("", response_model=User, status_code=201)
async def add_courier(
    body: UserIn,
    repo=Depends(get_repo),
    board=Depends(get_board),
    user: User = Depends(require_scopes(["couriers:manage"])),
):
    if body.role != "delivery":
        raise HTTPException(400, "Couriers must have role 'delivery'")
    data = body.model_copy(update={"status": body.status or "available"})
    created = await repo.create_user(data)
    await board.invalidate()
    return created


@router.patch("/{courier_id}", response_model=User)
async def update_courier(
    courier_id: str,
    body: UserUpdate,
    repo=Depends(get_repo),
    board=Depends(get_board),
    user: User = Depends(require_scopes(["couriers:manage"])),
):
    await _get_courier(repo, courier_id)
    fields = body.model_dump(exclude_none=True)
    if not fields:
        raise HTTPException(400, "Nothing to update")
    updated = await repo.update_user(courier_id, fields)
    # names and roles feed the cash view
    await board.invalidate()
    return updated


@router.delete("/{courier_id}")
async def delete_courier(
    courier_id: str,
    repo=Depends(get_repo),
    board=Depends(get_board),
    user: User = Depends(require_scopes(["couriers:manage"])),
):
    """
    Remove a courier. Orders keep the stale ``assigned_to`` id: they still
    group under it and count as unattributed in the cash view.
    """
    await _get_courier(repo, courier_id)
    await repo.delete_user(courier_id)
    logger.info("courier %s removed by %s", courier_id, user.id)
    await board.invalidate()
    return {"deleted": True}


@router.patch("/{courier_id}/status", response_model=User)
async def set_courier_status(
    courier_id: str,
    body: CourierStatusIn,
    repo=Depends(get_repo),
    user: User = Depends(get_current_user),
):
    if user.id != courier_id and not has_scopes(user.role, ["couriers:manage"]):
        raise HTTPException(403, "Not enough permissions")
    await _get_courier(repo, courier_id)
    return await repo.update_user(courier_id, {"status": body.status})
