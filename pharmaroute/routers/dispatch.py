# pharmaroute/routers/dispatch.py
from typing import Optional

from fastapi import APIRouter, Body, Depends

from pharmaroute.core.security import require_scopes
from pharmaroute.deps import get_board, get_oracle, get_repo
from pharmaroute.schemas import BoardOut, CashReconciliation, OptimizeIn, OptimizeOut, User
from pharmaroute.services.reorder import reorder_pending

router = APIRouter(prefix="/api/dispatch", tags=["dispatch"])


@router.get("/board", response_model=BoardOut)
async def board(
    board=Depends(get_board),
    user: User = Depends(require_scopes(["orders:view"])),
):
    pending, routes = await board.snapshot()
    return {"pending": pending, "routes": routes}


@router.post("/optimize", response_model=OptimizeOut)
async def optimize_pending(
    body: Optional[OptimizeIn] = Body(None),
    board=Depends(get_board),
    repo=Depends(get_repo),
    oracle=Depends(get_oracle),
    user: User = Depends(require_scopes(["routes:optimize"])),
):
    """
    Reorder the pending queue by the oracle's visiting sequence.
    The stored orders are not touched; on oracle failure the queue comes
    back oldest-first with ``applied=false`` and a warning.
    """
    start = (body.start_address if body else None) or (await repo.get_pharmacy_settings()).address
    pending, _ = await board.snapshot()
    result = await reorder_pending(pending, start, oracle)
    return OptimizeOut(
        applied=result.applied,
        orders=result.orders,
        estimated_time=result.plan.estimated_time if result.plan else None,
        estimated_distance=result.plan.estimated_distance if result.plan else None,
        warning=result.warning,
    )


@router.get("/cash", response_model=CashReconciliation)
async def cash(
    board=Depends(get_board),
    user: User = Depends(require_scopes(["cash:view"])),
):
    return await board.reconciliation()
