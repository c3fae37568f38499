from fastapi import APIRouter, Depends

from pharmaroute.core.security import require_scopes
from pharmaroute.deps import get_repo
from pharmaroute.schemas import PharmacySettings, User

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("/pharmacy", response_model=PharmacySettings)
async def get_pharmacy(repo=Depends(get_repo), user: User = Depends(require_scopes(["settings:view"]))):
    return await repo.get_pharmacy_settings()


@router.put("/pharmacy", response_model=PharmacySettings)
async def update_pharmacy(
    body: PharmacySettings,
    repo=Depends(get_repo),
    user: User = Depends(require_scopes(["settings:manage"])),
):
    return await repo.update_pharmacy_settings(body)
