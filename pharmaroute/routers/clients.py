from typing import List

from fastapi import APIRouter, Depends, HTTPException

from pharmaroute.core.errors import ClientNotFound
from pharmaroute.core.security import require_scopes
from pharmaroute.deps import get_repo
from pharmaroute.schemas import Client, ClientIn, ClientUpdate, User

router = APIRouter(prefix="/api/clients", tags=["clients"])


@router.get("", response_model=List[Client])
async def list_clients(repo=Depends(get_repo), user: User = Depends(require_scopes(["clients:view"]))):
    return await repo.list_clients()


@router.post("", response_model=Client, status_code=201)
async def create_client(
    body: ClientIn,
    repo=Depends(get_repo),
    user: User = Depends(require_scopes(["clients:manage"])),
):
    return await repo.create_client(body.full_name, body.phone)


@router.get("/{client_id}", response_model=Client)
async def get_client(client_id: str, repo=Depends(get_repo), user: User = Depends(require_scopes(["clients:view"]))):
    client = await repo.get_client(client_id)
    if not client:
        raise HTTPException(404, "Client not found")
    return client


@router.patch("/{client_id}", response_model=Client)
async def update_client(
    client_id: str,
    body: ClientUpdate,
    repo=Depends(get_repo),
    user: User = Depends(require_scopes(["clients:manage"])),
):
    """Orders keep the client snapshot taken when they were created."""
    fields = body.model_dump(exclude_none=True)
    if not fields:
        raise HTTPException(400, "Nothing to update")
    return await repo.update_client(client_id, fields)


@router.delete("/{client_id}")
async def delete_client(
    client_id: str,
    repo=Depends(get_repo),
    user: User = Depends(require_scopes(["clients:manage"])),
):
    if not await repo.delete_client(client_id):
        raise ClientNotFound(client_id)
    return {"deleted": True}
