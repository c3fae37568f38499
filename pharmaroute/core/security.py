from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer

from pharmaroute.core.config import Settings, get_settings
from pharmaroute.core.policy import has_scopes
from pharmaroute.deps import get_app_settings, get_repo
from pharmaroute.schemas import User

# tokens come from the surrounding auth service; tokenUrl is only for the docs UI
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def create_token(user_id: str, minutes: int = 60, settings: Optional[Settings] = None, **claims: Any) -> str:
    settings = settings or get_settings()
    payload: Dict[str, Any] = {"sub": user_id, **claims}
    payload["exp"] = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)


def decode_token(token: str, settings: Settings) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    repo=Depends(get_repo),
    settings: Settings = Depends(get_app_settings),
) -> User:
    data = decode_token(token, settings)
    user = await repo.get_user(data.get("sub", ""))
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_scopes(required: List[str]):
    async def checker(user: User = Depends(get_current_user)) -> User:
        if not has_scopes(user.role, required):
            raise HTTPException(status_code=403, detail="Not enough permissions")
        return user
    return checker
