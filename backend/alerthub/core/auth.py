from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from alerthub.core.security import verify_token


@dataclass(frozen=True)
class CurrentUser:
    id: int
    username: str
    roles: list[str] = field(default_factory=list)


async def get_current_user(request: Request) -> CurrentUser:
    # Accept: Authorization: Bearer <token>
    authz = request.headers.get("Authorization")
    if not authz or not authz.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization header")
    token = authz.split(" ", 1)[1].strip()
    payload = verify_token(token)
    if payload is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    if payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")
    try:
        user_id = int(payload.get("sub", ""))
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")
    if user_id <= 0:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")
    roles = payload.get("roles") or []
    return CurrentUser(
        id=user_id,
        username=str(payload.get("username") or user_id),
        roles=[str(r) for r in roles] if isinstance(roles, list) else [],
    )


def require_roles(*allowed: str):
    async def _dep(current: Annotated[CurrentUser, Depends(get_current_user)]) -> CurrentUser:
        for r in current.roles:
            if r in allowed:
                return current
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")

    return _dep
