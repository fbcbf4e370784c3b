"""
JWT helpers.

Tokens are issued by the upstream user service; this backend only verifies
them. ``create_access_token`` exists for tooling and tests.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt

from alerthub.config import get_settings


def create_access_token(
    user_id: int,
    username: str,
    roles: list[str] | None = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Sign an access token.

    Args:
        user_id: operator id, stored as ``sub``
        username: display name carried in the token
        roles: role names, e.g. ``["operator"]``
        expires_delta: lifetime, defaults to ``Settings.access_token_exp_minutes``

    Returns:
        str: encoded JWT
    """
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_exp_minutes)
    )
    to_encode: dict[str, Any] = {
        "sub": str(user_id),
        "username": username,
        "roles": list(roles or []),
        "type": "access",
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_jwt_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry; raises ``JWTError`` on failure."""
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def verify_token(token: str) -> Optional[dict[str, Any]]:
    try:
        return decode_jwt_token(token)
    except JWTError:
        return None
