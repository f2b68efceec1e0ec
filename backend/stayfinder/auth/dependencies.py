"""FastAPI authentication dependencies for route protection."""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stayfinder.auth.jwt import ACCESS, decode_token
from stayfinder.database import get_db
from stayfinder.models.user import User

# Strict bearer rejects requests without credentials
_bearer_scheme = HTTPBearer()

# Optional bearer returns None if no token provided
_bearer_scheme_optional = HTTPBearer(auto_error=False)


def _user_id_from_token(token: str) -> uuid.UUID | None:
    """Return the subject of a valid access token, or ``None``."""
    try:
        payload = decode_token(token)
    except JWTError:
        return None

    if payload.get("type") != ACCESS:
        return None

    try:
        return uuid.UUID(payload.get("sub") or "")
    except ValueError:
        return None


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Validate the Bearer token and return the authenticated, active user.

    Raises:
        HTTPException 401: If the token is invalid, expired, of the wrong type,
            or its user is missing or suspended.
    """
    user_id = _user_id_from_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme_optional),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Optionally authenticate a user from a Bearer token.

    Returns ``None`` instead of raising when no usable token is provided, for
    public endpoints that reveal more to hosts and admins (e.g. unapproved
    listings).
    """
    if credentials is None:
        return None

    user_id = _user_id_from_token(credentials.credentials)
    if user_id is None:
        return None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        return None
    return user


def require_roles(*roles: str):
    """Dependency factory restricting a route to the given user roles.

    Usage::

        @router.post("", dependencies=[Depends(require_roles("host", "admin"))])
    """

    async def _check_role(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You don't have permission to access this resource.",
            )
        return user

    return _check_role


require_host = require_roles("host", "admin")
require_admin = require_roles("admin")
