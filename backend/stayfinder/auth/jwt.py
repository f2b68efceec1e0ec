"""JWT creation and verification for access, refresh, and password reset tokens.

Every token carries ``sub`` (user UUID string), ``iat``, ``exp`` and a
``type`` claim; callers must check ``type`` so that, say, a refresh token is
never accepted as a bearer credential.
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone

from jose import jwt

from stayfinder.config import settings

ACCESS = "access"
REFRESH = "refresh"
PASSWORD_RESET = "password_reset"


def _encode(claims: dict, token_type: str, lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {**claims, "iat": now, "exp": now + lifetime, "type": token_type}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a short-lived access token.

    Args:
        data: Payload data. Must include ``sub``.
        expires_delta: Custom lifetime. Defaults to
            ``settings.jwt_access_token_expire_minutes`` minutes.
    """
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    return _encode(data, ACCESS, lifetime)


def create_refresh_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a long-lived refresh token (``settings.jwt_refresh_token_expire_days``)."""
    lifetime = expires_delta or timedelta(days=settings.jwt_refresh_token_expire_days)
    return _encode(data, REFRESH, lifetime)


def create_password_reset_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Create the token embedded in a forgot-password email link.

    A random ``jti`` makes every token unique, so only the most recently
    issued one matches the digest stored on the user.
    """
    lifetime = expires_delta or timedelta(minutes=settings.password_reset_expire_minutes)
    return _encode({"sub": user_id, "jti": secrets.token_urlsafe(16)}, PASSWORD_RESET, lifetime)


def decode_token(token: str) -> dict:
    """Decode and verify a JWT.

    Raises:
        jose.JWTError: If the token is invalid, expired, or malformed.
    """
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def create_token_pair(user_id: str) -> dict[str, str]:
    """Access + refresh tokens for a freshly authenticated user."""
    payload = {"sub": user_id}
    return {
        "access_token": create_access_token(payload),
        "refresh_token": create_refresh_token(payload),
        "token_type": "bearer",
    }


def hash_token(token: str) -> str:
    """SHA-256 hex digest used to store reset tokens at rest."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
