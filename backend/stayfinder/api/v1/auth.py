"""Auth API router — register, login, refresh, profile, favorites, password reset."""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from jose import JWTError
from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from stayfinder.api.deps import auth_rate_limit, get_current_user, get_db
from stayfinder.auth.jwt import (
    PASSWORD_RESET,
    REFRESH,
    create_password_reset_token,
    create_token_pair,
    decode_token,
    hash_token,
)
from stayfinder.auth.passwords import hash_password, verify_password
from stayfinder.config import settings
from stayfinder.models.property import Property
from stayfinder.models.user import User, user_favorites
from stayfinder.schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserResponse,
)
from stayfinder.schemas.property import PropertyListResponse
from stayfinder.services.notification_service import send_templated_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# POST /register
# ---------------------------------------------------------------------------


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limit)],
)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)) -> AuthResponse:
    """Register a guest or host account with email and password."""
    email = body.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already exists with this email",
        )

    user = User(
        name=body.name,
        email=email,
        hashed_password=hash_password(body.password),
        role=body.role,
        phone=body.phone,
        bio=body.bio,
        profile_picture=body.profile_picture,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    logger.info("Registered %s account %s", user.role, user.id)

    tokens = create_token_pair(str(user.id))
    return AuthResponse(
        user=UserResponse.model_validate(user),
        tokens=TokenResponse(**tokens),
    )


# ---------------------------------------------------------------------------
# POST /login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=AuthResponse, dependencies=[Depends(auth_rate_limit)])
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)) -> AuthResponse:
    """Authenticate with email and password."""
    result = await db.execute(select(User).where(User.email == body.email.lower()))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(body.password, user.hashed_password):
        logger.info("Failed login for %s", body.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is suspended",
        )

    tokens = create_token_pair(str(user.id))
    return AuthResponse(
        user=UserResponse.model_validate(user),
        tokens=TokenResponse(**tokens),
    )


# ---------------------------------------------------------------------------
# POST /refresh
# ---------------------------------------------------------------------------


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    """Exchange a valid refresh token for a new token pair."""
    invalid = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired refresh token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(body.refresh_token)
    except JWTError:
        raise invalid from None

    if payload.get("type") != REFRESH:
        raise invalid

    try:
        user_id = uuid.UUID(payload.get("sub") or "")
    except ValueError:
        raise invalid from None

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return TokenResponse(**create_token_pair(str(user.id)))


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)) -> User:
    """Return the currently authenticated user's profile."""
    return current_user


@router.put("/me", response_model=UserResponse)
async def update_me(
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> User:
    """Update name, phone, bio or profile picture."""
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)

    db.add(current_user)
    await db.flush()
    await db.refresh(current_user)
    return current_user


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------


@router.get("/favorites", response_model=PropertyListResponse)
async def list_favorites(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    """Return the caller's saved properties, most recently saved first."""
    result = await db.execute(
        select(Property)
        .join(user_favorites, user_favorites.c.property_id == Property.id)
        .where(user_favorites.c.user_id == current_user.id)
        .order_by(user_favorites.c.created_at.desc())
    )
    items = list(result.scalars().all())
    return {"items": items, "total": len(items)}


@router.post("/favorites/{property_id}", response_model=MessageResponse)
async def add_favorite(
    property_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    """Save a property. Saving the same property again is a no-op."""
    if await db.get(Property, property_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Property not found")

    result = await db.execute(
        select(func.count())
        .select_from(user_favorites)
        .where(user_favorites.c.user_id == current_user.id, user_favorites.c.property_id == property_id)
    )
    if result.scalar_one() == 0:
        await db.execute(insert(user_favorites).values(user_id=current_user.id, property_id=property_id))
        await db.flush()

    return {"message": "Property added to favorites"}


@router.delete("/favorites/{property_id}", response_model=MessageResponse)
async def remove_favorite(
    property_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    """Remove a saved property. Removing one that is not saved still succeeds."""
    await db.execute(
        delete(user_favorites).where(
            user_favorites.c.user_id == current_user.id,
            user_favorites.c.property_id == property_id,
        )
    )
    await db.flush()
    return {"message": "Property removed from favorites"}


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@router.post("/forgot-password", response_model=MessageResponse, dependencies=[Depends(auth_rate_limit)])
async def forgot_password(
    body: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Email a reset link. The response never reveals whether the email exists."""
    result = await db.execute(select(User).where(User.email == body.email.lower()))
    user = result.scalar_one_or_none()

    if user is not None and user.is_active:
        token = create_password_reset_token(str(user.id))
        user.password_reset_token_hash = hash_token(token)
        user.password_reset_expires = datetime.now(timezone.utc) + timedelta(
            minutes=settings.password_reset_expire_minutes
        )
        await db.flush()

        background_tasks.add_task(
            send_templated_email,
            user.email,
            "password_reset",
            name=user.name,
            reset_url=f"{settings.frontend_url}/reset-password?token={token}",
            expires_minutes=settings.password_reset_expire_minutes,
        )
        logger.info("Password reset requested for user %s", user.id)

    return {"message": "If an account exists for that email, a password reset link has been sent"}


@router.post("/reset-password", response_model=MessageResponse, dependencies=[Depends(auth_rate_limit)])
async def reset_password(body: ResetPasswordRequest, db: AsyncSession = Depends(get_db)) -> dict:
    """Set a new password using a token from the reset email. Tokens are single-use."""
    invalid = HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Password reset token is invalid or has expired",
    )
    try:
        payload = decode_token(body.token)
        user_id = uuid.UUID(payload.get("sub") or "")
    except (JWTError, ValueError):
        raise invalid from None

    if payload.get("type") != PASSWORD_RESET:
        raise invalid

    user = await db.get(User, user_id)
    if (
        user is None
        or user.password_reset_token_hash != hash_token(body.token)
        or user.password_reset_expires is None
        or _as_utc(user.password_reset_expires) < datetime.now(timezone.utc)
    ):
        raise invalid

    user.hashed_password = hash_password(body.password)
    user.password_reset_token_hash = None
    user.password_reset_expires = None
    await db.flush()
    logger.info("Password reset completed for user %s", user.id)

    return {"message": "Password has been reset successfully"}
