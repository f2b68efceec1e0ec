"""Admin API router — marketplace oversight. Every route requires the admin role."""

import logging
import uuid
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from stayfinder.api.deps import get_db, require_admin
from stayfinder.models.booking import Booking
from stayfinder.models.property import Property
from stayfinder.models.review import Review
from stayfinder.models.user import User
from stayfinder.schemas.admin import AdminUserListResponse, AdminUserResponse, DashboardResponse, UserStatusUpdate
from stayfinder.schemas.auth import MessageResponse
from stayfinder.schemas.booking import BookingListResponse
from stayfinder.schemas.property import PropertyApproval, PropertyListResponse, PropertyResponse
from stayfinder.schemas.review import ModerationQueueResponse
from stayfinder.services import review_service
from stayfinder.services.booking_service import utc_today
from stayfinder.services.property_service import count_active_bookings, get_property_or_404, set_approval

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"], dependencies=[Depends(require_admin)])

PROPERTY_SORT_FIELDS = {
    "created_at": Property.created_at,
    "title": Property.title,
    "price": Property.price,
    "avg_rating": Property.avg_rating,
}


async def _count(db: AsyncSession, column, *filters) -> int:
    return (await db.execute(select(func.count(column)).where(*filters))).scalar_one()


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(db: AsyncSession = Depends(get_db)) -> dict:
    """Counters across listings, bookings and users, plus recent activity."""
    revenue = (
        await db.execute(
            select(func.coalesce(func.sum(Booking.total_price), 0)).where(
                Booking.status == "confirmed",
                Booking.payment_status == "paid",
            )
        )
    ).scalar_one()

    recent_bookings = await db.execute(select(Booking).order_by(Booking.created_at.desc()).limit(5))
    recent_properties = await db.execute(select(Property).order_by(Property.created_at.desc()).limit(5))

    return {
        "properties": {
            "total": await _count(db, Property.id),
            "pending": await _count(db, Property.id, Property.is_approved.is_(False)),
            "approved": await _count(db, Property.id, Property.is_approved.is_(True)),
        },
        "bookings": {
            "total": await _count(db, Booking.id),
            "pending": await _count(db, Booking.id, Booking.status == "pending"),
            "confirmed": await _count(db, Booking.id, Booking.status == "confirmed"),
        },
        "users": {
            "total": await _count(db, User.id, User.role.in_(("user", "host"))),
            "hosts": await _count(db, User.id, User.role == "host"),
        },
        "revenue": revenue,
        "recent_bookings": list(recent_bookings.scalars().all()),
        "recent_properties": list(recent_properties.scalars().all()),
    }


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@router.get("/properties", response_model=PropertyListResponse)
async def list_properties(
    status_filter: Literal["pending", "approved"] | None = Query(None, alias="status"),
    search: str | None = Query(None, description="Matches title, city or state"),
    sort_by: str = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> dict:
    column = PROPERTY_SORT_FIELDS.get(sort_by)
    if column is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot sort by '{sort_by}'. Allowed: {', '.join(sorted(PROPERTY_SORT_FIELDS))}",
        )

    filters = []
    if status_filter == "pending":
        filters.append(Property.is_approved.is_(False))
    elif status_filter == "approved":
        filters.append(Property.is_approved.is_(True))
    if search:
        pattern = f"%{search}%"
        filters.append(
            or_(Property.title.ilike(pattern), Property.city.ilike(pattern), Property.state.ilike(pattern))
        )

    order = column.desc() if sort_order == "desc" else column.asc()
    total = await _count(db, Property.id, *filters)
    result = await db.execute(select(Property).where(*filters).order_by(order).offset(skip).limit(limit))
    return {"items": list(result.scalars().all()), "total": total}


@router.patch("/properties/{property_id}/approval", response_model=PropertyResponse)
async def update_property_approval(
    property_id: uuid.UUID,
    body: PropertyApproval,
    db: AsyncSession = Depends(get_db),
) -> Property:
    prop = await get_property_or_404(db, property_id)
    await set_approval(db, prop, body.is_approved, body.rejection_reason)
    logger.info("Property %s %s", prop.id, "approved" if prop.is_approved else "rejected")
    return prop


@router.delete("/properties/{property_id}", response_model=MessageResponse)
async def delete_property(property_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> dict:
    prop = await get_property_or_404(db, property_id)

    active = await count_active_bookings(db, prop.id, utc_today())
    if active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete property with {active} active booking(s)",
        )

    await db.delete(prop)
    await db.flush()
    logger.info("Property %s deleted by admin", property_id)
    return {"message": "Property deleted"}


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------


@router.get("/bookings", response_model=BookingListResponse)
async def list_bookings(
    status_filter: str | None = Query(None, alias="status"),
    payment_status: str | None = Query(None),
    search: str | None = Query(None, description="Matches property title, guest or host name/email"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> dict:
    guest = aliased(User)
    host = aliased(User)
    query = (
        select(Booking)
        .join(Property, Booking.property_id == Property.id)
        .join(guest, Booking.guest_id == guest.id)
        .join(host, Booking.host_id == host.id)
    )

    if status_filter is not None:
        query = query.where(Booking.status == status_filter)
    if payment_status is not None:
        query = query.where(Booking.payment_status == payment_status)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                Property.title.ilike(pattern),
                guest.name.ilike(pattern),
                guest.email.ilike(pattern),
                host.name.ilike(pattern),
                host.email.ilike(pattern),
            )
        )

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
    result = await db.execute(query.order_by(Booking.created_at.desc()).offset(skip).limit(limit))
    return {"items": list(result.scalars().all()), "total": total}


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def _user_stats(db: AsyncSession, user: User) -> dict:
    if user.role == "host":
        return {
            "properties": await _count(db, Property.id, Property.host_id == user.id),
            "bookings_received": await _count(db, Booking.id, Booking.host_id == user.id),
        }
    return {"bookings_made": await _count(db, Booking.id, Booking.guest_id == user.id)}


@router.get("/users", response_model=AdminUserListResponse)
async def list_users(
    role: Literal["user", "host"] | None = Query(None),
    search: str | None = Query(None, description="Matches name or email"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Non-admin accounts, newest first, each with activity counts."""
    filters = [User.role != "admin"]
    if role is not None:
        filters.append(User.role == role)
    if search:
        pattern = f"%{search}%"
        filters.append(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

    total = await _count(db, User.id, *filters)
    result = await db.execute(select(User).where(*filters).order_by(User.created_at.desc()).offset(skip).limit(limit))

    items = []
    for user in result.scalars().all():
        row = AdminUserResponse.model_validate(
            {
                "id": user.id,
                "email": user.email,
                "name": user.name,
                "role": user.role,
                "phone": user.phone,
                "is_verified": user.is_verified,
                "is_active": user.is_active,
                "suspension_reason": user.suspension_reason,
                "created_at": user.created_at,
                "stats": await _user_stats(db, user),
            }
        )
        items.append(row)
    return {"items": items, "total": total}


@router.patch("/users/{user_id}/status", response_model=MessageResponse)
async def update_user_status(
    user_id: uuid.UUID,
    body: UserStatusUpdate,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Suspend or reactivate an account. Admin accounts cannot be changed here."""
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot modify admin users",
        )

    user.is_active = body.is_active
    user.suspension_reason = None if body.is_active else body.reason
    await db.flush()
    logger.info("User %s %s", user.id, "activated" if body.is_active else "suspended")
    return {"message": f"User {'activated' if body.is_active else 'suspended'} successfully"}


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


@router.get("/reviews", response_model=ModerationQueueResponse)
async def list_reviews(
    is_approved: bool | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> dict:
    filters = []
    if is_approved is not None:
        filters.append(Review.is_approved.is_(is_approved))

    total = await _count(db, Review.id, *filters)
    result = await db.execute(
        select(Review).where(*filters).order_by(Review.created_at.desc()).offset(skip).limit(limit)
    )
    return {"items": list(result.scalars().all()), "total": total}


@router.delete("/reviews/{review_id}", response_model=MessageResponse)
async def delete_review(review_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> dict:
    review = await db.get(Review, review_id)
    if review is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")

    property_id = review.property_id
    await db.delete(review)
    await review_service.recalculate_property_rating(db, property_id)
    logger.info("Review %s deleted by admin", review_id)
    return {"message": "Review deleted"}
