"""Listing lookups, visibility rules, and distance helpers."""

import math
import uuid
from datetime import date

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stayfinder.models.booking import ACTIVE_STATUSES, Booking
from stayfinder.models.property import Property
from stayfinder.models.user import User

EARTH_RADIUS_KM = 6371.0


async def get_property_or_404(db: AsyncSession, property_id: uuid.UUID) -> Property:
    prop = await db.get(Property, property_id)
    if prop is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Property not found")
    return prop


def can_manage(user: User | None, prop: Property) -> bool:
    """The listing's host and admins may edit it."""
    return user is not None and (user.is_admin or prop.host_id == user.id)


def is_visible(user: User | None, prop: Property) -> bool:
    """Unapproved listings are only visible to their host and admins."""
    return prop.is_approved or can_manage(user, prop)


def ensure_can_manage(user: User, prop: Property, action: str = "modify") -> None:
    if not can_manage(user, prop):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Not authorized to {action} this property",
        )


async def count_active_bookings(db: AsyncSession, property_id: uuid.UUID, today: date) -> int:
    """Pending or confirmed bookings whose guests have not checked out yet."""
    result = await db.execute(
        select(func.count(Booking.id)).where(
            Booking.property_id == property_id,
            Booking.status.in_(ACTIVE_STATUSES),
            Booking.check_out >= today,
        )
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Geography
# ---------------------------------------------------------------------------


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def bounding_box(lat: float, lng: float, radius_km: float) -> tuple[float, float, float, float]:
    """``(min_lat, max_lat, min_lng, max_lng)`` enclosing a circle, for index-friendly prefiltering.

    The longitude half-width is the circle's widest point, not its width at
    the centre latitude. Longitudes are not wrapped, so a circle crossing the
    antimeridian yields ``min_lng < -180`` or ``max_lng > 180``; see
    :func:`longitude_ranges`. A circle that reaches a pole spans every longitude.
    """
    angular = radius_km / EARTH_RADIUS_KM
    phi = math.radians(lat)
    min_phi, max_phi = phi - angular, phi + angular
    if min_phi <= -math.pi / 2 or max_phi >= math.pi / 2:
        return max(-90.0, math.degrees(min_phi)), min(90.0, math.degrees(max_phi)), -180.0, 180.0

    lng_delta = math.degrees(math.asin(math.sin(angular) / math.cos(phi)))
    return math.degrees(min_phi), math.degrees(max_phi), lng - lng_delta, lng + lng_delta


def longitude_ranges(min_lng: float, max_lng: float) -> list[tuple[float, float]]:
    """Split a possibly wrapped longitude band into ranges within [-180, 180]."""
    if max_lng - min_lng >= 360.0:
        return [(-180.0, 180.0)]
    if min_lng < -180.0:
        return [(min_lng + 360.0, 180.0), (-180.0, max_lng)]
    if max_lng > 180.0:
        return [(min_lng, 180.0), (-180.0, max_lng - 360.0)]
    return [(min_lng, max_lng)]


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------


async def set_approval(
    db: AsyncSession, prop: Property, is_approved: bool, rejection_reason: str | None = None
) -> Property:
    """Approve or reject a listing. Approval clears any earlier rejection reason."""
    prop.is_approved = is_approved
    prop.rejection_reason = None if is_approved else rejection_reason
    await db.flush()
    await db.refresh(prop)
    return prop
