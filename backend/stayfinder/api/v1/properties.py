"""Properties API router — public search plus host/admin listing management.

Visibility rule: unapproved listings are hidden from everyone except their
host and admins, in lists and detail views alike.
"""

from __future__ import annotations

import json
import logging
import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stayfinder.api.deps import get_current_user, get_db, get_optional_user, require_admin, require_host
from stayfinder.models.property import Property
from stayfinder.models.user import User
from stayfinder.schemas.auth import MessageResponse
from stayfinder.schemas.property import (
    AvailabilityToggleResponse,
    HostPropertiesResponse,
    NearbyPropertyResponse,
    PropertyApproval,
    PropertyCreate,
    PropertyListResponse,
    PropertyResponse,
    PropertyType,
    PropertyUpdate,
)
from stayfinder.services.booking_service import utc_today
from stayfinder.services.property_service import (
    bounding_box,
    count_active_bookings,
    ensure_can_manage,
    get_property_or_404,
    haversine_km,
    is_visible,
    longitude_ranges,
    set_approval,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/properties", tags=["properties"])

SORTABLE_FIELDS = {
    "created_at": Property.created_at,
    "price": Property.price,
    "avg_rating": Property.avg_rating,
    "review_count": Property.review_count,
    "title": Property.title,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _order_by(sort: str):
    descending = sort.startswith("-")
    column = SORTABLE_FIELDS.get(sort.lstrip("-"))
    if column is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot sort by '{sort}'. Allowed: {', '.join(sorted(SORTABLE_FIELDS))}",
        )
    return column.desc() if descending else column.asc()


def _column_values(data: dict) -> dict:
    """Flatten nested request objects onto the model's columns."""
    values = dict(data)
    address = values.pop("address", None)
    if address is not None:
        values.update(address)
    location = values.pop("location", None)
    if location is not None:
        values["longitude"], values["latitude"] = location["coordinates"]
    return values


async def _get_visible_property(db: AsyncSession, property_id: uuid.UUID, user: User | None) -> Property:
    prop = await get_property_or_404(db, property_id)
    if not is_visible(user, prop):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Property not found")
    return prop


# ---------------------------------------------------------------------------
# Public search
# ---------------------------------------------------------------------------


@router.get("", response_model=PropertyListResponse, summary="Search listings")
async def list_properties(
    property_type: PropertyType | None = Query(None),
    min_price: Decimal | None = Query(None, ge=0),
    max_price: Decimal | None = Query(None, ge=0),
    bedrooms: int | None = Query(None, ge=0, description="Minimum bedrooms"),
    bathrooms: int | None = Query(None, ge=0, description="Minimum bathrooms"),
    max_guests: int | None = Query(None, ge=1, description="Listing must sleep at least this many guests"),
    city: str | None = Query(None),
    country: str | None = Query(None),
    amenities: str | None = Query(None, description="Comma-separated; every amenity must be present"),
    is_available: bool | None = Query(None),
    is_approved: bool | None = Query(None, description="Admins only; ignored for other callers"),
    host_id: uuid.UUID | None = Query(None),
    search: str | None = Query(None, description="Matches title, description, city, state or country"),
    sort: str = Query("-created_at"),
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
) -> dict:
    """Return a filtered, sorted page of listings."""
    filters = []

    if current_user is not None and current_user.is_admin:
        if is_approved is not None:
            filters.append(Property.is_approved.is_(is_approved))
    else:
        filters.append(Property.is_approved.is_(True))

    if property_type is not None:
        filters.append(Property.property_type == property_type)
    if min_price is not None:
        filters.append(Property.price >= min_price)
    if max_price is not None:
        filters.append(Property.price <= max_price)
    if bedrooms is not None:
        filters.append(Property.bedrooms >= bedrooms)
    if bathrooms is not None:
        filters.append(Property.bathrooms >= bathrooms)
    if max_guests is not None:
        filters.append(Property.max_guests >= max_guests)
    if city:
        filters.append(Property.city.ilike(f"%{city}%"))
    if country:
        filters.append(Property.country.ilike(f"%{country}%"))
    if amenities:
        for amenity in (a.strip() for a in amenities.split(",")):
            if amenity:
                filters.append(cast(Property.amenities, String).contains(json.dumps(amenity), autoescape=True))
    if is_available is not None:
        filters.append(Property.is_available.is_(is_available))
    if host_id is not None:
        filters.append(Property.host_id == host_id)
    if search:
        pattern = f"%{search}%"
        filters.append(
            or_(
                Property.title.ilike(pattern),
                Property.description.ilike(pattern),
                Property.city.ilike(pattern),
                Property.state.ilike(pattern),
                Property.country.ilike(pattern),
            )
        )

    total = (await db.execute(select(func.count(Property.id)).where(*filters))).scalar_one()
    result = await db.execute(select(Property).where(*filters).order_by(_order_by(sort)).offset(skip).limit(limit))
    return {"items": list(result.scalars().all()), "total": total}


@router.get("/nearby", response_model=list[NearbyPropertyResponse], summary="Listings near a point")
async def nearby_properties(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    distance_km: float = Query(10, gt=0, le=500),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> list[NearbyPropertyResponse]:
    """Approved, available listings within ``distance_km``, nearest first."""
    min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, distance_km)
    result = await db.execute(
        select(Property).where(
            Property.is_approved.is_(True),
            Property.is_available.is_(True),
            Property.latitude.between(min_lat, max_lat),
            or_(*(Property.longitude.between(lo, hi) for lo, hi in longitude_ranges(min_lng, max_lng))),
        )
    )

    ranked = []
    for prop in result.scalars().all():
        distance = haversine_km(lat, lng, prop.latitude, prop.longitude)
        if distance <= distance_km:
            ranked.append((distance, prop))
    ranked.sort(key=lambda pair: pair[0])

    return [
        NearbyPropertyResponse(
            **PropertyResponse.model_validate(prop).model_dump(),
            distance_km=round(distance, 2),
        )
        for distance, prop in ranked[:limit]
    ]


@router.get("/host/{host_id}", response_model=HostPropertiesResponse, summary="A host's listings")
async def host_properties(
    host_id: uuid.UUID,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
) -> dict:
    """List a host's properties; unapproved ones only for the host themself or admins."""
    host = await db.get(User, host_id)
    if host is None or not host.can_host:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Host not found")

    filters = [Property.host_id == host_id]
    if current_user is None or (current_user.id != host_id and not current_user.is_admin):
        filters.append(Property.is_approved.is_(True))

    total = (await db.execute(select(func.count(Property.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(Property).where(*filters).order_by(Property.created_at.desc()).offset(skip).limit(limit)
    )
    return {"host": host, "items": list(result.scalars().all()), "total": total}


@router.get("/{property_id}", response_model=PropertyResponse, summary="Listing detail")
async def get_property(
    property_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
) -> Property:
    return await _get_visible_property(db, property_id, current_user)


# ---------------------------------------------------------------------------
# Host management
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=PropertyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a listing",
)
async def create_property(
    body: PropertyCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_host),
) -> Property:
    """Create a listing owned by the caller.

    Listings start unapproved unless an admin creates them.
    """
    prop = Property(
        **_column_values(body.model_dump()),
        host_id=current_user.id,
        is_approved=current_user.is_admin,
    )
    db.add(prop)
    await db.flush()
    await db.refresh(prop)
    logger.info("Property %s created by %s (approved=%s)", prop.id, current_user.id, prop.is_approved)
    return prop


@router.put("/{property_id}", response_model=PropertyResponse, summary="Update a listing")
async def update_property(
    property_id: uuid.UUID,
    body: PropertyUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Property:
    """Partially update a listing. Only its host or an admin may do so."""
    prop = await get_property_or_404(db, property_id)
    ensure_can_manage(current_user, prop, "update")

    for field, value in _column_values(body.model_dump(exclude_unset=True)).items():
        setattr(prop, field, value)

    db.add(prop)
    await db.flush()
    await db.refresh(prop)
    return prop


@router.delete("/{property_id}", response_model=MessageResponse, summary="Delete a listing")
async def delete_property(
    property_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    """Delete a listing along with its bookings, reviews and blocked dates.

    Refused while guests hold pending or confirmed stays that have not ended.
    """
    prop = await get_property_or_404(db, property_id)
    ensure_can_manage(current_user, prop, "delete")

    active = await count_active_bookings(db, prop.id, utc_today())
    if active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete property with {active} active booking(s)",
        )

    await db.delete(prop)
    await db.flush()
    logger.info("Property %s deleted by %s", property_id, current_user.id)
    return {"message": "Property deleted"}


@router.patch(
    "/{property_id}/availability",
    response_model=AvailabilityToggleResponse,
    summary="Toggle whether a listing accepts bookings",
)
async def toggle_availability(
    property_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    prop = await get_property_or_404(db, property_id)
    ensure_can_manage(current_user, prop, "update")

    prop.is_available = not prop.is_available
    await db.flush()
    return {"id": prop.id, "is_available": prop.is_available}


@router.patch("/{property_id}/approve", response_model=PropertyResponse, summary="Approve or reject a listing")
async def approve_property(
    property_id: uuid.UUID,
    body: PropertyApproval | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> Property:
    body = body or PropertyApproval()
    prop = await get_property_or_404(db, property_id)
    await set_approval(db, prop, body.is_approved, body.rejection_reason)
    logger.info("Property %s approval set to %s by admin %s", prop.id, prop.is_approved, current_user.id)
    return prop
