"""Blocked-dates API router — hosts close individual nights on their calendars."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stayfinder.api.deps import get_current_user, get_db
from stayfinder.models.property import Property
from stayfinder.models.user import User
from stayfinder.schemas.blocked_date import (
    BlockDatesRequest,
    BlockDatesResponse,
    BlockedCalendarResponse,
    UnblockDatesRequest,
    UnblockDatesResponse,
)
from stayfinder.services import blocked_date_service
from stayfinder.services.booking_service import utc_today
from stayfinder.services.property_service import get_property_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/properties", tags=["blocked-dates"])


async def _get_hosted_property(db: AsyncSession, property_id: uuid.UUID, user: User) -> Property:
    """Only the listing's own host manages its calendar."""
    prop = await get_property_or_404(db, property_id)
    if prop.host_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the property host can manage blocked dates",
        )
    return prop


@router.post(
    "/{property_id}/blocked-dates",
    response_model=BlockDatesResponse,
    status_code=status.HTTP_201_CREATED,
)
async def block_dates(
    property_id: uuid.UUID,
    body: BlockDatesRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    """Block one or more days. Days that are already blocked are skipped."""
    prop = await _get_hosted_property(db, property_id, current_user)

    today = utc_today()
    past = sorted(day for day in body.dates if day < today)
    if past:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot block past dates: {', '.join(day.isoformat() for day in past)}",
        )

    created, skipped = await blocked_date_service.block_dates(
        db, prop.id, body.dates, body.reason, body.note, current_user.id
    )
    return {"created": created, "skipped": skipped}


@router.delete("/{property_id}/blocked-dates", response_model=UnblockDatesResponse)
async def unblock_dates(
    property_id: uuid.UUID,
    body: UnblockDatesRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    prop = await _get_hosted_property(db, property_id, current_user)
    deleted = await blocked_date_service.unblock_dates(db, prop.id, body.dates)
    logger.info("Unblocked %d date(s) on property %s", deleted, prop.id)
    return {"deleted_count": deleted}


@router.get("/{property_id}/blocked-dates", response_model=BlockedCalendarResponse)
async def get_blocked_dates(
    property_id: uuid.UUID,
    year: int | None = Query(None, ge=2000, le=2100),
    month: int | None = Query(None, ge=1, le=12),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Blocked days keyed by date, for one month, one year, or this year and next."""
    if month is not None and year is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="month requires year")

    prop = await get_property_or_404(db, property_id)
    start, end = blocked_date_service.calendar_window(year, month, utc_today())
    rows = await blocked_date_service.list_blocked_dates(db, prop.id, start, end)
    return {
        "property_id": prop.id,
        "blocked_dates": {
            row.date: {"reason": row.reason, "note": row.note, "blocked_at": row.created_at} for row in rows
        },
    }
