"""Bookings API router.

Access rule: a booking is visible to its guest, the listing's host, and
admins. Guests list their own stays under ``GET /bookings``; hosts list
requests on their listings under ``GET /bookings/host``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stayfinder.api.deps import get_current_user, get_db, require_admin, require_host, strict_rate_limit
from stayfinder.config import settings
from stayfinder.models.booking import Booking
from stayfinder.models.user import User
from stayfinder.payments.stripe_client import create_booking_checkout_session
from stayfinder.schemas.booking import (
    AvailabilityResponse,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatusUpdate,
    CheckoutSessionResponse,
    PaymentStatusUpdate,
)
from stayfinder.services import booking_service
from stayfinder.services.notification_service import send_templated_email
from stayfinder.services.property_service import get_property_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _role_in_booking(user: User, booking: Booking) -> str | None:
    """``"guest"``, ``"host"`` or ``"admin"``; ``None`` if unrelated."""
    if booking.guest_id == user.id:
        return "guest"
    if booking.host_id == user.id:
        return "host"
    if user.is_admin:
        return "admin"
    return None


async def _get_booking_for_participant(db: AsyncSession, booking_id: uuid.UUID, user: User) -> tuple[Booking, str]:
    """Fetch a booking the caller takes part in.

    Raises ``HTTPException 404`` if it does not exist and ``403`` when the
    caller is neither its guest, its host, nor an admin.
    """
    booking = await db.get(Booking, booking_id)
    if booking is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")

    role = _role_in_booking(user, booking)
    if role is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to access this booking",
        )
    return booking, role


def _email_vars(booking: Booking) -> dict:
    """Plain values for notification templates (safe to use after the session closes)."""
    return {
        "booking_id": str(booking.id),
        "property_title": booking.property.title,
        "check_in": booking.check_in.isoformat(),
        "check_out": booking.check_out.isoformat(),
        "num_guests": booking.num_guests,
        "total_price": booking.total_price,
        "currency": booking.currency,
    }


async def _paginate(db: AsyncSession, filters: list, skip: int, limit: int) -> dict:
    total = (await db.execute(select(func.count(Booking.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(Booking).where(*filters).order_by(Booking.created_at.desc()).offset(skip).limit(limit)
    )
    return {"items": list(result.scalars().all()), "total": total}


# ---------------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------------


@router.get(
    "/availability/{property_id}",
    response_model=AvailabilityResponse,
    summary="Unavailable nights for a listing",
)
async def check_availability(
    property_id: uuid.UUID,
    start_date: date | None = Query(None, description="Defaults to today"),
    end_date: date | None = Query(None, description="Defaults to one year after start_date"),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Booked and blocked nights in ``[start_date, end_date)``."""
    prop = await get_property_or_404(db, property_id)
    if not prop.is_available or not prop.is_approved:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Property is not available for booking",
        )

    start = start_date or booking_service.utc_today()
    end = end_date or start + timedelta(days=365)
    if end <= start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must be after start_date",
        )

    booked, blocked = await booking_service.unavailable_dates(db, prop.id, start, end)
    return {
        "property_id": prop.id,
        "start_date": start,
        "end_date": end,
        "unavailable_dates": sorted(set(booked) | set(blocked)),
        "blocked_dates": blocked,
    }


# ---------------------------------------------------------------------------
# Guest endpoints
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a booking",
    dependencies=[Depends(strict_rate_limit)],
)
async def create_booking(
    body: BookingCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Booking:
    """Create a pending booking for the caller.

    Validates that:
    - check-in is not in the past and check-out follows check-in.
    - The property exists, is approved, and accepts bookings.
    - The party fits the property's guest limit.
    - No pending/confirmed booking overlaps and no night is blocked.

    The total is computed from the listing's rate; the host is emailed after
    the response, and a failed email does not affect the booking.
    """
    if body.check_in < booking_service.utc_today():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Check-in date cannot be in the past",
        )

    prop = await get_property_or_404(db, body.property_id)
    if not prop.is_available or not prop.is_approved:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Property is not available for booking",
        )
    if prop.host_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot book your own property",
        )
    if body.num_guests > prop.max_guests:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Property can accommodate maximum {prop.max_guests} guests",
        )

    await booking_service.ensure_dates_available(db, prop.id, body.check_in, body.check_out)

    nights = booking_service.count_nights(body.check_in, body.check_out)
    currency = settings.booking_currency
    booking = Booking(
        **body.model_dump(),
        guest_id=current_user.id,
        host_id=prop.host_id,
        total_price=booking_service.calculate_total_price(prop.price, prop.price_period, nights, currency),
        currency=currency,
    )
    db.add(booking)
    await db.flush()
    await db.refresh(booking)
    logger.info(
        "Booking %s created: property=%s guest=%s %s..%s total=%s",
        booking.id,
        prop.id,
        current_user.id,
        booking.check_in,
        booking.check_out,
        booking.total_price,
    )

    background_tasks.add_task(
        send_templated_email,
        booking.host.email,
        "new_booking_request",
        host_name=booking.host.name,
        guest_name=current_user.name,
        **_email_vars(booking),
    )
    return booking


@router.get("", response_model=BookingListResponse, summary="The caller's own bookings")
async def list_my_bookings(
    status_filter: str | None = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    filters = [Booking.guest_id == current_user.id]
    if status_filter is not None:
        filters.append(Booking.status == status_filter)
    return await _paginate(db, filters, skip, limit)


@router.get("/host", response_model=BookingListResponse, summary="Bookings on the caller's listings")
async def list_host_bookings(
    status_filter: str | None = Query(None, alias="status"),
    property_id: uuid.UUID | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_host),
) -> dict:
    filters = [Booking.host_id == current_user.id]
    if status_filter is not None:
        filters.append(Booking.status == status_filter)
    if property_id is not None:
        filters.append(Booking.property_id == property_id)
    return await _paginate(db, filters, skip, limit)


@router.get("/{booking_id}", response_model=BookingResponse, summary="Booking detail")
async def get_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Booking:
    booking, _ = await _get_booking_for_participant(db, booking_id, current_user)
    return booking


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------


@router.patch("/{booking_id}/status", response_model=BookingResponse, summary="Confirm, cancel or complete")
async def update_booking_status(
    booking_id: uuid.UUID,
    body: BookingStatusUpdate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Booking:
    """Move a booking along ``pending -> confirmed -> completed``, or cancel it.

    - Only the host or an admin may confirm or complete.
    - A stay can only be completed once its check-out date has arrived.
    - Cancelling needs a reason and records who cancelled and when.
    - Cancelled and completed bookings are final.
    """
    booking, role = await _get_booking_for_participant(db, booking_id, current_user)

    if booking.status in ("cancelled", "completed"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot update a {booking.status} booking",
        )

    if body.status in ("confirmed", "completed") and role == "guest":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only the host or an admin can mark a booking {body.status}",
        )

    if body.status == "confirmed":
        if booking.status != "pending":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only pending bookings can be confirmed",
            )
        booking.status = "confirmed"
        background_tasks.add_task(
            send_templated_email,
            booking.guest.email,
            "booking_confirmed",
            guest_name=booking.guest.name,
            **_email_vars(booking),
        )

    elif body.status == "completed":
        if booking.status != "confirmed":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only confirmed bookings can be completed",
            )
        if booking.check_out > booking_service.utc_today():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A booking cannot be completed before its check-out date",
            )
        booking.status = "completed"

    else:
        booking.status = "cancelled"
        booking.cancellation_reason = body.reason
        booking.cancelled_by = role
        booking.cancelled_at = datetime.now(timezone.utc)

        # Tell the other party; admins cancelling notify the guest.
        recipient = booking.host if role == "guest" else booking.guest
        background_tasks.add_task(
            send_templated_email,
            recipient.email,
            "booking_cancelled",
            recipient_name=recipient.name,
            cancelled_by=role,
            reason=body.reason,
            **_email_vars(booking),
        )

    await db.flush()
    await db.refresh(booking)
    logger.info("Booking %s -> %s by %s (%s)", booking.id, booking.status, current_user.id, role)
    return booking


@router.patch(
    "/{booking_id}/payment",
    response_model=BookingResponse,
    summary="Record a payment outcome (admin)",
)
async def update_payment_status(
    booking_id: uuid.UUID,
    body: PaymentStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> Booking:
    """Set the payment status; ``paid`` also confirms a pending booking."""
    booking = await db.get(Booking, booking_id)
    if booking is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")

    booking_service.apply_payment_status(booking, body.payment_status, body.payment_id)
    await db.flush()
    await db.refresh(booking)
    return booking


@router.post(
    "/{booking_id}/checkout",
    response_model=CheckoutSessionResponse,
    summary="Start a Stripe Checkout payment for a booking",
)
async def create_checkout(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    booking = await db.get(Booking, booking_id)
    if booking is None or booking.guest_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")

    if booking.status not in ("pending", "confirmed") or booking.payment_status != "pending":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This booking is not awaiting payment",
        )

    session = await create_booking_checkout_session(booking, current_user.email)
    return {"checkout_url": session.url, "session_id": session.id}
