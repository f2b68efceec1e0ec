"""Booking availability and pricing.

A stay covers the nights ``[check_in, check_out)``: a guest checking out on
the 10th does not occupy the night of the 10th, so another guest may check in
that day. A request is refused when

* an existing *pending* or *confirmed* booking overlaps it
  (``existing.check_in < new.check_out and existing.check_out > new.check_in``), or
* any of its nights is in the property's blocked-date set.

Cancelled and completed bookings never hold the calendar. There is no
application-level lock and no serialisation beyond the transaction that
inserts the booking. Under READ COMMITTED two overlapping requests can both
pass the check and both be stored.
"""

import logging
import math
import uuid
from collections.abc import Iterator
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stayfinder.models.blocked_date import BlockedDate
from stayfinder.models.booking import ACTIVE_STATUSES, Booking

logger = logging.getLogger(__name__)

# Currencies without a minor unit (ISO 4217 exponent 0).
ZERO_DECIMAL_CURRENCIES = frozenset(
    {"BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA", "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF"}
)

DAYS_PER_PERIOD = {"night": 1, "week": 7, "month": 30}


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


# ---------------------------------------------------------------------------
# Date arithmetic
# ---------------------------------------------------------------------------


def count_nights(check_in: date, check_out: date) -> int:
    return max(0, (check_out - check_in).days)


def iter_nights(check_in: date, check_out: date) -> Iterator[date]:
    """Yield each night of the stay, check-in day included, check-out day excluded."""
    night = check_in
    while night < check_out:
        yield night
        night += timedelta(days=1)


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Half-open interval overlap: adjacent stays do not overlap."""
    return a_start < b_end and a_end > b_start


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


def currency_exponent(currency: str) -> int:
    return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2


def round_money(amount: Decimal, currency: str) -> Decimal:
    quantum = Decimal(1).scaleb(-currency_exponent(currency))
    return amount.quantize(quantum, rounding=ROUND_HALF_UP)


def calculate_total_price(price: Decimal, price_period: str, nights: int, currency: str = "USD") -> Decimal:
    """Total for ``nights`` at ``price`` per ``price_period``.

    Weekly and monthly rates charge for every started period: 8 nights at a
    weekly rate costs two weeks.
    """
    if nights <= 0:
        raise ValueError("A stay must cover at least one night")
    try:
        days = DAYS_PER_PERIOD[price_period]
    except KeyError:
        raise ValueError(f"Unknown price period: {price_period!r}") from None

    periods = math.ceil(nights / days)
    return round_money(Decimal(price) * periods, currency)


def to_minor_units(amount: Decimal, currency: str) -> int:
    """Amount in the currency's smallest unit (cents for USD), as payment APIs expect."""
    exponent = currency_exponent(currency)
    return int(round_money(amount, currency).scaleb(exponent))


# ---------------------------------------------------------------------------
# Availability queries
# ---------------------------------------------------------------------------


async def find_conflicting_booking(
    db: AsyncSession,
    property_id: uuid.UUID,
    check_in: date,
    check_out: date,
    exclude_booking_id: uuid.UUID | None = None,
) -> Booking | None:
    """First pending/confirmed booking overlapping ``[check_in, check_out)``, if any."""
    query = select(Booking).where(
        Booking.property_id == property_id,
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.check_in < check_out,
        Booking.check_out > check_in,
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)

    result = await db.execute(query.limit(1))
    return result.scalars().first()


async def find_blocked_nights(
    db: AsyncSession,
    property_id: uuid.UUID,
    check_in: date,
    check_out: date,
) -> list[date]:
    """Blocked days that fall on a night of the stay, in calendar order."""
    result = await db.execute(
        select(BlockedDate.date)
        .where(
            BlockedDate.property_id == property_id,
            BlockedDate.date >= check_in,
            BlockedDate.date < check_out,
        )
        .order_by(BlockedDate.date)
    )
    blocked = set(result.scalars().all())
    return [night for night in iter_nights(check_in, check_out) if night in blocked]


async def ensure_dates_available(
    db: AsyncSession,
    property_id: uuid.UUID,
    check_in: date,
    check_out: date,
    exclude_booking_id: uuid.UUID | None = None,
) -> None:
    """Raise 409 if the stay overlaps an active booking or a blocked night."""
    conflict = await find_conflicting_booking(db, property_id, check_in, check_out, exclude_booking_id)
    if conflict is not None:
        logger.info(
            "Booking request for property %s (%s to %s) overlaps booking %s",
            property_id,
            check_in,
            check_out,
            conflict.id,
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Property is not available for the selected dates",
        )

    blocked = await find_blocked_nights(db, property_id, check_in, check_out)
    if blocked:
        listed = ", ".join(night.isoformat() for night in blocked)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Property is blocked on the following dates: {listed}",
        )


async def unavailable_dates(
    db: AsyncSession,
    property_id: uuid.UUID,
    start: date,
    end: date,
) -> tuple[list[date], list[date]]:
    """Booked and blocked nights within ``[start, end)``.

    Returns ``(booked_nights, blocked_days)``, each sorted and de-duplicated.
    """
    result = await db.execute(
        select(Booking.check_in, Booking.check_out).where(
            Booking.property_id == property_id,
            Booking.status.in_(ACTIVE_STATUSES),
            Booking.check_in < end,
            Booking.check_out > start,
        )
    )
    booked: set[date] = set()
    for check_in, check_out in result.all():
        booked.update(iter_nights(max(check_in, start), min(check_out, end)))

    blocked = await find_blocked_nights(db, property_id, start, end)
    return sorted(booked), blocked


# ---------------------------------------------------------------------------
# Payment state
# ---------------------------------------------------------------------------


def apply_payment_status(booking: Booking, payment_status: str, payment_id: str | None = None) -> None:
    """Record a payment outcome; a paid pending booking becomes confirmed."""
    booking.payment_status = payment_status
    if payment_id:
        booking.payment_id = payment_id
    if payment_status == "paid" and booking.status == "pending":
        booking.status = "confirmed"
    logger.info("Booking %s payment_status=%s status=%s", booking.id, payment_status, booking.status)
