"""Stripe webhook event handlers — keep booking payment status in sync."""

import logging
import uuid

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stayfinder.models.booking import Booking
from stayfinder.services.booking_service import apply_payment_status

logger = logging.getLogger(__name__)


def _booking_id_from_metadata(obj) -> uuid.UUID | None:
    metadata = getattr(obj, "metadata", None) or {}
    raw = metadata.get("booking_id")
    if not raw:
        return None
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        logger.warning("Malformed booking_id %r in Stripe metadata", raw)
        return None


async def _find_booking(
    db: AsyncSession,
    booking_id: uuid.UUID | None = None,
    payment_id: str | None = None,
) -> Booking | None:
    if booking_id is not None:
        booking = await db.get(Booking, booking_id)
        if booking is not None:
            return booking
    if payment_id:
        result = await db.execute(select(Booking).where(Booking.payment_id == payment_id))
        return result.scalars().first()
    return None


async def handle_checkout_session_completed(db: AsyncSession, event: stripe.Event) -> None:
    """Handle checkout.session.completed — mark the booking paid.

    Sessions paid with a delayed method complete with ``payment_status``
    "unpaid"; those are settled by checkout.session.async_payment_succeeded.
    """
    session = event.data.object
    if getattr(session, "payment_status", None) != "paid":
        logger.info("Checkout session %s completed without payment yet, waiting", session.id)
        return

    booking = await _find_booking(db, booking_id=_booking_id_from_metadata(session))
    if booking is None:
        logger.warning("No booking found for checkout session %s", session.id)
        return

    apply_payment_status(booking, "paid", payment_id=getattr(session, "payment_intent", None))
    await db.flush()


async def handle_async_payment_succeeded(db: AsyncSession, event: stripe.Event) -> None:
    """Handle checkout.session.async_payment_succeeded — delayed payment cleared."""
    session = event.data.object
    booking = await _find_booking(db, booking_id=_booking_id_from_metadata(session))
    if booking is None:
        logger.warning("No booking found for checkout session %s", session.id)
        return

    apply_payment_status(booking, "paid", payment_id=getattr(session, "payment_intent", None))
    await db.flush()


async def handle_async_payment_failed(db: AsyncSession, event: stripe.Event) -> None:
    """Handle checkout.session.async_payment_failed — mark the payment failed."""
    session = event.data.object
    booking = await _find_booking(db, booking_id=_booking_id_from_metadata(session))
    if booking is None:
        logger.warning("No booking found for checkout session %s", session.id)
        return

    apply_payment_status(booking, "failed")
    await db.flush()


async def handle_charge_refunded(db: AsyncSession, event: stripe.Event) -> None:
    """Handle charge.refunded — mark the booking refunded.

    Looks the booking up by metadata first, then by stored payment intent.
    """
    charge = event.data.object
    booking = await _find_booking(
        db,
        booking_id=_booking_id_from_metadata(charge),
        payment_id=getattr(charge, "payment_intent", None),
    )
    if booking is None:
        logger.warning("No booking found for refunded charge %s", charge.id)
        return

    apply_payment_status(booking, "refunded")
    await db.flush()


EVENT_HANDLERS = {
    "checkout.session.completed": handle_checkout_session_completed,
    "checkout.session.async_payment_succeeded": handle_async_payment_succeeded,
    "checkout.session.async_payment_failed": handle_async_payment_failed,
    "charge.refunded": handle_charge_refunded,
}
