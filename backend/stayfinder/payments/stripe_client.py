"""Async Stripe API wrapper for booking payments."""

import logging

import stripe
from fastapi import HTTPException, status
from stripe import StripeClient

from stayfinder.config import settings
from stayfinder.models.booking import Booking
from stayfinder.services.booking_service import to_minor_units

logger = logging.getLogger(__name__)


def get_stripe_client() -> StripeClient:
    """Create a StripeClient instance with async HTTP support."""
    if not settings.stripe_secret_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payments are not configured",
        )
    return StripeClient(
        settings.stripe_secret_key,
        http_client=stripe.HTTPXClient(),
    )


async def create_booking_checkout_session(booking: Booking, guest_email: str) -> stripe.checkout.Session:
    """Create a one-off Checkout Session charging the booking total.

    ``booking_id`` is stored in both the session and payment intent metadata
    so webhook events can be traced back to the booking.
    """
    client = get_stripe_client()
    metadata = {"booking_id": str(booking.id)}
    nights = f"{booking.check_in.isoformat()} to {booking.check_out.isoformat()}"
    booking_url = f"{settings.frontend_url}/bookings/{booking.id}"

    logger.info("Creating checkout session for booking %s (%s %s)", booking.id, booking.total_price, booking.currency)
    return await client.v1.checkout.sessions.create_async(
        params={
            "mode": "payment",
            "customer_email": guest_email,
            "client_reference_id": str(booking.id),
            "line_items": [
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": booking.currency.lower(),
                        "unit_amount": to_minor_units(booking.total_price, booking.currency),
                        "product_data": {
                            "name": booking.property.title,
                            "description": nights,
                        },
                    },
                }
            ],
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
            "success_url": f"{booking_url}?payment=success",
            "cancel_url": f"{booking_url}?payment=cancelled",
        }
    )


def construct_webhook_event(payload: bytes, sig_header: str) -> stripe.Event:
    """Verify and construct a Stripe webhook event (synchronous)."""
    client = get_stripe_client()
    return client.construct_event(payload, sig_header, settings.stripe_webhook_secret)
