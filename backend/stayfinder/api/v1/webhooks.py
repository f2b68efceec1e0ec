"""Stripe webhook endpoint — booking payment events."""

import logging

import stripe
from fastapi import APIRouter, HTTPException, Request, status

from stayfinder.database import async_session_factory
from stayfinder.payments.stripe_client import construct_webhook_event
from stayfinder.payments.webhooks import EVENT_HANDLERS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(request: Request) -> dict[str, str]:
    """Verify the Stripe signature and dispatch the event to its handler.

    Events without a handler are acknowledged and ignored so Stripe does not
    retry them.
    """
    # Signature verification needs the exact raw bytes.
    payload = await request.body()
    signature = request.headers.get("stripe-signature", "")

    try:
        event = construct_webhook_event(payload, signature)
    except stripe.SignatureVerificationError as exc:
        logger.warning("Stripe webhook signature rejected")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature") from exc
    except ValueError as exc:
        logger.warning("Stripe webhook payload could not be parsed")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload") from exc

    handler = EVENT_HANDLERS.get(event.type)
    if handler is None:
        logger.debug("Ignoring Stripe event %s", event.type)
        return {"status": "ignored"}

    logger.info("Handling Stripe event %s (id=%s)", event.type, event.id)

    # No request user here, so the handler gets its own session.
    async with async_session_factory() as db:
        try:
            await handler(db, event)
            await db.commit()
        except Exception as exc:
            await db.rollback()
            logger.exception("Stripe event %s failed", event.id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Webhook processing failed",
            ) from exc

    return {"status": "processed"}
