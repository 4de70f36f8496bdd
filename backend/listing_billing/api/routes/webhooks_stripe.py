"""
Stripe webhook endpoint for listing billing events.

SECURITY: The signature MUST be verified before the body is parsed.
Stripe signs each delivery with the endpoint's signing secret.

Response contract:
- 400: missing/invalid signature or unusable event envelope (Stripe stops)
- 503: signing secret not configured
- 500: handler or storage failure, nothing recorded (Stripe retries)
- 200: processed, duplicate, skipped or unhandled type

Documentation: https://docs.stripe.com/webhooks
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from listing_billing.config.billing_settings import get_billing_settings
from listing_billing.database.session import get_db_session
from listing_billing.entitlements.errors import BillingError
from listing_billing.services.stripe_webhook_router import StripeWebhookRouter
from listing_billing.services.stripe_webhook_verifier import construct_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


class WebhookResponse(BaseModel):
    """Standard webhook acknowledgement."""
    received: bool = True


@router.post("/stripe", response_model=WebhookResponse)
async def handle_stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db_session),
):
    """
    Receive a Stripe event, verify it, and apply it at most once.

    SECURITY: Verifies the Stripe-Signature header before processing.
    """
    settings = get_billing_settings()
    if not settings.stripe_webhook_secret:
        logger.error("STRIPE_WEBHOOK_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook verification not configured",
        )

    body = await request.body()

    try:
        event = construct_event(
            body,
            stripe_signature,
            settings.stripe_webhook_secret,
            tolerance=settings.stripe_webhook_tolerance_seconds,
        )
    except BillingError as e:
        logger.warning("Rejected Stripe webhook", extra={"error": e.message})
        raise HTTPException(status_code=e.http_status, detail=e.message)

    logger.info(
        "Stripe webhook received",
        extra={"event_id": event.id, "event_type": event.type},
    )

    result = StripeWebhookRouter(db).process(event)

    if not result.acknowledged:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook handler failed",
        )

    return WebhookResponse()
