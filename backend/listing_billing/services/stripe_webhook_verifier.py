"""
Stripe webhook signature verification.

SECURITY: The webhook endpoint is public. Trust comes from the
Stripe-Signature header only, never from payload shape, so the signature is
verified before the body is parsed.

Signature format: t=<unix ts>,v1=<hex hmac-sha256 of "{t}.{payload}">
Documentation: https://docs.stripe.com/webhooks#verify-events
"""

import json
import logging
from typing import Optional, Union

import stripe

from listing_billing.entitlements.errors import MalformedEventError, WebhookAuthenticationError
from listing_billing.entitlements.events import BillingEvent

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300


def verify_stripe_signature(
    payload: Union[bytes, str],
    signature_header: Optional[str],
    webhook_secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
) -> str:
    """
    Verify a Stripe webhook signature.

    Args:
        payload: Raw request body
        signature_header: Stripe-Signature header value
        webhook_secret: Endpoint signing secret (whsec_...)
        tolerance: Max signature age in seconds (replay protection)

    Returns:
        The payload decoded as text, safe to parse

    Raises:
        WebhookAuthenticationError: header missing or signature invalid
    """
    if not signature_header:
        raise WebhookAuthenticationError("Missing stripe-signature header")
    if not webhook_secret:
        raise WebhookAuthenticationError("Webhook secret not configured")

    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError:
            raise WebhookAuthenticationError("Invalid signature")

    try:
        stripe.WebhookSignature.verify_header(payload, signature_header, webhook_secret, tolerance)
    except stripe.SignatureVerificationError as e:
        logger.warning("Webhook signature verification failed", extra={"error": str(e)})
        raise WebhookAuthenticationError("Invalid signature")

    return payload


def parse_stripe_event(payload_text: str) -> BillingEvent:
    """
    Decode a verified body into a BillingEvent.

    Raises:
        MalformedEventError: not JSON, or missing id/type/data.object
    """
    try:
        body = json.loads(payload_text)
    except json.JSONDecodeError:
        raise MalformedEventError("Invalid JSON body")

    if not isinstance(body, dict):
        raise MalformedEventError("Event body must be a JSON object")

    event_id = body.get("id")
    event_type = body.get("type")
    data = body.get("data")
    data_object = data.get("object") if isinstance(data, dict) else None

    if not isinstance(event_id, str) or not event_id:
        raise MalformedEventError("Missing event id")
    if not isinstance(event_type, str) or not event_type:
        raise MalformedEventError("Missing event type")
    if not isinstance(data_object, dict):
        raise MalformedEventError("Missing event data.object")

    return BillingEvent(id=event_id, type=event_type, data_object=data_object)


def construct_event(
    payload: Union[bytes, str],
    signature_header: Optional[str],
    webhook_secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
) -> BillingEvent:
    """Verify then decode. No part of the body is read before verification."""
    payload_text = verify_stripe_signature(payload, signature_header, webhook_secret, tolerance)
    return parse_stripe_event(payload_text)
