#!/usr/bin/env python3
"""
Send signed Stripe webhooks to a local server.

Usage:
    # Start your server first
    uvicorn listing_billing.main:app --reload

    # Then run this script
    python -m listing_billing.scripts.send_test_webhook --event checkout_completed --store-id 42
    python -m listing_billing.scripts.send_test_webhook --event subscription_renewed --store-id 42
    python -m listing_billing.scripts.send_test_webhook --event payment_failed

Uses STRIPE_WEBHOOK_SECRET so the server accepts the signature.
"""

import argparse
import hashlib
import hmac
import json
import os
import sys
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

import httpx

DEFAULT_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "whsec_local_test_secret")
DEFAULT_BASE_URL = os.getenv("TEST_BASE_URL", "http://localhost:8000")
WEBHOOK_PATH = "/api/webhooks/stripe"


def sign(payload: str, secret: str, timestamp: Optional[int] = None) -> str:
    """Stripe-Signature header value for payload."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={digest}"


def _subscription(store_id: int, tier: str, status: str) -> Dict:
    period_end = datetime.now(timezone.utc) + (timedelta(days=365) if tier == "annual" else timedelta(days=30))
    return {
        "id": f"sub_test_{store_id}",
        "object": "subscription",
        "customer": f"cus_test_{store_id}",
        "status": status,
        "current_period_end": int(period_end.timestamp()),
        "metadata": {"storeId": str(store_id), "userId": "user_test", "tier": tier},
    }


def build_event(event: str, store_id: int, tier: str) -> Dict:
    """Build a Stripe event envelope for one of the supported test events."""
    builders = {
        "checkout_completed": lambda: (
            "checkout.session.completed",
            {"id": f"cs_test_{uuid.uuid4().hex[:12]}", "object": "checkout.session",
             "metadata": {"storeId": str(store_id), "tier": tier}},
        ),
        "subscription_created": lambda: (
            "customer.subscription.created", _subscription(store_id, tier, "active"),
        ),
        "subscription_renewed": lambda: (
            "customer.subscription.updated", _subscription(store_id, tier, "active"),
        ),
        "subscription_canceled": lambda: (
            "customer.subscription.deleted", _subscription(store_id, tier, "canceled"),
        ),
        "payment_failed": lambda: (
            "invoice.payment_failed",
            {"id": f"in_test_{uuid.uuid4().hex[:12]}", "object": "invoice",
             "subscription": f"sub_test_{store_id}"},
        ),
    }
    if event not in builders:
        raise ValueError(f"Unknown event: {event}")

    event_type, data_object = builders[event]()
    return {
        "id": f"evt_test_{uuid.uuid4().hex}",
        "object": "event",
        "type": event_type,
        "created": int(time.time()),
        "data": {"object": data_object},
    }


def build_request(event: Dict, secret: str) -> Tuple[str, Dict[str, str]]:
    body = json.dumps(event)
    headers = {"Content-Type": "application/json", "Stripe-Signature": sign(body, secret)}
    return body, headers


def send_webhook(event: Dict, secret: str = DEFAULT_SECRET, base_url: str = DEFAULT_BASE_URL) -> int:
    """Send a signed event and return the response status code."""
    body, headers = build_request(event, secret)
    url = f"{base_url}{WEBHOOK_PATH}"

    print(f"\n{'='*60}")
    print(f"Sending webhook: {event['type']} ({event['id']})")
    print(f"URL: {url}")
    print(f"{'='*60}\n")

    try:
        response = httpx.post(url, content=body, headers=headers)
    except httpx.ConnectError:
        print(f"ERROR: Could not connect to {url}")
        print("Make sure your server is running.")
        return 0

    print(f"Response Status: {response.status_code}")
    print(f"Response Body: {response.text}")
    return response.status_code


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Send signed Stripe test webhooks")
    parser.add_argument(
        "--event",
        required=True,
        choices=["checkout_completed", "subscription_created", "subscription_renewed",
                 "subscription_canceled", "payment_failed"],
    )
    parser.add_argument("--store-id", type=int, default=1)
    parser.add_argument("--tier", choices=["monthly", "annual"], default="monthly")
    parser.add_argument("--replay", type=int, default=1, help="Send the same event id N times")
    args = parser.parse_args(argv)

    event = build_event(args.event, args.store_id, args.tier)
    statuses = [send_webhook(event) for _ in range(args.replay)]
    return 0 if all(200 <= s < 300 for s in statuses) else 1


if __name__ == "__main__":
    sys.exit(main())
