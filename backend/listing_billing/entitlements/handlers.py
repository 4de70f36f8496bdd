"""
Stripe event handlers with strict separation of write responsibility.

INVARIANTS:
1. checkout.session.completed -> sets store tier ONLY (never a subscription)
2. customer.subscription.*    -> manages the subscription record ONLY, except
   that updated+active moves featured_until forward to the new period end
3. customer.subscription.deleted -> status 'canceled' (never clears tier)
4. is_featured is NEVER touched by any handler

Each handler is constructed with only the mutation callables it may use, so
a handler cannot reach a record outside its responsibility. Events arrive at
least once and in any order; every write here is an upsert or a guarded
update.

Identifying metadata that is missing or malformed never raises: the handler
logs and degrades (no-op, or status-only update) so the event is still
acknowledged. Storage errors do raise, so the router skips the ledger write
and Stripe redelivers.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from listing_billing.entitlements.events import (
    BillingEvent,
    CHECKOUT_SESSION_COMPLETED,
    SUBSCRIPTION_CREATED,
    SUBSCRIPTION_UPDATED,
    SUBSCRIPTION_DELETED,
    INVOICE_PAYMENT_FAILED,
)
from listing_billing.entitlements.tiers import (
    compute_featured_until,
    parse_store_id,
    parse_tier,
)
from listing_billing.models.base import utc_now
from listing_billing.models.subscription import SubscriptionStatus
from listing_billing.repositories.store_repository import StoreRepository
from listing_billing.repositories.subscription_repository import (
    SubscriptionFields,
    SubscriptionRepository,
)

logger = logging.getLogger(__name__)

SetTier = Callable[[int, str, datetime], Any]
ExtendWindow = Callable[[int, datetime], Any]
UpsertSubscription = Callable[[SubscriptionFields], Any]
SetStatus = Callable[[str, str], Any]
Clock = Callable[[], datetime]

HandlerResult = Dict[str, Any]


def _skipped(reason: str, **detail: Any) -> HandlerResult:
    return {"action": "skipped", "reason": reason, **detail}


def _period_end(subscription: Dict[str, Any]) -> Optional[datetime]:
    """
    current_period_end as an aware datetime.

    Newer Stripe API versions moved the period to subscription items, so the
    first item is used when the top-level field is absent.
    """
    raw = subscription.get("current_period_end")
    if raw is None:
        items = subscription.get("items")
        data = items.get("data") if isinstance(items, dict) else None
        if isinstance(data, list) and data and isinstance(data[0], dict):
            raw = data[0].get("current_period_end")
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    return datetime.fromtimestamp(raw, tz=timezone.utc)


def _customer_id(subscription: Dict[str, Any]) -> Optional[str]:
    customer = subscription.get("customer")
    if isinstance(customer, dict):
        customer = customer.get("id")
    return customer if isinstance(customer, str) else None


class CheckoutCompletedHandler:
    """
    checkout.session.completed

    RESPONSIBILITY: Set store tier and featured_until ONLY
    DOES NOT: Create a subscription record (subscription.created does that)
    """

    event_type = CHECKOUT_SESSION_COMPLETED

    def __init__(self, set_tier: SetTier, clock: Clock = utc_now):
        self._set_tier = set_tier
        self._clock = clock

    def __call__(self, event: BillingEvent) -> HandlerResult:
        metadata = event.metadata
        raw_store_id = metadata.get("storeId")
        raw_tier = metadata.get("tier")

        if not raw_store_id or not raw_tier:
            logger.error(
                "Missing storeId or tier in checkout session metadata",
                extra={"event_id": event.id, "session_id": event.object_id},
            )
            return _skipped("missing_metadata")

        store_id = parse_store_id(raw_store_id)
        tier = parse_tier(raw_tier)
        if store_id is None or tier is None:
            logger.error(
                "Invalid storeId or tier in checkout session metadata",
                extra={"event_id": event.id, "store_id": raw_store_id, "tier": raw_tier},
            )
            return _skipped("malformed_metadata")

        featured_until = compute_featured_until(tier, self._clock())
        self._set_tier(store_id, tier, featured_until)

        logger.info(
            "Store tier set from checkout",
            extra={
                "store_id": store_id,
                "tier": tier,
                "featured_until": featured_until.isoformat(),
            },
        )
        return {
            "action": "tier_set",
            "store_id": store_id,
            "tier": tier,
            "featured_until": featured_until,
        }


class SubscriptionCreatedHandler:
    """
    customer.subscription.created

    RESPONSIBILITY: Create/upsert the subscription record ONLY
    DOES NOT: Touch store tier
    """

    event_type = SUBSCRIPTION_CREATED

    def __init__(self, upsert_subscription: UpsertSubscription):
        self._upsert_subscription = upsert_subscription

    def __call__(self, event: BillingEvent) -> HandlerResult:
        subscription = event.data_object
        fields = _subscription_fields(event)
        if fields is None:
            logger.error(
                "Missing or invalid metadata in subscription",
                extra={"event_id": event.id, "metadata": event.metadata},
            )
            return _skipped("missing_metadata", subscription_id=event.object_id)

        self._upsert_subscription(fields)

        logger.info(
            "Subscription created",
            extra={
                "stripe_subscription_id": fields.stripe_subscription_id,
                "store_id": fields.store_id,
                "status": subscription.get("status"),
            },
        )
        return {
            "action": "subscription_upserted",
            "subscription_id": fields.stripe_subscription_id,
            "status": fields.status,
        }


class SubscriptionUpdatedHandler:
    """
    customer.subscription.updated

    RESPONSIBILITY: Upsert the subscription record, and when the subscription
    is active, move featured_until forward to the new period end (renewal).
    Without metadata the event came from outside our checkout flow and only
    the status is updated.
    """

    event_type = SUBSCRIPTION_UPDATED

    def __init__(
        self,
        upsert_subscription: UpsertSubscription,
        set_status: SetStatus,
        extend_window: ExtendWindow,
    ):
        self._upsert_subscription = upsert_subscription
        self._set_status = set_status
        self._extend_window = extend_window

    def __call__(self, event: BillingEvent) -> HandlerResult:
        subscription_id = event.object_id
        status = event.data_object.get("status")
        if not subscription_id or not isinstance(status, str):
            logger.error(
                "Subscription update without id or status",
                extra={"event_id": event.id},
            )
            return _skipped("missing_subscription_id")

        fields = _subscription_fields(event)
        if fields is None:
            logger.info(
                "Missing metadata, updating status only",
                extra={"stripe_subscription_id": subscription_id, "status": status},
            )
            self._set_status(subscription_id, status)
            return {
                "action": "status_updated",
                "subscription_id": subscription_id,
                "status": status,
            }

        self._upsert_subscription(fields)
        result: HandlerResult = {
            "action": "subscription_upserted",
            "subscription_id": subscription_id,
            "status": status,
        }

        if status == SubscriptionStatus.ACTIVE and fields.current_period_end is not None:
            self._extend_window(fields.store_id, fields.current_period_end)
            result["featured_until"] = fields.current_period_end
            logger.info(
                "Store featured_until extended on renewal",
                extra={
                    "store_id": fields.store_id,
                    "featured_until": fields.current_period_end.isoformat(),
                },
            )

        logger.info(
            "Subscription updated",
            extra={"stripe_subscription_id": subscription_id, "status": status},
        )
        return result


class SubscriptionDeletedHandler:
    """
    customer.subscription.deleted

    RESPONSIBILITY: Mark the subscription 'canceled' ONLY
    DOES NOT: Clear store tier - featured_until governs expiration, the
    store keeps the time it already paid for.
    """

    event_type = SUBSCRIPTION_DELETED

    def __init__(self, set_status: SetStatus):
        self._set_status = set_status

    def __call__(self, event: BillingEvent) -> HandlerResult:
        subscription_id = event.object_id
        if not subscription_id:
            logger.error("Subscription deletion without id", extra={"event_id": event.id})
            return _skipped("missing_subscription_id")

        self._set_status(subscription_id, SubscriptionStatus.CANCELED)

        logger.info(
            "Subscription marked as canceled (tier NOT cleared)",
            extra={"stripe_subscription_id": subscription_id},
        )
        return {
            "action": "status_updated",
            "subscription_id": subscription_id,
            "status": SubscriptionStatus.CANCELED,
        }


class PaymentFailedHandler:
    """
    invoice.payment_failed

    RESPONSIBILITY: Mark the invoice's subscription 'past_due' ONLY
    DOES NOT: Touch store tier
    """

    event_type = INVOICE_PAYMENT_FAILED

    def __init__(self, set_status: SetStatus):
        self._set_status = set_status

    def __call__(self, event: BillingEvent) -> HandlerResult:
        subscription_id = resolve_invoice_subscription_id(event.data_object)
        if not subscription_id:
            logger.info(
                "No subscription associated with invoice",
                extra={"event_id": event.id, "invoice_id": event.object_id},
            )
            return _skipped("no_subscription")

        self._set_status(subscription_id, SubscriptionStatus.PAST_DUE)

        logger.info(
            "Subscription marked as past_due",
            extra={"stripe_subscription_id": subscription_id, "invoice_id": event.object_id},
        )
        return {
            "action": "status_updated",
            "subscription_id": subscription_id,
            "status": SubscriptionStatus.PAST_DUE,
        }


def resolve_invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
    """
    Find the subscription an invoice belongs to.

    invoice.subscription may be an id, an expanded object, or null; newer API
    versions carry it under parent.subscription_details.subscription.
    """
    candidate = invoice.get("subscription")
    if candidate is None:
        parent = invoice.get("parent")
        if isinstance(parent, dict):
            details = parent.get("subscription_details")
            if isinstance(details, dict):
                candidate = details.get("subscription")
    if isinstance(candidate, dict):
        candidate = candidate.get("id")
    if isinstance(candidate, str) and candidate:
        return candidate
    return None


def _subscription_fields(event: BillingEvent) -> Optional[SubscriptionFields]:
    """Full record fields, or None when identifying metadata is absent or malformed."""
    subscription = event.data_object
    metadata = event.metadata
    subscription_id = event.object_id
    status = subscription.get("status")
    store_id = parse_store_id(metadata.get("storeId"))
    user_id = metadata.get("userId")
    tier = parse_tier(metadata.get("tier"))

    if not subscription_id or not isinstance(status, str):
        return None
    if store_id is None or tier is None or not isinstance(user_id, str) or not user_id:
        return None

    return SubscriptionFields(
        stripe_subscription_id=subscription_id,
        stripe_customer_id=_customer_id(subscription),
        store_id=store_id,
        user_id=user_id,
        tier=tier,
        status=status,
        current_period_end=_period_end(subscription),
    )


def build_entitlement_handlers(
    stores: StoreRepository,
    subscriptions: SubscriptionRepository,
    clock: Clock = utc_now,
) -> Dict[str, Callable[[BillingEvent], HandlerResult]]:
    """
    Closed set of handlers keyed by event type.

    Each handler gets bound repository methods for exactly the records it
    owns, never the repositories themselves.
    """
    handlers = [
        CheckoutCompletedHandler(set_tier=stores.upsert_tier_record, clock=clock),
        SubscriptionCreatedHandler(upsert_subscription=subscriptions.upsert_subscription_record),
        SubscriptionUpdatedHandler(
            upsert_subscription=subscriptions.upsert_subscription_record,
            set_status=subscriptions.set_subscription_status,
            extend_window=stores.extend_feature_window,
        ),
        SubscriptionDeletedHandler(set_status=subscriptions.set_subscription_status),
        PaymentFailedHandler(set_status=subscriptions.set_subscription_status),
    ]
    return {handler.event_type: handler for handler in handlers}
