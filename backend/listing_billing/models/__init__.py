"""
Database models for store tiers, subscriptions, webhook idempotency and
rate limiting.

Importing this package registers every table on the shared Base.
"""

from listing_billing.models.base import Base, TimestampMixin
from listing_billing.models.store import Store, ListingTier
from listing_billing.models.subscription import Subscription, SubscriptionStatus
from listing_billing.models.webhook_event import StripeWebhookEvent
from listing_billing.models.rate_limit import RateLimitCounter, RateLimitScope
from listing_billing.models.cta_event import CtaEvent, CtaEventType

__all__ = [
    "Base",
    "TimestampMixin",
    "Store",
    "ListingTier",
    "Subscription",
    "SubscriptionStatus",
    "StripeWebhookEvent",
    "RateLimitCounter",
    "RateLimitScope",
    "CtaEvent",
    "CtaEventType",
]
