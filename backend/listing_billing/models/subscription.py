"""
Subscription model mirroring Stripe subscription lifecycle.

CRITICAL: Rows are keyed by stripe_subscription_id and only ever upserted,
because Stripe delivers subscription events at least once and out of order.
Subscription status never feeds back into the store tier.
"""

from sqlalchemy import (
    Column, String, Integer, DateTime, ForeignKey, Index
)

from listing_billing.models.base import Base, TimestampMixin, generate_uuid


class SubscriptionStatus(str):
    """Subscription status values used by the webhook handlers."""
    ACTIVE = "active"            # Paid and current
    PAST_DUE = "past_due"        # Latest invoice payment failed
    CANCELED = "canceled"        # Terminal, tier runs out on featured_until
    INCOMPLETE = "incomplete"    # First payment not yet confirmed


class Subscription(Base, TimestampMixin):
    """
    Tracks a Stripe subscription for a store listing.

    Lifecycle: created -> (active <-> past_due) -> canceled.
    Other provider statuses (trialing, unpaid, ...) are stored as delivered.
    """

    __tablename__ = "subscriptions"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )

    stripe_subscription_id = Column(
        String(255),
        nullable=False,
        unique=True,
        comment="Stripe subscription id (sub_...)"
    )
    stripe_customer_id = Column(
        String(255),
        nullable=True,
        index=True,
        comment="Stripe customer id (cus_...)"
    )

    store_id = Column(
        Integer,
        ForeignKey("stores.id"),
        nullable=True,
        index=True,
    )
    user_id = Column(
        String(255),
        nullable=True,
        comment="Account that started the checkout"
    )

    tier = Column(
        String(20),
        nullable=True,
        comment="monthly or annual"
    )
    status = Column(
        String(32),
        nullable=False,
        default=SubscriptionStatus.INCOMPLETE,
        index=True,
    )
    current_period_end = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="End of the current paid period"
    )

    __table_args__ = (
        Index("ix_subscriptions_user_status", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Subscription(stripe_subscription_id={self.stripe_subscription_id}, "
            f"store_id={self.store_id}, status={self.status})>"
        )
