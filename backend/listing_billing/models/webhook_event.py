"""
StripeWebhookEvent model for tracking processed Stripe webhooks.

Used for idempotency - ensures webhooks are processed exactly once.
"""

from sqlalchemy import Column, String, DateTime, Index

from listing_billing.models.base import Base, utc_now


class StripeWebhookEvent(Base):
    """
    Tracks processed Stripe webhook events for deduplication.

    Stripe may deliver webhooks multiple times. A row is written in the same
    transaction as the handler's writes, so an event is either fully applied
    and recorded, or neither.
    """

    __tablename__ = "stripe_webhook_events"

    event_id = Column(
        String(255),
        primary_key=True,
        comment="Stripe event id (evt_...)"
    )

    event_type = Column(
        String(100),
        nullable=False,
        comment="Stripe event type (e.g., customer.subscription.updated)"
    )

    processed_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        comment="When the webhook was processed"
    )

    __table_args__ = (
        Index("idx_stripe_webhook_events_processed_at", "processed_at"),
    )

    def __repr__(self) -> str:
        return f"<StripeWebhookEvent(event_id={self.event_id}, type={self.event_type})>"
