"""
Idempotency ledger for Stripe webhook events.

has_processed runs before dispatch, record_processed after the handler
succeeds and inside the same transaction. A failed handler therefore leaves
no ledger row and Stripe's redelivery reprocesses the event.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from listing_billing.database.upsert import dialect_insert
from listing_billing.models.base import utc_now
from listing_billing.models.webhook_event import StripeWebhookEvent

logger = logging.getLogger(__name__)


class WebhookEventRepository:
    """Durable record of Stripe event ids already handled."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def has_processed(self, event_id: str) -> bool:
        """Check if a webhook event has already been processed."""
        existing = self.db.query(StripeWebhookEvent.event_id).filter(
            StripeWebhookEvent.event_id == event_id
        ).first()
        return existing is not None

    def record_processed(
        self,
        event_id: str,
        event_type: str,
        processed_at: Optional[datetime] = None,
    ) -> bool:
        """
        Record a webhook event as processed.

        A duplicate id (concurrent redelivery that won the race) is not an
        error.

        Returns:
            True if a new ledger row was written
        """
        stmt = dialect_insert(self.db, StripeWebhookEvent.__table__).values(
            event_id=event_id,
            event_type=event_type,
            processed_at=processed_at or utc_now(),
        ).on_conflict_do_nothing(index_elements=[StripeWebhookEvent.__table__.c.event_id])
        result = self.db.execute(stmt)
        inserted = bool(result.rowcount)
        if not inserted:
            logger.info(
                "Webhook event already in ledger",
                extra={"event_id": event_id, "event_type": event_type},
            )
        return inserted

    def cleanup_older_than(self, days: int = 90, now: Optional[datetime] = None) -> int:
        """
        Delete ledger rows older than the retention window.

        Stripe stops redelivering long before 90 days, so old ids can no
        longer arrive.

        Returns:
            Number of rows deleted
        """
        cutoff = (now or utc_now()) - timedelta(days=days)
        result = self.db.execute(
            delete(StripeWebhookEvent).where(StripeWebhookEvent.processed_at < cutoff)
        )
        self.db.commit()
        logger.info(
            "Cleaned up webhook ledger",
            extra={"deleted": result.rowcount, "cutoff": cutoff.isoformat()},
        )
        return result.rowcount
