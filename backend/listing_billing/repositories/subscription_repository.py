"""
Subscription repository for data access operations.

Writes are keyed by stripe_subscription_id so that every subscription event
can be applied in any order:
- upsert_subscription_record inserts or overwrites in one statement
- set_subscription_status only touches an existing row
Neither method touches the store tier.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from listing_billing.database.upsert import dialect_insert
from listing_billing.models.subscription import Subscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionFields:
    """Full set of fields synced from a subscription event."""
    stripe_subscription_id: str
    stripe_customer_id: Optional[str]
    store_id: int
    user_id: str
    tier: str
    status: str
    current_period_end: Optional[datetime]


class SubscriptionRepository:
    """Repository for subscription data access."""

    def __init__(self, db_session: Session):
        """
        Initialize repository with database session.

        Args:
            db_session: SQLAlchemy database session
        """
        self.db = db_session

    def get_by_stripe_id(self, stripe_subscription_id: str) -> Optional[Subscription]:
        return self.db.query(Subscription).filter(
            Subscription.stripe_subscription_id == stripe_subscription_id
        ).first()

    def upsert_subscription_record(self, fields: SubscriptionFields) -> None:
        """
        Create or update a subscription from a webhook.

        Single INSERT ... ON CONFLICT (stripe_subscription_id) DO UPDATE, so a
        concurrent or out-of-order delivery cannot fail on the unique key.
        """
        values = {
            "stripe_subscription_id": fields.stripe_subscription_id,
            "stripe_customer_id": fields.stripe_customer_id,
            "store_id": fields.store_id,
            "user_id": fields.user_id,
            "tier": fields.tier,
            "status": fields.status,
            "current_period_end": fields.current_period_end,
        }
        stmt = dialect_insert(self.db, Subscription.__table__).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Subscription.__table__.c.stripe_subscription_id],
            set_={
                "stripe_customer_id": stmt.excluded.stripe_customer_id,
                "store_id": stmt.excluded.store_id,
                "user_id": stmt.excluded.user_id,
                "tier": stmt.excluded.tier,
                "status": stmt.excluded.status,
                "current_period_end": stmt.excluded.current_period_end,
                "updated_at": func.now(),
            },
        )
        self.db.execute(stmt)

    def set_subscription_status(self, stripe_subscription_id: str, status: str) -> bool:
        """
        Update subscription status only.

        Called from customer.subscription.deleted, invoice.payment_failed and
        status-only subscription updates. An unknown subscription is a no-op:
        the full record arrives with its own created/updated event.

        Returns:
            True if a row was updated
        """
        updated = self.db.query(Subscription).filter(
            Subscription.stripe_subscription_id == stripe_subscription_id
        ).update(
            {Subscription.status: status, Subscription.updated_at: func.now()},
            synchronize_session=False,
        )
        if not updated:
            logger.info(
                "Status update matched no subscription",
                extra={"stripe_subscription_id": stripe_subscription_id, "status": status},
            )
        return bool(updated)
