"""
Store repository: Tier Record writes, existence checks, operator exposure.

INVARIANTS:
1. upsert_tier_record is called ONLY from checkout.session.completed
2. extend_feature_window is called ONLY from customer.subscription.updated
   with status=active, and never touches featured_tier
3. No method here clears a tier
4. is_featured is written ONLY by set_store_featured (operator action)
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from listing_billing.models.store import Store

logger = logging.getLogger(__name__)


class StoreRepository:
    """Repository for the store columns owned by the billing core."""

    def __init__(self, db_session: Session):
        """
        Initialize repository with database session.

        Args:
            db_session: SQLAlchemy database session
        """
        self.db = db_session

    def get_by_id(self, store_id: int) -> Optional[Store]:
        return self.db.query(Store).filter(Store.id == store_id).first()

    def lookup_subject_exists(self, store_id: int) -> bool:
        """Check if a store exists (validation before event insert)."""
        return self.db.query(Store.id).filter(Store.id == store_id).first() is not None

    def upsert_tier_record(self, store_id: int, tier: str, featured_until: datetime) -> bool:
        """
        Set store tier and exposure window from a completed checkout.

        Does NOT create a subscription record and does NOT touch is_featured.

        Returns:
            True if the store row was updated, False if the store is unknown
        """
        updated = self.db.query(Store).filter(Store.id == store_id).update(
            {
                Store.featured_tier: tier,
                Store.featured_until: featured_until,
            },
            synchronize_session=False,
        )
        if not updated:
            logger.warning("Tier record write matched no store", extra={"store_id": store_id})
        return bool(updated)

    def extend_feature_window(self, store_id: int, featured_until: datetime) -> bool:
        """
        Move featured_until forward to a renewed period end.

        The window never moves backwards, so a late or replayed renewal for
        an older period is a no-op. A lapsed window is extended to the new
        period end as-is.

        Returns:
            True if featured_until changed
        """
        updated = self.db.query(Store).filter(
            Store.id == store_id,
            or_(Store.featured_until.is_(None), Store.featured_until < featured_until),
        ).update(
            {Store.featured_until: featured_until},
            synchronize_session=False,
        )
        if not updated:
            logger.info(
                "Feature window not extended (unknown store or window already later)",
                extra={"store_id": store_id, "featured_until": featured_until.isoformat()},
            )
        return bool(updated)

    def set_store_featured(self, store_id: int, is_featured: bool) -> bool:
        """
        Operator exposure toggle, separate from tier.

        Never called from webhook handling.
        """
        updated = self.db.query(Store).filter(Store.id == store_id).update(
            {Store.is_featured: is_featured},
            synchronize_session=False,
        )
        self.db.commit()
        logger.info(
            "Store exposure flag set by operator",
            extra={"store_id": store_id, "is_featured": is_featured, "updated": bool(updated)},
        )
        return bool(updated)
