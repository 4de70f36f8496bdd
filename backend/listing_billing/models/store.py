"""
Store model carrying the Tier Record and the feature-exposure flag.

CRITICAL DESIGN DECISIONS:
- featured_tier / featured_until are the Tier Record. Only the checkout and
  subscription-renewal webhook paths write them.
- is_featured is an operator-controlled exposure switch. No billing webhook
  ever writes it.
- Tier expiry is computed (now > featured_until). It is never stored and the
  tier is never cleared on cancellation.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Index, CheckConstraint
)

from listing_billing.models.base import Base, TimestampMixin, utc_now, ensure_utc


class ListingTier(str):
    """Monetization tiers a store can purchase. No tier is stored as NULL."""
    MONTHLY = "monthly"
    ANNUAL = "annual"

    ALL = (MONTHLY, ANNUAL)


class Store(Base, TimestampMixin):
    """
    A store listing.

    Only the columns the billing core reads or writes are mapped here; the
    listing content itself is owned by the directory pages.
    """

    __tablename__ = "stores"

    id = Column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    name = Column(
        String(255),
        nullable=False,
        comment="Store display name"
    )

    # Exposure (operator only)
    is_featured = Column(
        Boolean,
        nullable=False,
        default=False,
        comment="Operator-controlled placement switch, never written by webhooks"
    )

    # Tier Record (webhook owned)
    featured_tier = Column(
        String(20),
        nullable=True,
        comment="Purchased tier: monthly, annual, or NULL for none"
    )
    featured_until = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="End of the paid feature-exposure window"
    )

    __table_args__ = (
        CheckConstraint(
            "featured_tier IS NULL OR featured_tier IN ('monthly', 'annual')",
            name="ck_stores_featured_tier",
        ),
        Index("ix_stores_featured_until", "featured_until"),
    )

    def __repr__(self) -> str:
        return f"<Store(id={self.id}, tier={self.featured_tier}, featured_until={self.featured_until})>"

    def tier_is_expired(self, now: Optional[datetime] = None) -> bool:
        """A tier without a window, or with a lapsed window, is expired."""
        until = ensure_utc(self.featured_until)
        if until is None:
            return True
        return (now or utc_now()) > until

    def is_effectively_featured(self, now: Optional[datetime] = None) -> bool:
        """Placement requires both the operator switch and a live paid window."""
        return bool(self.is_featured) and not self.tier_is_expired(now)
