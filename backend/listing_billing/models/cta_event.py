"""
CtaEvent model for raw call-to-action tracking events.
"""

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Index, CheckConstraint, func
)

from listing_billing.models.base import Base


class CtaEventType(str):
    """Tracked call-to-action kinds."""
    CALL = "call"
    DIRECTIONS = "directions"
    WEBSITE = "website"

    ALL = (CALL, DIRECTIONS, WEBSITE)


class CtaEvent(Base):
    """Append-only record of a visitor clicking a store call-to-action."""

    __tablename__ = "cta_events"

    id = Column(Integer, primary_key=True, autoincrement=True)

    store_id = Column(
        Integer,
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type = Column(String(20), nullable=False)
    source_page = Column(Text, nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            "event_type IN ('call', 'directions', 'website')",
            name="ck_cta_events_event_type",
        ),
        Index("idx_cta_events_store_date", "store_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<CtaEvent(id={self.id}, store_id={self.store_id}, type={self.event_type})>"
