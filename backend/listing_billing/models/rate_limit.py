"""
RateLimitCounter model for durable, shared rate limiting.

Counters live in the database rather than process memory so that limits
survive deploys and hold across every running instance.
"""

from sqlalchemy import Column, String, Integer, DateTime, Index

from listing_billing.models.base import Base


class RateLimitScope(str):
    """Counter scopes for the CTA event endpoint."""
    ORIGIN = "origin"      # hashed client IP + store
    SUBJECT = "subject"    # store across all clients


class RateLimitCounter(Base):
    """
    One row per (scope, subject_key, window_start).

    event_count is only ever changed by a single
    INSERT ... ON CONFLICT DO UPDATE ... RETURNING statement.
    """

    __tablename__ = "rate_limit_counters"

    scope = Column(
        String(32),
        primary_key=True,
    )
    subject_key = Column(
        String(128),
        primary_key=True,
        comment="ip_hash:store_id for origin scope, store_id for subject scope"
    )
    window_start = Column(
        DateTime(timezone=True),
        primary_key=True,
        comment="Start of the fixed window the count belongs to"
    )
    event_count = Column(
        Integer,
        nullable=False,
        default=1,
    )

    __table_args__ = (
        Index("idx_rate_limit_counters_window", "window_start"),
    )

    def __repr__(self) -> str:
        return (
            f"<RateLimitCounter(scope={self.scope}, subject_key={self.subject_key}, "
            f"window_start={self.window_start}, count={self.event_count})>"
        )
