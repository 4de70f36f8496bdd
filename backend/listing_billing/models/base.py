"""
Column mixins and time helpers shared by the billing models.

Entitlement windows are compared in UTC everywhere; utc_now and ensure_utc
keep SQLite (naive) and PostgreSQL (aware) values comparable.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, func

from listing_billing.db_base import Base


def generate_uuid() -> str:
    """String UUID4 primary key default."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    SQLite drops tzinfo on DateTime(timezone=True) columns, PostgreSQL
    does not. Values are always written in UTC so a naive value is UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TimestampMixin:
    """created_at / updated_at, both set by the database."""

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Timestamp when record was last updated"
    )


__all__ = ["Base", "TimestampMixin", "generate_uuid", "utc_now", "ensure_utc"]
