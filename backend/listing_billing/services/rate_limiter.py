"""
Durable fixed-window rate limiter backed by the database.

Counters are rows in rate_limit_counters, not process memory, so limits
survive deploys and hold across every running instance. Each check is one
atomic round trip:

    INSERT ... VALUES (scope, subject_key, window_start, 1)
    ON CONFLICT (scope, subject_key, window_start)
    DO UPDATE SET event_count = event_count + 1
    RETURNING event_count

The request is allowed iff the returned count is <= ceiling. There is no
separate read, so two instances can never both see the last free slot.
"""

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from listing_billing.database.upsert import dialect_insert
from listing_billing.models.base import utc_now
from listing_billing.models.rate_limit import RateLimitCounter, RateLimitScope

logger = logging.getLogger(__name__)


def hash_origin(raw_origin: str) -> str:
    """Hash a client IP for privacy-preserving rate-limit keys (one-way)."""
    return hashlib.sha256(raw_origin.encode("utf-8")).hexdigest()[:32]


def get_client_ip(request: Request) -> str:
    """Extract client IP from proxy headers, falling back to the socket peer."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if isinstance(forwarded_for, str) and forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if isinstance(real_ip, str) and real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


def window_start_for(now: datetime, window_seconds: int) -> datetime:
    """Align now to the start of its fixed window (epoch aligned)."""
    epoch = int(now.timestamp())
    return datetime.fromtimestamp(epoch - epoch % window_seconds, tz=timezone.utc)


@dataclass(frozen=True)
class CounterKey:
    scope: str
    subject_key: str
    window_start: datetime

    @classmethod
    def for_origin(
        cls, ip_hash: str, store_id: int, window_seconds: int, now: Optional[datetime] = None
    ) -> "CounterKey":
        return cls(
            scope=RateLimitScope.ORIGIN,
            subject_key=f"{ip_hash}:{store_id}",
            window_start=window_start_for(now or utc_now(), window_seconds),
        )

    @classmethod
    def for_subject(
        cls, store_id: int, window_seconds: int, now: Optional[datetime] = None
    ) -> "CounterKey":
        return cls(
            scope=RateLimitScope.SUBJECT,
            subject_key=str(store_id),
            window_start=window_start_for(now or utc_now(), window_seconds),
        )


class DurableRateLimiter:
    """Shared counting primitive for the public CTA endpoint."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def increment(self, key: CounterKey) -> int:
        """
        Atomically add one to the counter and return the new count.

        Commits immediately so the count is visible to every instance even
        if the caller's own work later fails.
        """
        stmt = dialect_insert(self.db, RateLimitCounter.__table__).values(
            scope=key.scope,
            subject_key=key.subject_key,
            window_start=key.window_start,
            event_count=1,
        )
        table = RateLimitCounter.__table__
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.scope, table.c.subject_key, table.c.window_start],
            set_={"event_count": table.c.event_count + 1},
        ).returning(table.c.event_count)

        count = self.db.execute(stmt).scalar_one()
        self.db.commit()
        return count

    def check_and_increment(self, key: CounterKey, ceiling: int) -> bool:
        """
        Increment-then-compare against the ceiling.

        Fails open on database errors: tracking must never block the user,
        and the error is logged for alerting.

        Returns:
            True if the request is allowed
        """
        try:
            count = self.increment(key)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Rate limit check error, allowing request",
                extra={"scope": key.scope, "subject_key": key.subject_key, "error": str(e)},
            )
            return True

        allowed = count <= ceiling
        if not allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={
                    "scope": key.scope,
                    "subject_key": key.subject_key,
                    "window_start": key.window_start.isoformat(),
                    "count": count,
                    "ceiling": ceiling,
                },
            )
        return allowed

    def current_count(self, key: CounterKey) -> int:
        row = self.db.query(RateLimitCounter.event_count).filter(
            RateLimitCounter.scope == key.scope,
            RateLimitCounter.subject_key == key.subject_key,
            RateLimitCounter.window_start == key.window_start,
        ).first()
        return row[0] if row else 0

    def cleanup_expired(self, older_than_minutes: int = 60, now: Optional[datetime] = None) -> int:
        """
        Delete counter windows that started before the retention cutoff.

        Retention must cover the longest configured window.

        Returns:
            Number of rows deleted
        """
        cutoff = (now or utc_now()) - timedelta(minutes=older_than_minutes)
        result = self.db.execute(
            delete(RateLimitCounter).where(RateLimitCounter.window_start < cutoff)
        )
        self.db.commit()
        logger.info(
            "Cleaned up rate limit counters",
            extra={"deleted": result.rowcount, "cutoff": cutoff.isoformat()},
        )
        return result.rowcount
