"""
Retention Cleanup Job.

Bounds the tables that grow with traffic:
- stripe_webhook_events: ledger rows older than WEBHOOK_EVENT_RETENTION_DAYS
- rate_limit_counters: windows that started before RATE_LIMIT_RETENTION_MINUTES

Ledger retention must outlast Stripe's redelivery period (about 3 days) and
counter retention must cover the longest configured window, otherwise a
live window could be deleted and its count reset.

Run as a cron job (hourly is enough for the counters):
    python -m listing_billing.jobs.retention_cleanup
"""

import sys
import logging
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from listing_billing.config.billing_settings import get_billing_settings
from listing_billing.config.rate_limits import get_rate_limit_loader
from listing_billing.database.session import get_db_session_sync
from listing_billing.models.base import utc_now
from listing_billing.repositories.webhook_event_repository import WebhookEventRepository
from listing_billing.services.rate_limiter import DurableRateLimiter

logger = logging.getLogger(__name__)


class RetentionCleanup:
    """Deletes expired ledger rows and rate-limit windows."""

    def __init__(
        self,
        db_session,
        ledger_retention_days: Optional[int] = None,
        counter_retention_minutes: Optional[int] = None,
        now: Optional[datetime] = None,
    ):
        """
        Initialize retention cleanup.

        Args:
            db_session: Database session
            ledger_retention_days: Defaults to WEBHOOK_EVENT_RETENTION_DAYS
            counter_retention_minutes: Defaults to RATE_LIMIT_RETENTION_MINUTES,
                raised to the longest configured window if shorter
            now: Reference time (tests)
        """
        settings = get_billing_settings()
        self.db = db_session
        self.now = now or utc_now()
        self.ledger_retention_days = ledger_retention_days or settings.webhook_event_retention_days
        self.counter_retention_minutes = self._covering_retention(
            counter_retention_minutes or settings.rate_limit_retention_minutes
        )
        self.stats = {
            "webhook_events_deleted": 0,
            "rate_limit_counters_deleted": 0,
            "errors": 0,
        }

    @staticmethod
    def _covering_retention(minutes: int) -> int:
        longest_window = max(
            (rule["window_seconds"] for rule in get_rate_limit_loader().get_all().values()),
            default=0,
        )
        longest_minutes = -(-longest_window // 60)
        if minutes < longest_minutes:
            logger.warning(
                "Counter retention shorter than longest window, raising it",
                extra={"configured_minutes": minutes, "longest_window_minutes": longest_minutes},
            )
            return longest_minutes
        return minutes

    def cleanup_webhook_events(self) -> int:
        try:
            deleted = WebhookEventRepository(self.db).cleanup_older_than(
                days=self.ledger_retention_days, now=self.now
            )
            self.stats["webhook_events_deleted"] = deleted
            return deleted
        except SQLAlchemyError as e:
            self.db.rollback()
            self.stats["errors"] += 1
            logger.error(
                "Error cleaning up stripe_webhook_events",
                extra={"error": str(e)},
                exc_info=True,
            )
            return 0

    def cleanup_rate_limit_counters(self) -> int:
        try:
            deleted = DurableRateLimiter(self.db).cleanup_expired(
                older_than_minutes=self.counter_retention_minutes, now=self.now
            )
            self.stats["rate_limit_counters_deleted"] = deleted
            return deleted
        except SQLAlchemyError as e:
            self.db.rollback()
            self.stats["errors"] += 1
            logger.error(
                "Error cleaning up rate_limit_counters",
                extra={"error": str(e)},
                exc_info=True,
            )
            return 0

    def run(self) -> Dict:
        """
        Run all cleanup operations.

        Returns:
            Statistics dictionary
        """
        start_time = utc_now()
        logger.info(
            "Starting retention cleanup",
            extra={
                "ledger_retention_days": self.ledger_retention_days,
                "counter_retention_minutes": self.counter_retention_minutes,
            },
        )

        self.cleanup_webhook_events()
        self.cleanup_rate_limit_counters()

        self.stats["duration_seconds"] = (utc_now() - start_time).total_seconds()

        logger.info("Retention cleanup completed", extra=dict(self.stats))
        return self.stats


def main():
    """Main entry point for retention cleanup job."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger.info("Retention Cleanup starting")

    try:
        for session in get_db_session_sync():
            stats = RetentionCleanup(session).run()
            if stats["errors"]:
                sys.exit(1)
    except RuntimeError as e:
        logger.error("Retention Cleanup failed", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)

    logger.info("Retention Cleanup finished")


if __name__ == "__main__":
    main()
