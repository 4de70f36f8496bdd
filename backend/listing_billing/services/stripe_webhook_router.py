"""
Stripe webhook router with idempotency support.

Processes verified Stripe events with:
- Event deduplication using the Stripe event id
- Dispatch to exactly one handler per event type
- Ledger write and handler writes committed in one transaction
- Unknown event types acknowledged so Stripe stops retrying them
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from listing_billing.entitlements.events import BillingEvent
from listing_billing.entitlements.handlers import HandlerResult, build_entitlement_handlers
from listing_billing.repositories.store_repository import StoreRepository
from listing_billing.repositories.subscription_repository import SubscriptionRepository
from listing_billing.repositories.webhook_event_repository import WebhookEventRepository

logger = logging.getLogger(__name__)


@dataclass
class WebhookProcessingResult:
    """Result of webhook processing."""
    processed: bool
    message: str
    event_id: Optional[str] = None
    skipped_reason: Optional[str] = None
    error: Optional[str] = None
    outcome: Dict[str, Any] = field(default_factory=dict)

    @property
    def acknowledged(self) -> bool:
        """Whether Stripe should receive a 2xx (no redelivery)."""
        return self.error is None


class StripeWebhookRouter:
    """
    Routes verified Stripe events to entitlement handlers.

    Ensures each event id produces its side effects at most once:
    - ledger checked before dispatch (duplicates are a pure no-op)
    - ledger written after the handler succeeds, in the same commit
    - handler failure rolls back everything, leaving the event unrecorded so
      Stripe's retry reprocesses it
    """

    def __init__(
        self,
        db_session: Session,
        handlers: Optional[Dict[str, Callable[[BillingEvent], HandlerResult]]] = None,
    ):
        """
        Initialize webhook router.

        Args:
            db_session: Database session
            handlers: Override handler table (tests); defaults to the
                entitlement handlers bound to this session
        """
        self.db = db_session
        self.ledger = WebhookEventRepository(db_session)
        if handlers is None:
            handlers = build_entitlement_handlers(
                StoreRepository(db_session),
                SubscriptionRepository(db_session),
            )
        self.handlers = handlers

    def process(self, event: BillingEvent) -> WebhookProcessingResult:
        """
        Apply one verified event.

        Returns:
            WebhookProcessingResult; error is set when the handler failed
        """
        if self.ledger.has_processed(event.id):
            logger.info(
                "Webhook event already processed, skipping",
                extra={"event_id": event.id, "event_type": event.type},
            )
            return WebhookProcessingResult(
                processed=False,
                message="Duplicate webhook - already processed",
                event_id=event.id,
                skipped_reason="duplicate",
            )

        handler = self.handlers.get(event.type)

        try:
            if handler is None:
                logger.info("Unhandled event type", extra={"event_id": event.id, "event_type": event.type})
                outcome: HandlerResult = {"action": "ignored"}
            else:
                outcome = handler(event)

            self.ledger.record_processed(event.id, event.type)
            self.db.commit()

        except Exception as e:
            self.db.rollback()
            logger.error(
                "Webhook handler error",
                extra={"event_id": event.id, "event_type": event.type, "error": str(e)},
                exc_info=True,
            )
            return WebhookProcessingResult(
                processed=False,
                message="Webhook handler failed",
                event_id=event.id,
                error=str(e),
            )

        if handler is None:
            return WebhookProcessingResult(
                processed=False,
                message=f"Ignored event type: {event.type}",
                event_id=event.id,
                skipped_reason="unhandled_type",
                outcome=outcome,
            )

        return WebhookProcessingResult(
            processed=True,
            message=f"Processed {event.type}",
            event_id=event.id,
            outcome=outcome,
        )
