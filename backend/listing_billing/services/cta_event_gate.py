"""
Rate-limited intake for public CTA tracking events.

Each step is a hard precondition for the next:
1. required fields present
2. event_type is a known CTA kind
3. store exists
4. per-origin counter (hashed IP + store) under its ceiling
5. per-store counter (all origins) under its ceiling
Then the event is persisted. Persistence is best-effort: any failure is
logged and reported as success so tracking never breaks the visitor's click.
"""

import logging
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from listing_billing.config.rate_limits import (
    CTA_EVENT_ORIGIN,
    CTA_EVENT_SUBJECT,
    RateLimitConfigLoader,
    get_rate_limit_loader,
)
from listing_billing.entitlements.errors import InvalidTrackedEvent, RateLimited, SubjectNotFound
from listing_billing.entitlements.tiers import MAX_STORE_ID
from listing_billing.models.cta_event import CtaEventType
from listing_billing.models.rate_limit import RateLimitScope
from listing_billing.repositories.cta_event_repository import CtaEventRepository
from listing_billing.repositories.store_repository import StoreRepository
from listing_billing.services.rate_limiter import CounterKey, DurableRateLimiter, hash_origin

logger = logging.getLogger(__name__)


class CtaEventRequest(BaseModel):
    """Public request body. camelCase names from the browser tracker are accepted."""

    model_config = ConfigDict(extra="ignore")

    subject_id: Optional[int] = Field(
        default=None, strict=True, validation_alias=AliasChoices("subject_id", "storeId")
    )
    event_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("event_type", "eventType")
    )
    source: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("source", "sourcePage")
    )


class CtaEventGate:
    """Validates, throttles and stores one CTA event."""

    def __init__(
        self,
        db_session: Session,
        limiter: Optional[DurableRateLimiter] = None,
        limits: Optional[RateLimitConfigLoader] = None,
    ):
        self.db = db_session
        self.stores = StoreRepository(db_session)
        self.events = CtaEventRepository(db_session)
        self.limiter = limiter or DurableRateLimiter(db_session)
        self.limits = limits or get_rate_limit_loader()

    def submit(self, body: Any, client_ip: str) -> None:
        """
        Run every precondition, then persist.

        Raises:
            InvalidTrackedEvent: bad input (400)
            SubjectNotFound: unknown store (404)
            RateLimited: a counter passed its ceiling (429)
        """
        request = self._validate(body)
        store_id = request.subject_id

        if not self._store_exists(store_id):
            raise SubjectNotFound(store_id)

        origin_rule = self.limits.get_rule(CTA_EVENT_ORIGIN)
        origin_key = CounterKey.for_origin(hash_origin(client_ip), store_id, origin_rule.window_seconds)
        if not self.limiter.check_and_increment(origin_key, origin_rule.ceiling):
            logger.warning(
                "CTA event rate limited per origin",
                extra={"store_id": store_id, "scope": RateLimitScope.ORIGIN},
            )
            raise RateLimited(RateLimitScope.ORIGIN)

        subject_rule = self.limits.get_rule(CTA_EVENT_SUBJECT)
        subject_key = CounterKey.for_subject(store_id, subject_rule.window_seconds)
        if not self.limiter.check_and_increment(subject_key, subject_rule.ceiling):
            logger.warning(
                "CTA event rate limited per store",
                extra={"store_id": store_id, "scope": RateLimitScope.SUBJECT},
            )
            raise RateLimited(RateLimitScope.SUBJECT)

        try:
            self.events.insert(store_id, request.event_type, request.source)
        except Exception as e:
            logger.error(
                "CTA event insert error",
                extra={"store_id": store_id, "event_type": request.event_type, "error": str(e)},
            )
            self.db.rollback()

    def _validate(self, body: Any) -> CtaEventRequest:
        if not isinstance(body, dict):
            raise InvalidTrackedEvent("Invalid request body")
        try:
            request = CtaEventRequest.model_validate(body)
        except ValidationError:
            raise InvalidTrackedEvent("Invalid request body")

        if not request.subject_id or not request.event_type or not request.source:
            raise InvalidTrackedEvent("Missing required fields")

        if request.event_type not in CtaEventType.ALL:
            raise InvalidTrackedEvent("Invalid event type")

        if not 1 <= request.subject_id <= MAX_STORE_ID:
            raise InvalidTrackedEvent("Invalid store id")

        return request

    def _store_exists(self, store_id: int) -> bool:
        try:
            return self.stores.lookup_subject_exists(store_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Store existence check error",
                extra={"store_id": store_id, "error": str(e)},
            )
            return False
