"""
CTA event persistence.
"""

import logging

from sqlalchemy.orm import Session

from listing_billing.models.cta_event import CtaEvent

logger = logging.getLogger(__name__)


class CtaEventRepository:

    def __init__(self, db_session: Session):
        self.db = db_session

    def insert(self, store_id: int, event_type: str, source_page: str) -> CtaEvent:
        event = CtaEvent(store_id=store_id, event_type=event_type, source_page=source_page)
        self.db.add(event)
        self.db.commit()
        return event

    def count_for_store(self, store_id: int) -> int:
        return self.db.query(CtaEvent).filter(CtaEvent.store_id == store_id).count()
