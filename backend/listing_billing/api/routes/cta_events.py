"""
Public CTA click tracking endpoint.

Unauthenticated by nature (it is called from store pages), so every request
passes the rate-limited ingestion gate before anything is written.
"""

import json
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from listing_billing.database.session import get_db_session
from listing_billing.entitlements.errors import IngestionRejected
from listing_billing.services.cta_event_gate import CtaEventGate
from listing_billing.services.rate_limiter import get_client_ip

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["tracking"])


@router.post("/cta-event")
async def track_cta_event(request: Request, db: Session = Depends(get_db_session)):
    """
    Record one call/directions/website click for a store.

    Returns {"success": true} on 200; errors are {"error": message}.
    """
    raw = await request.body()
    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid JSON body"},
        )

    try:
        CtaEventGate(db).submit(body, get_client_ip(request))
    except IngestionRejected as e:
        return JSONResponse(status_code=e.http_status, content=e.to_dict())

    return {"success": True}
