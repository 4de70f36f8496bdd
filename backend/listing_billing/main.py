"""
FastAPI application entry point for the listing billing core.

Routes:
- GET  /health
- POST /api/webhooks/stripe   (Stripe signature required)
- POST /api/cta-event         (public, rate limited)

Run locally:
    uvicorn listing_billing.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from listing_billing.api.routes import cta_events, health, webhooks_stripe
from listing_billing.config.billing_settings import get_billing_settings
from listing_billing.config.rate_limits import get_rate_limit_loader

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting listing billing API")

    settings = get_billing_settings()
    missing_vars = [
        name
        for name, value in (
            ("DATABASE_URL", settings.database_url),
            ("STRIPE_WEBHOOK_SECRET", settings.stripe_webhook_secret),
        )
        if not value
    ]
    app.state.billing_configured = not missing_vars
    if missing_vars:
        logger.warning(
            f"Billing not fully configured (missing: {missing_vars}). "
            "Affected endpoints will return 503."
        )

    # Fail at startup, not on the first tracked click, if the YAML is broken
    limits = get_rate_limit_loader().get_all()
    logger.info("Rate limits loaded", extra={"limits": limits})

    yield

    logger.info("Shutting down listing billing API")


app = FastAPI(
    title="Listing Billing API",
    description="Featured-listing billing: Stripe entitlement sync and CTA tracking",
    version="1.0.0",
    lifespan=lifespan
)

# Include health route (no authentication)
app.include_router(health.router)

# Stripe webhooks (signature verified per request)
app.include_router(webhooks_stripe.router)

# Public CTA tracking (durable rate limits)
app.include_router(cta_events.router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions with proper logging."""
    logger.error(
        "Unhandled exception",
        extra={
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path
        },
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"}
    )
