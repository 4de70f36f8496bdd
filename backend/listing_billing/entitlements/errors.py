"""
Structured error classes for webhook processing and event ingestion.

Each error carries the HTTP status the API layer should answer with.
"""

from typing import Optional
from fastapi import status


class BillingError(Exception):
    """Base exception for the billing core."""

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class WebhookAuthenticationError(BillingError):
    """
    Raised when a webhook signature is missing or does not verify.

    Fails closed: nothing in the payload has been read yet.
    """

    http_status = status.HTTP_400_BAD_REQUEST


class MalformedEventError(BillingError):
    """Raised when a verified body is not a usable Stripe event envelope."""

    http_status = status.HTTP_400_BAD_REQUEST


class IngestionRejected(BillingError):
    """Base class for public CTA event rejections."""

    http_status = status.HTTP_400_BAD_REQUEST

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        return {"error": self.message}


class InvalidTrackedEvent(IngestionRejected):
    """Missing fields, wrong types, or an unknown event type."""

    http_status = status.HTTP_400_BAD_REQUEST


class SubjectNotFound(IngestionRejected):
    """The targeted store does not exist."""

    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, store_id: int, message: str = "Store not found"):
        self.store_id = store_id
        super().__init__(message)


class RateLimited(IngestionRejected):
    """
    A durable counter passed its ceiling.

    scope ("origin" or "subject") is for logs only and is not returned to
    the caller.
    """

    http_status = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, scope: str, message: Optional[str] = None):
        self.scope = scope
        super().__init__(message or "Rate limited")
