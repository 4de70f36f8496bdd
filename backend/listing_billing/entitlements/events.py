"""
Typed view of a verified Stripe event.

Only event.id, event.type and event.data.object are consumed.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
INVOICE_PAYMENT_FAILED = "invoice.payment_failed"

HANDLED_EVENT_TYPES = (
    CHECKOUT_SESSION_COMPLETED,
    SUBSCRIPTION_CREATED,
    SUBSCRIPTION_UPDATED,
    SUBSCRIPTION_DELETED,
    INVOICE_PAYMENT_FAILED,
)


@dataclass(frozen=True)
class BillingEvent:
    """A Stripe event whose signature has already been verified."""
    id: str
    type: str
    data_object: Dict[str, Any] = field(default_factory=dict)

    @property
    def object_id(self) -> Optional[str]:
        value = self.data_object.get("id")
        return value if isinstance(value, str) else None

    @property
    def metadata(self) -> Dict[str, Any]:
        value = self.data_object.get("metadata")
        return value if isinstance(value, dict) else {}
