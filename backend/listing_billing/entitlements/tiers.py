"""
Tier parsing and feature-exposure window arithmetic.
"""

from datetime import datetime
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

from listing_billing.models.base import utc_now
from listing_billing.models.store import ListingTier

# Calendar-aware durations: Jan 31 + 1 month is Feb 28/29, not Mar 2/3
TIER_DURATIONS = {
    ListingTier.MONTHLY: relativedelta(months=1),
    ListingTier.ANNUAL: relativedelta(years=1),
}

# stores.id and subscriptions.store_id are 32-bit INTEGER columns
MAX_STORE_ID = 2**31 - 1


def parse_tier(raw: Any) -> Optional[str]:
    """Return the tier if raw names a purchasable tier, else None."""
    if isinstance(raw, str) and raw in TIER_DURATIONS:
        return raw
    return None


def parse_store_id(raw: Any) -> Optional[int]:
    """
    Return a store id that fits the stores.id column, or None if raw is malformed.

    Stripe metadata values are strings; integers are accepted too.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str):
        candidate = raw.strip()
        if not (candidate.isdigit() and candidate.isascii()):
            return None
        value = int(candidate)
    else:
        return None
    return value if 1 <= value <= MAX_STORE_ID else None


def compute_featured_until(tier: str, now: Optional[datetime] = None) -> datetime:
    """
    End of the exposure window granted by a fresh checkout.

    Raises:
        ValueError: if tier is not a purchasable tier
    """
    duration = TIER_DURATIONS.get(tier)
    if duration is None:
        raise ValueError(f"Unknown tier: {tier!r}")
    return (now or utc_now()) + duration
