"""
Operator switch for a store's feature-exposure flag.

This is the only writer of stores.is_featured. Billing webhooks set the tier
and window; whether the listing is actually promoted stays a manual call.

Usage:
    python -m listing_billing.scripts.set_store_featured 42 --on
    python -m listing_billing.scripts.set_store_featured 42 --off

Environment variables:
    DATABASE_URL: PostgreSQL connection string
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from listing_billing.database.session import get_db_session_sync
from listing_billing.repositories.store_repository import StoreRepository

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Set a store's feature-exposure flag")
    parser.add_argument("store_id", type=int, help="Store id")
    toggle = parser.add_mutually_exclusive_group(required=True)
    toggle.add_argument("--on", dest="is_featured", action="store_true", help="Promote the listing")
    toggle.add_argument("--off", dest="is_featured", action="store_false", help="Stop promoting the listing")
    return parser.parse_args(argv)


def set_featured(session, store_id: int, is_featured: bool) -> bool:
    """
    Apply the toggle and report the store's paid window alongside it.

    Returns:
        True if the store exists
    """
    repo = StoreRepository(session)
    store = repo.get_by_id(store_id)
    if store is None:
        logger.error("Store not found", extra={"store_id": store_id})
        return False

    if is_featured and store.tier_is_expired():
        logger.warning(
            "Featuring a store without a live paid window",
            extra={"store_id": store_id, "featured_until": str(store.featured_until)},
        )

    updated = repo.set_store_featured(store_id, is_featured)
    session.refresh(store)
    logger.info(
        "Store placement after toggle",
        extra={"store_id": store_id, "effectively_featured": store.is_effectively_featured()},
    )
    return updated


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    args = parse_args(argv)

    try:
        for session in get_db_session_sync():
            if not set_featured(session, args.store_id, args.is_featured):
                return 1
    except RuntimeError as e:
        logger.error("Could not set store exposure", extra={"error": str(e)})
        return 1

    logger.info(
        "Store exposure updated",
        extra={"store_id": args.store_id, "is_featured": args.is_featured},
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
