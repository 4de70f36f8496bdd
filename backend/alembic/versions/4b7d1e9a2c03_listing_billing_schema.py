"""listing_billing_schema

Revision ID: 4b7d1e9a2c03
Revises: 
Create Date: 2026-10-16 09:12:41.118204

Creates stores, subscriptions, stripe_webhook_events, rate_limit_counters
and cta_events from the model metadata.
"""
from typing import Sequence, Union

from alembic import op

from listing_billing.db_base import Base
import listing_billing.models  # noqa: F401 - required to register all model metadata


# revision identifiers, used by Alembic.
revision: str = '4b7d1e9a2c03'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    Base.metadata.create_all(bind=bind)


def downgrade() -> None:
    bind = op.get_bind()
    Base.metadata.drop_all(bind=bind)
