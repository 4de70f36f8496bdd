"""
Tests that the baseline migration creates every billing table.
"""

import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

MIGRATION = (
    Path(__file__).resolve().parents[3] / "alembic" / "versions" / "4b7d1e9a2c03_listing_billing_schema.py"
)

EXPECTED_TABLES = {
    "stores",
    "subscriptions",
    "stripe_webhook_events",
    "rate_limit_counters",
    "cta_events",
}


@pytest.fixture
def migration():
    spec = importlib.util.spec_from_file_location("listing_billing_schema", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_upgrade_and_downgrade(migration):
    engine = create_engine("sqlite:///:memory:")
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            migration.upgrade()
        assert EXPECTED_TABLES <= set(inspect(conn).get_table_names())

        pk = inspect(conn).get_pk_constraint("rate_limit_counters")["constrained_columns"]
        assert pk == ["scope", "subject_key", "window_start"]

        with Operations.context(MigrationContext.configure(conn)):
            migration.downgrade()
        assert not EXPECTED_TABLES & set(inspect(conn).get_table_names())
