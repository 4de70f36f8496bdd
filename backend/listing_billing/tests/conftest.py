"""
Root test configuration and fixtures.

Provides:
- db_engine / db_session: fresh in-memory SQLite database per test
- make_store: factory for store rows
- webhook_secret / sign_payload: Stripe-compatible signature helpers
- make_yaml_config: factory for rate limit YAML files
"""

import hashlib
import hmac
import json
import os
import tempfile
import time
from datetime import datetime
from pathlib import Path
from typing import Generator, Optional

import pytest
import yaml
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from listing_billing.config.rate_limits import reset_rate_limit_loader
from listing_billing.database.session import reset_engine
from listing_billing.db_base import Base
from listing_billing import models  # noqa: F401 - registers all tables
from listing_billing.models.store import Store

# Set test environment
os.environ.setdefault("ENV", "test")

TEST_WEBHOOK_SECRET = "whsec_test_listing_billing_secret"


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    """Each test starts without billing env vars, engine or rate limit loader."""
    for var in (
        "DATABASE_URL",
        "STRIPE_WEBHOOK_SECRET",
        "STRIPE_WEBHOOK_TOLERANCE_SECONDS",
        "WEBHOOK_EVENT_RETENTION_DAYS",
        "RATE_LIMIT_RETENTION_MINUTES",
        "RATE_LIMITS_CONFIG_PATH",
    ):
        monkeypatch.delenv(var, raising=False)
    reset_rate_limit_loader()
    reset_engine()
    yield
    reset_rate_limit_loader()
    reset_engine()


@pytest.fixture(scope="function")
def db_engine():
    """
    Create an in-memory SQLite engine with all tables.

    The code under test commits, so each test gets its own database instead
    of a rolled-back transaction.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()

    yield session

    session.close()


@pytest.fixture
def make_store(db_session):
    """
    Factory fixture that inserts a store and returns it.

    Usage:
        store = make_store(id=42, featured_tier="annual", featured_until=...)
    """
    def _make(
        id: Optional[int] = None,
        name: str = "Test Store",
        is_featured: bool = False,
        featured_tier: Optional[str] = None,
        featured_until: Optional[datetime] = None,
    ) -> Store:
        store = Store(
            id=id,
            name=name,
            is_featured=is_featured,
            featured_tier=featured_tier,
            featured_until=featured_until,
        )
        db_session.add(store)
        db_session.commit()
        return store
    return _make


@pytest.fixture
def webhook_secret(monkeypatch):
    """Configure the Stripe signing secret for this test."""
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", TEST_WEBHOOK_SECRET)
    return TEST_WEBHOOK_SECRET


def stripe_signature_header(payload: str, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header: t=<ts>,v1=<hmac-sha256 of '{t}.{payload}'>."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def sign_payload():
    """
    Factory fixture returning (body, header) for a Stripe event dict.

    Usage:
        body, header = sign_payload(event_dict)
    """
    def _sign(event: dict, secret: str = TEST_WEBHOOK_SECRET, timestamp: Optional[int] = None):
        body = json.dumps(event)
        return body, stripe_signature_header(body, secret, timestamp)
    return _sign


@pytest.fixture
def make_event():
    """
    Factory fixture for a minimal Stripe event envelope.

    Usage:
        event = make_event("evt_1", "invoice.payment_failed", {"id": "in_1"})
    """
    def _make(event_id: str, event_type: str, data_object: dict) -> dict:
        return {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": int(time.time()),
            "data": {"object": data_object},
        }
    return _make


@pytest.fixture
def temp_config_dir():
    """Create a temporary directory for YAML config files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_yaml_config(temp_config_dir):
    """
    Factory fixture that writes a YAML config file and returns its path.

    Usage:
        config_path = make_yaml_config("rate_limits.yml", {"limits": {...}})
    """
    def _make(filename: str, config: dict) -> Path:
        config_path = temp_config_dir / filename
        with open(config_path, "w") as f:
            yaml.dump(config, f)
        return config_path
    return _make


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "security: mark test as security-focused")
    config.addinivalue_line("markers", "slow: mark test as slow-running")
