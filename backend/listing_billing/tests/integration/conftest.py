"""
Fixtures for API integration tests.
"""

import pytest
from fastapi.testclient import TestClient

from listing_billing.database.session import get_db_session
from listing_billing.main import app


@pytest.fixture
def client(db_session):
    """TestClient whose requests share the test database session."""
    def _override():
        yield db_session

    app.dependency_overrides[get_db_session] = _override
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
