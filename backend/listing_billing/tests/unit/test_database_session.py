"""
Tests for engine/session configuration.
"""

import pytest
from fastapi import HTTPException

from listing_billing.database import session as db_session_module
from listing_billing.database.session import _get_database_url, get_db_session


@pytest.mark.parametrize("raw,expected", [
    ("postgres://u:p@db:5432/app", "postgresql+psycopg://u:p@db:5432/app"),
    ("postgresql://u:p@db:5432/app", "postgresql+psycopg://u:p@db:5432/app"),
    ("sqlite:///billing.db", "sqlite:///billing.db"),
])
def test_database_url_normalization(monkeypatch, raw, expected):
    monkeypatch.setenv("DATABASE_URL", raw)
    assert _get_database_url() == expected


def test_missing_database_url_raises():
    with pytest.raises(ValueError):
        _get_database_url()


@pytest.mark.asyncio
async def test_db_dependency_returns_503_without_database():
    with pytest.raises(HTTPException) as exc_info:
        await get_db_session().__anext__()

    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_db_dependency_yields_session(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'billing.db'}")

    dependency = get_db_session()
    session = await dependency.__anext__()
    try:
        assert session.get_bind() is db_session_module.get_engine()
    finally:
        await dependency.aclose()
