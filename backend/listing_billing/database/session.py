"""
Engine and session lifecycle for the billing core.

One pooled engine per process, built lazily from DATABASE_URL. Webhook
requests, CTA requests and jobs each take a short-lived session from it and
commit their own work.

Usage:
    from listing_billing.database.session import get_db_session

    @router.post("/api/cta-event")
    async def track(db: Session = Depends(get_db_session)):
        ...
"""

import logging
from typing import Generator, Optional

from fastapi import HTTPException, status
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from listing_billing.config.billing_settings import get_billing_settings

logger = logging.getLogger(__name__)

# SQLAlchemy needs an explicit driver; hosting providers hand out libpq URLs
_DRIVER_PREFIXES = (
    ("postgres://", "postgresql+psycopg://"),
    ("postgresql://", "postgresql+psycopg://"),
)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _get_database_url() -> str:
    """
    DATABASE_URL with the psycopg driver filled in.

    Raises:
        ValueError: DATABASE_URL is unset
    """
    url = get_billing_settings().database_url
    if not url:
        raise ValueError("DATABASE_URL environment variable is not set")

    for prefix, replacement in _DRIVER_PREFIXES:
        if url.startswith(prefix):
            return replacement + url[len(prefix):]
    return url


def get_engine() -> Engine:
    """
    Process-wide engine.

    Rate-limit checks and webhook writes are short single statements, so a
    small pool with pre-ping and half-hour recycling is enough per instance.
    """
    global _engine
    if _engine is not None:
        return _engine

    try:
        url = _get_database_url()
    except ValueError as e:
        logger.error("Database engine not created", extra={"error": str(e)})
        raise

    _engine = create_engine(
        url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=1800,
    )
    logger.info("Database engine created", extra={"dialect": _engine.dialect.name})
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autoflush=False)
    return _session_factory


def reset_engine() -> None:
    """Drop the cached engine and factory (tests, config reloads)."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


async def get_db_session() -> Generator[Session, None, None]:
    """
    Request-scoped session dependency.

    Answers 503 when no database is configured so a misconfigured instance
    fails visibly instead of acknowledging webhooks it cannot store.
    """
    try:
        factory = get_session_factory()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured"
        )

    session = factory()
    try:
        yield session
    finally:
        session.close()


def get_db_session_sync() -> Generator[Session, None, None]:
    """
    Session generator for jobs and scripts.

    Usage:
        for session in get_db_session_sync():
            RetentionCleanup(session).run()
    """
    try:
        factory = get_session_factory()
    except ValueError as e:
        raise RuntimeError(f"Database not configured: {e}")

    session = factory()
    try:
        yield session
    finally:
        session.close()
