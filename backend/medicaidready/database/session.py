"""
Engine and per-request sessions for the submission store.

The engine is created lazily on first use so the app can boot (and
serve /api/health) without DATABASE_URL; routes that need the store
answer 503 instead.

    @router.get("/api/providers")
    async def list_providers(db: Session = Depends(get_db_session)):
        ...
"""

import logging
from typing import AsyncGenerator, Optional

from fastapi import HTTPException, status
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from medicaidready.config.settings import get_database_url, get_db_pool_settings

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


class DatabaseNotConfigured(RuntimeError):
    """DATABASE_URL is not set."""


def _build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # Local runs only; SQLite connections must be shareable with the audit worker thread
        return create_engine(database_url, connect_args={"check_same_thread": False})

    pool_size, max_overflow = get_db_pool_settings()
    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=1800,
    )


def get_engine() -> Engine:
    """Create the engine on first call and reuse it afterwards."""
    global _engine
    if _engine is None:
        database_url = get_database_url()
        if not database_url:
            logger.error("Database engine unavailable", extra={"error": "DATABASE_URL not set"})
            raise DatabaseNotConfigured("DATABASE_URL environment variable is not set")
        _engine = _build_engine(database_url)
        logger.info("Database engine created", extra={"dialect": _engine.dialect.name})
    return _engine


def get_session_factory() -> sessionmaker:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def dispose_engine() -> None:
    """Close pooled connections; called on application shutdown."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _SessionLocal = None


async def get_db_session() -> AsyncGenerator[Session, None]:
    """
    FastAPI dependency yielding one session per request.

    Raises:
        HTTPException: 503 when DATABASE_URL is not configured
    """
    try:
        factory = get_session_factory()
    except DatabaseNotConfigured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured",
        )

    session = factory()
    try:
        yield session
    finally:
        session.close()
