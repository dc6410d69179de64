"""
Async SQLAlchemy database engine and session management.
Uses asyncpg driver for PostgreSQL async connections.
CRITICAL: expire_on_commit=False prevents lazy-loading issues in async contexts.
"""
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker] = None


class Base(DeclarativeBase):
    pass


def _get_engine() -> Optional[AsyncEngine]:
    global _engine
    if _engine is None:
        from dealerchat.config import get_settings
        settings = get_settings()
        if not settings.database_url:
            return None
        _engine = create_async_engine(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            echo=settings.app_env == "development",
        )
    return _engine


def get_session_factory() -> Optional[async_sessionmaker]:
    """
    Session factory for the lead store.
    Returns None when no DATABASE_URL is configured so callers can degrade
    to the null store instead of failing at startup.
    """
    global _async_session_factory
    if _async_session_factory is None:
        engine = _get_engine()
        if engine is None:
            logger.warning("DATABASE_URL not set - lead persistence disabled")
            return None
        _async_session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )
    return _async_session_factory


async def dispose_engine() -> None:
    """Close pooled connections on shutdown."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _async_session_factory = None
