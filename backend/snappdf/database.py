"""
SnapPDF Backend — Database Engine Construction
===============================================

What:  Async SQLAlchemy engine/session factory builders and the ORM base class.
How:   build_engine() turns a URL into an AsyncEngine with pool settings;
       build_session_factory() wraps it in an async_sessionmaker.
Who:   Used by AuditStore (services/audit_service.py) and Alembic.
When:  Once per application instance, from the lifespan hook or from tests.

Nothing here creates an engine at import time. The application factory
decides whether an audit store exists at all (DATABASE_URL may be empty)
and passes the resulting object to request handlers.

Connection Pooling Strategy:
    pool_size / max_overflow:  from settings (small: one insert per conversion)
    pool_pre_ping:             validates connections before use
    pool_recycle=3600:         recycles connections every hour
    SQLite URLs (tests) skip the pool arguments; their pools reject them.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from snappdf.config import Settings, settings as default_settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


def build_engine(url: str, config: Optional[Settings] = None) -> AsyncEngine:
    """
    Create an async engine for the audit store.

    Args:
        url:    Async SQLAlchemy URL (postgresql+asyncpg://..., sqlite+aiosqlite://...)
        config: Settings to read pool sizing from (defaults to the global settings)
    """
    config = config or default_settings
    kwargs = {"echo": config.log_level == "DEBUG"}

    if not url.startswith("sqlite"):
        kwargs.update(
            pool_size=config.db_pool_size,
            max_overflow=config.db_max_overflow,
            pool_pre_ping=config.db_pool_pre_ping,
            pool_recycle=3600,
        )

    return create_async_engine(url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to `engine`.

    expire_on_commit=False keeps inserted rows readable after commit, so the
    audit logger can return the stored record without another query.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
