"""
Canopy Backend: Database Session Management
============================================

What:  Async SQLAlchemy engine, session factory and declarative base.
How:   Creates an async engine with connection pooling and a session factory;
       the request-scoped session dependency lives in dependencies.py.
Who:   The application context (one factory for the whole app), and the bulk
       coordinator which opens one session per target item.
When:  Engine is created at module import; sessions are created per-request.

Connection Pooling Strategy:
    pool_size=20:     Persistent connections for normal load
    max_overflow=10:  Temporary connections for traffic spikes (total max = 30)
    pool_pre_ping:    Validates connections before use
    pool_recycle=3600: Recycles connections every hour

    SQLite URLs (tests, local hacking) skip the pool arguments and the
    isolation level; aiosqlite manages its own single connection per session.
"""

from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from canopy.config import Settings, settings


def build_engine(config: Settings) -> AsyncEngine:
    """
    What:    Creates the async engine for the configured database URL.
    How:     Pool and isolation options are only passed to server databases.
    """
    options: Dict[str, Any] = {"echo": config.log_level == "DEBUG"}
    if not config.is_sqlite:
        options.update(
            pool_size=config.db_pool_size,
            max_overflow=config.db_max_overflow,
            pool_pre_ping=config.db_pool_pre_ping,
            pool_recycle=3600,
        )
        if config.db_isolation_level:
            options["isolation_level"] = config.db_isolation_level
    return create_async_engine(config.database_url, **options)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Creates AsyncSession instances with consistent configuration.

    expire_on_commit=False keeps attributes readable after commit; the bulk
    coordinator serializes items after their transaction has closed.
    """
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


# ── Engine & Session Factory ──────────────────────────────────────────────
engine = build_engine(settings)
async_session_factory = build_session_factory(engine)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class to register with the shared metadata
    (used by Alembic for migrations and by tests for `create_all`).
    """
    pass


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine(bind: Optional[AsyncEngine] = None) -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    await (bind or engine).dispose()
