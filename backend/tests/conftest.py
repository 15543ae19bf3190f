"""
Canopy Backend: Test Configuration (conftest.py)
=================================================

What:  Shared pytest fixtures for the whole suite.
How:   Pure tree logic is tested without any database. Service and route
       tests run against a throwaway SQLite file (aiosqlite) created per test
       with `Base.metadata.create_all`, wired through a real AppContext with
       tight tree limits so the limits are reachable in a few inserts.

Fixture Hierarchy (all function-scoped):
    mock_db_session          AsyncMock standing in for an AsyncSession
    test_settings            Settings with small limits
    engine                   async engine on tmp_path/canopy.db, schema created
    context                  AppContext built on that engine
    seed                     helpers creating members, items and memberships
    test_client              httpx AsyncClient on create_app(context)
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Set before any canopy import: the module-level engine reads DATABASE_URL
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./canopy_test.db"
os.environ["LOG_LEVEL"] = "WARNING"

import canopy.models  # noqa: E402,F401
from canopy.config import Settings  # noqa: E402
from canopy.context import AppContext, build_context  # noqa: E402
from canopy.database import Base, build_engine, build_session_factory  # noqa: E402
from canopy.schemas.item import ItemCreate  # noqa: E402
from canopy.schemas.member import MemberCreate  # noqa: E402
from canopy.schemas.membership import MembershipCreate  # noqa: E402


@asynccontextmanager
async def transaction(ctx: AppContext):
    """One committed unit of work, like a request; rolled back if the block raises."""
    async with ctx.session_factory() as db:
        async with db.begin():
            yield db


class Seed:
    """Builds fixtures through the real services, one transaction per call."""

    def __init__(self, ctx: AppContext):
        self.ctx = ctx
        self._count = 0

    async def member(self, name: str = "member"):
        self._count += 1
        async with transaction(self.ctx) as db:
            member = await self.ctx.members.create(
                db, MemberCreate(name=name, email=f"{name}.{self._count}@example.org")
            )
        return member.id

    async def item(
        self,
        actor,
        name: str = "folder",
        parent=None,
        type: str = "folder",
        previous=None,
    ):
        async with transaction(self.ctx) as db:
            created = await self.ctx.items.create(
                db, actor, ItemCreate(name=name, type=type), parent_id=parent,
                previous_item_id=previous,
            )
        return created

    async def share(self, actor, member_id, item_id, permission: str):
        async with transaction(self.ctx) as db:
            return await self.ctx.memberships.create(
                db, actor,
                MembershipCreate(member_id=member_id, item_id=item_id, permission=permission),
            )


# ══════════════════════════════════════════════════════════════════════════
# Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Mock async database session for pure service logic.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = row
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'canopy.db'}",
        log_level="WARNING",
        max_tree_levels=4,
        max_number_of_children=3,
        max_descendants_for_move=50,
        max_descendants_for_copy=50,
        max_descendants_for_delete=50,
        max_targets_for_modify_request=6,
        max_targets_for_modify_request_w_response=3,
        max_targets_for_read_request=10,
        worker_count=1,
        worker_shutdown_timeout=5.0,
    )


@pytest_asyncio.fixture
async def engine(test_settings):
    engine = build_engine(test_settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def context(test_settings, engine) -> AppContext:
    return build_context(test_settings, build_session_factory(engine), engine)


@pytest.fixture
def seed(context) -> Seed:
    return Seed(context)


@pytest_asyncio.fixture
async def test_client(context) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX client talking to the app in-process.

    ASGITransport does not run the lifespan; the context is injected and the
    task queue is left stopped (tests drive `bulk.process` themselves).
    """
    from canopy.main import create_app

    app = create_app(context)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def member_headers(member_id: Optional[object]) -> dict:
    return {"X-Member-Id": str(member_id)} if member_id else {}
