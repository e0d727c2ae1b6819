"""Pytest configuration and fixtures for WorkCrop tests.

Each test gets its own SQLite file (aiosqlite).  Transactions open with
BEGIN IMMEDIATE so concurrent writers serialize the way row locks do on
PostgreSQL, which is what the concurrent finalize tests rely on.
"""

from datetime import date
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.database import Base, get_db
from app.main import app
from app.models import *  # noqa: F401,F403 — register every table
from app.models.activity import Activity
from app.schemas.job import JobCreate
from app.schemas.team import RateIn, TeamCreate
from app.services import lifecycle, teams


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a fresh SQLite database for one test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'workcrop.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _no_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """One session for service-level tests; rolled back afterwards."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each run in their own committed session."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest_asyncio.fixture
async def pruning(db_session: AsyncSession) -> Activity:
    activity = Activity(name="Pruning", days_after_pruning=0)
    db_session.add(activity)
    await db_session.flush()
    return activity


@pytest.fixture
def make_team(db_session: AsyncSession, pruning: Activity):
    """Factory: onboard a team with a pruning rate, available all of March 2026."""

    async def _make(
        name: str,
        rate: float = 850.0,
        labourers: int = 10,
        available: bool = True,
    ):
        return await teams.create_team(db_session, TeamCreate(
            name=name,
            phone="9800000000",
            number_of_labourers=labourers,
            rates=[RateIn(activity_id=pruning.id, rate_per_acre=rate)],
            available_from=date(2026, 3, 1) if available else None,
            available_to=date(2026, 3, 31) if available else None,
        ))

    return _make


@pytest.fixture
def make_job(db_session: AsyncSession, pruning: Activity):
    """Factory: a job brought up to ``priced`` (5 acres, farmer offers 1000/acre)."""

    async def _make(
        your_price: float | None = 900.0,
        workers_needed: int = 8,
        advance: float = 0.0,
        requested: date = date(2026, 3, 15),
    ):
        job = await lifecycle.create_job(db_session, JobCreate(
            farmer_id="farmer-1",
            activity_id=pruning.id,
            farm_size_acres=5,
            location="Nashik",
            requested_date=requested,
            workers_needed=workers_needed,
            farmer_price_per_acre=1000,
            advance_amount=advance,
        ))
        await lifecycle.confirm_job(db_session, job.id)
        if your_price is not None:
            await lifecycle.set_price(db_session, job.id, your_price)
        return job

    return _make


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
    config.addinivalue_line("markers", "slow: Slow tests")
