"""
E2E test fixtures for the Ryde backend.

Provides:
- An in-process FastAPI test app with the job, operator, profit and stats
  routes registered
- httpx AsyncClient wired via ASGI transport (no network needed)
- An async SQLite database session (in-memory, one database per test)
- Helpers for creating jobs and operators through the API

The full route -> service -> DB flow is exercised; nothing is mocked.
"""

from __future__ import annotations

import uuid
from typing import Any, AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient, Response
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ryde.models import Base

# ---------------------------------------------------------------------------
# Test IDs (stable across tests so cross-references work)
# ---------------------------------------------------------------------------

DRIVER_ID = uuid.UUID("aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa")
OTHER_DRIVER_ID = uuid.UUID("bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb")

# Booking well in the past so the no-show grace period has elapsed
PAST_DATE = "01/06/2025"


# ---------------------------------------------------------------------------
# Async engine + session (in-memory SQLite)
# ---------------------------------------------------------------------------

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def _test_engine():
    """A fresh in-memory database for each test."""
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)

    # Let SQLAlchemy own BEGIN so SAVEPOINTs nest inside the test transaction
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_conn, _):
        dbapi_conn.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(_test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session whose transaction is rolled back after the test."""
    session_factory = async_sessionmaker(
        bind=_test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        await session.begin()
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# FastAPI test application
# ---------------------------------------------------------------------------

def _create_test_app(db_session_override: AsyncSession):
    """Build a FastAPI app with all routes registered and the DB dependency
    overridden to use the test session."""
    from fastapi import FastAPI

    from ryde.api.deps import get_db
    from ryde.api.routes.jobs import router as jobs_router
    from ryde.api.routes.operators import router as operators_router
    from ryde.api.routes.profit import router as profit_router
    from ryde.api.routes.stats import router as stats_router

    app = FastAPI(title="Ryde Test")

    async def _override_get_db():
        yield db_session_override

    app.dependency_overrides[get_db] = _override_get_db

    app.include_router(jobs_router, prefix="/api/v1")
    app.include_router(operators_router, prefix="/api/v1")
    app.include_router(profit_router, prefix="/api/v1")
    app.include_router(stats_router, prefix="/api/v1")

    return app


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient connected to the test app via ASGI transport."""
    app = _create_test_app(db_session)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def driver_params(user_id: uuid.UUID = DRIVER_ID, **extra: Any) -> dict[str, Any]:
    """Query parameters identifying the driver (plus any cost overrides)."""
    return {"user_id": str(user_id), **extra}


async def create_job_via_api(
    client: AsyncClient,
    *,
    user_id: uuid.UUID = DRIVER_ID,
    **overrides: Any,
) -> Response:
    """POST to /api/v1/jobs with a 6.9 mile, 24 minute £60 trip."""
    payload: dict[str, Any] = {
        "pickup": "Heathrow Terminal 5",
        "dropoff": "Paddington Station",
        "customer_name": "Sam Taylor",
        "distance": "6.9 mi",
        "duration": "24 mins",
        "booking_date": PAST_DATE,
        "booking_time": "09:00",
        "fare": "60",
        "operator_fee": "10",
    }
    payload.update(overrides)
    return await client.post("/api/v1/jobs", params=driver_params(user_id), json=payload)


async def create_operator_via_api(
    client: AsyncClient,
    *,
    user_id: uuid.UUID = DRIVER_ID,
    name: str = "City Cars",
    charges_commission: bool = True,
    commission_rate: str = "15",
    payment_cycle: str | None = "Weekly",
) -> Response:
    payload = {
        "name": name,
        "charges_commission": charges_commission,
        "commission_rate": commission_rate,
        "payment_cycle": payment_cycle,
    }
    return await client.post("/api/v1/operators", params=driver_params(user_id), json=payload)
