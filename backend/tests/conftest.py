"""
Shared pytest fixtures for the DeepScan test suite.

Provides an in-memory SQLite database (via aiosqlite), async session
management, a FastAPI test application with the DB dependency overridden,
and factory fixtures for deep-scan requests and customer profiles.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from deepscan.config import get_settings
from deepscan.core.database import Base, session_factory_for
from deepscan.models.profile import Profile
from deepscan.models.scan_request import PAYMENT_COMPLETED, DeepScanRequest, ScanStatus


# ---------------------------------------------------------------------------
# Database engine and session fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture()
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an async in-memory SQLite engine and provision all tables.

    ``StaticPool`` keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session-maker bound to the test database, configured like production."""
    return session_factory_for(test_engine)


@pytest_asyncio.fixture()
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession bound to the in-memory test database."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# FastAPI application with DB override
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture()
async def test_app(session_factory: async_sessionmaker[AsyncSession]):
    """Return a FastAPI application whose sessions use the test database."""
    from fastapi import FastAPI

    from deepscan.api.deps import get_db_session
    from deepscan.api.v1.router import router as v1_router

    async def _override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = FastAPI()
    app.include_router(v1_router, prefix="/api/v1")
    app.dependency_overrides[get_db_session] = _override_get_db_session

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Yield an httpx.AsyncClient wired to the test FastAPI app."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def service_headers() -> dict[str, str]:
    """Authorization header carrying the configured service-role key."""
    return {"Authorization": f"Bearer {get_settings().SERVICE_ROLE_KEY}"}


# ---------------------------------------------------------------------------
# ORM factory fixtures
# ---------------------------------------------------------------------------

async def _persist(session: AsyncSession, instance):
    session.add(instance)
    await session.commit()
    await session.refresh(instance)
    return instance


@pytest_asyncio.fixture()
async def paid_request(db_session: AsyncSession) -> DeepScanRequest:
    """A paid request waiting to be triggered."""
    return await _persist(db_session, DeepScanRequest(
        id=uuid.uuid4(),
        url="https://acme-corp.de",
        user_email="owner@acme-corp.de",
        payment_status=PAYMENT_COMPLETED,
        status=ScanStatus.PENDING_PAYMENT,
        created_at=datetime.now(timezone.utc),
    ))


@pytest_asyncio.fixture()
async def unpaid_request(db_session: AsyncSession) -> DeepScanRequest:
    """A request whose checkout has not completed."""
    return await _persist(db_session, DeepScanRequest(
        id=uuid.uuid4(),
        url="https://acme-corp.de",
        payment_status="pending",
        status=ScanStatus.PENDING_PAYMENT,
        created_at=datetime.now(timezone.utc),
    ))


@pytest_asyncio.fixture()
async def processing_request(db_session: AsyncSession) -> DeepScanRequest:
    """A paid request that has already been triggered."""
    return await _persist(db_session, DeepScanRequest(
        id=uuid.uuid4(),
        url="https://acme-corp.de",
        user_email="owner@acme-corp.de",
        payment_status=PAYMENT_COMPLETED,
        status=ScanStatus.PROCESSING,
        created_at=datetime.now(timezone.utc),
        started_at=datetime.now(timezone.utc),
    ))


@pytest_asyncio.fixture()
async def paid_profile(db_session: AsyncSession) -> Profile:
    return await _persist(db_session, Profile(
        email="pro@acme-corp.de",
        session_token="pro-session-token",
        subscription_plan="pro",
    ))


@pytest_asyncio.fixture()
async def free_profile(db_session: AsyncSession) -> Profile:
    return await _persist(db_session, Profile(
        email="free@acme-corp.de",
        session_token="free-session-token",
        subscription_plan="free",
    ))
