"""
Async SQLAlchemy engines, session factories and the declarative base.

Provides:
- ``Base`` -- declarative base of the ``deep_scan_requests`` and ``profiles`` tables.
- ``engine`` / ``async_session_factory`` -- pooled engine of the API process.
- ``create_task_engine`` -- an un-pooled engine for one Celery task's event loop.
- ``session_factory_for`` -- the session-maker configuration shared by both.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from deepscan.config import get_settings

# ── Constants ────────────────────────────────────────────────────────────────

_POOL_SIZE: int = 10
_MAX_OVERFLOW: int = 5
_POOL_TIMEOUT_SECONDS: int = 30
_POOL_RECYCLE_SECONDS: int = 1800  # 30 minutes


# ── Declarative Base ─────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models in the project."""


# ── Engines & Session Factories ──────────────────────────────────────────────

def session_factory_for(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Return a session-maker for *bind*.

    Objects stay loaded after ``commit()``: the coordinator keeps reading the
    request row between commits, and an expired attribute would trigger a
    lazy load outside the greenlet.
    """
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def _build_engine() -> AsyncEngine:
    settings = get_settings()
    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_size=_POOL_SIZE,
        max_overflow=_MAX_OVERFLOW,
        pool_timeout=_POOL_TIMEOUT_SECONDS,
        pool_recycle=_POOL_RECYCLE_SECONDS,
        pool_pre_ping=True,
    )


def create_task_engine() -> AsyncEngine:
    """Create an engine bound to the calling event loop.

    Celery runs every task in a fresh loop, and pooled asyncpg connections
    cannot cross loops, so task engines do not pool.  Dispose it when the
    task ends.
    """
    settings = get_settings()
    return create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG, poolclass=NullPool)


engine: AsyncEngine = _build_engine()

async_session_factory: async_sessionmaker[AsyncSession] = session_factory_for(engine)
