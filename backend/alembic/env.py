"""
Alembic migration environment for DeepScan.

Runs migrations through the async driver and registers the
``deep_scan_requests`` and ``profiles`` tables for ``--autogenerate``::

    alembic revision --autogenerate -m "describe change"
    alembic upgrade head
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection

from deepscan.config import get_settings
from deepscan.core.database import Base, create_task_engine
from deepscan.models import DeepScanRequest, Profile  # noqa: F401 - registers the tables

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _configure(**kwargs: object) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit the migration SQL for ``DATABASE_URL`` without connecting."""
    _configure(
        url=get_settings().DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Apply migrations over an un-pooled async connection."""
    connectable = create_task_engine()
    async with connectable.connect() as connection:
        await connection.run_sync(_run_sync)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
