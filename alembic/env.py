"""Alembic environment configuration for async SQLAlchemy.

The application reads its database URL from ``JOBRELAY_DATABASE_URL``.
Alembic defaults to the URL in alembic.ini, so the env var overrides it here
to keep migrations and the running service on the same database file.
"""

import asyncio
import os
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context
from jobrelay.database import Base, normalize_async_url
from jobrelay.models import orm  # noqa: F401  (populates Base.metadata)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _maybe_override_alembic_url_from_env() -> None:
    raw = os.environ.get("JOBRELAY_DATABASE_URL") or os.environ.get("DATABASE_URL")
    if raw:
        config.set_main_option("sqlalchemy.url", normalize_async_url(raw))


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL without a connection."""
    _maybe_override_alembic_url_from_env()
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations in 'online' mode with an async engine."""
    _maybe_override_alembic_url_from_env()
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
