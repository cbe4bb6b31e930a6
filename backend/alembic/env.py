"""Alembic migration environment configuration.

This module configures Alembic to work with async SQLAlchemy
and loads database URL from application settings.
"""

import asyncio
import os
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

# All models must be imported for Alembic autogenerate to detect them
from boardflow.models import (  # noqa: F401
    Automation,
    AutomationExecution,
    AutomationVersion,
    Base,
    RunLog,
)

# This is the Alembic Config object
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    """Get database URL from application settings.

    Returns the async database URL for migrations.
    """
    from boardflow.core.config import settings

    if settings.DATABASE_URL is None:
        raise ValueError(
            "DATABASE_URL is not set. Please configure it in your .env file."
        )

    url = str(settings.DATABASE_URL)
    # Ensure async driver
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


def check_production_safety() -> None:
    """Prevent accidental production migrations.

    Raises:
        RuntimeError: If running in production without explicit confirmation.

    Environment Variables:
        ENVIRONMENT: Current environment (e.g., "production", "development")
        CONFIRM_PRODUCTION_MIGRATION: Must be "true" to allow production migrations
    """
    env = os.getenv("ENVIRONMENT", "").lower()

    if env == "production":
        confirm = os.getenv("CONFIRM_PRODUCTION_MIGRATION", "").lower()
        if confirm != "true":
            raise RuntimeError(
                "Production migration requires CONFIRM_PRODUCTION_MIGRATION=true. "
                "To proceed, set the environment variable and try again."
            )


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    Configures the context with just a URL, so no DBAPI is needed.
    Calls to context.execute() emit the given string to the script output.
    """
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    """Run migrations with the given connection."""
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations in 'online' mode with an async engine."""
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = get_url()

    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode after the production safety check."""
    check_production_safety()
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
