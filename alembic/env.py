"""Alembic environment for the blog panel schema.

The database URL comes from ``sqlalchemy.url`` when the Config object
carries one and from ``settings.DATABASE_URL`` otherwise.  Migrations
always run through an async engine, so the app's asyncpg/aiosqlite
drivers apply here too.
"""
import asyncio
import logging

from alembic import context
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from blog_panel.config import settings
from blog_panel.database import Base
from blog_panel.logging_config import setup_logging

import blog_panel.models  # noqa: F401  (registers every table on Base.metadata)

config = context.config
target_metadata = Base.metadata

if not logging.getLogger().handlers:
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
logger = logging.getLogger("alembic.env")


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or settings.DATABASE_URL


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        # SQLite needs ALTER emulation; harmless elsewhere.
        render_as_batch=_database_url().startswith("sqlite"),
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout instead of executing it."""
    _configure(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(_database_url())
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync)
    finally:
        await engine.dispose()
    logger.info("Migrations applied to %s", engine.url.render_as_string(hide_password=True))


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
