"""Alembic environment for the change event tables.

Migrations run over psycopg2 against the same database the application
reaches through asyncpg, read from CHANGEFEED_DATABASE_URL.
"""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Connection, make_url

from changefeed.db import Base

# Registers event_logs and event_log_executions on Base.metadata.
import changefeed.outbox.models  # noqa: F401,E402

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata

_POSTGRES_DRIVERS = {"postgres", "postgresql", "postgresql+asyncpg", "postgresql+psycopg2"}


def migration_url() -> str:
    raw = os.environ.get("CHANGEFEED_DATABASE_URL") or config.get_main_option("sqlalchemy.url") or ""
    if not raw.strip():
        raise RuntimeError("CHANGEFEED_DATABASE_URL is not set; migrations need a PostgreSQL URL.")
    url = make_url(raw.strip())
    if url.drivername not in _POSTGRES_DRIVERS:
        raise RuntimeError(f"Migrations support PostgreSQL only, got driver {url.drivername!r}.")
    return url.set(drivername="postgresql+psycopg2").render_as_string(hide_password=False)


def _configure_and_run(**options) -> None:
    context.configure(target_metadata=target_metadata, **options)
    with context.begin_transaction():
        context.run_migrations()


def run_offline() -> None:
    """Emit SQL to stdout without connecting."""
    _configure_and_run(url=migration_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})


def run_online() -> None:
    """Apply migrations over a live connection, reusing one passed in by the caller."""
    supplied = config.attributes.get("connection")
    if isinstance(supplied, Connection):
        _configure_and_run(connection=supplied)
        return
    engine = create_engine(migration_url(), poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _configure_and_run(connection=connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
