"""Shared wiring for CLI commands: config, logging, engine and dispatcher."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from changefeed.config import ChangefeedConfig, ConfigManager
from changefeed.config.models import LoggingConfig
from changefeed.db import create_engine, create_session_factory
from changefeed.outbox.dispatcher import BatchDispatcher, PostgresBatchDispatcher
from changefeed.outbox.repositories import EventLogRepository, EventLogStore


def load_config(config_path: str | None = None) -> ChangefeedConfig:
    """Load configuration and apply its logging section, now and on every reload."""
    manager = ConfigManager.load(config_path=config_path or None)
    manager.on_change(_reconfigure_logging)
    config = manager.get()
    configure_logging(config.logging)
    return config


def _reconfigure_logging(old: ChangefeedConfig, new: ChangefeedConfig) -> None:
    if old.logging != new.logging:
        configure_logging(new.logging)


def configure_logging(config: LoggingConfig) -> None:
    logging.basicConfig(level=config.level, format=config.format, force=True)


@asynccontextmanager
async def open_dispatcher(config: ChangefeedConfig) -> AsyncIterator[BatchDispatcher]:
    engine = create_engine(
        config.database.url or None,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
        pool_timeout=config.database.pool_timeout,
        echo=config.database.echo,
    )
    try:
        yield PostgresBatchDispatcher(create_session_factory(engine))
    finally:
        await engine.dispose()


@asynccontextmanager
async def open_event_log(config: ChangefeedConfig) -> AsyncIterator[EventLogStore]:
    engine = create_engine(config.database.url or None, echo=config.database.echo)
    try:
        async with create_session_factory(engine)() as session:
            yield EventLogRepository(session)
    finally:
        await engine.dispose()
