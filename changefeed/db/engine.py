"""Async engine creation and per-URL caching."""

import logging
import os

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from changefeed.db.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DATABASE_URL_ENV = "CHANGEFEED_DATABASE_URL"
ASYNC_SCHEME = "postgresql+asyncpg://"
_SYNC_SCHEMES = ("postgresql://", "postgres://")

_engines: dict[str, AsyncEngine] = {}


def normalize_url(url: str) -> str:
    """Rewrite a plain PostgreSQL URL to the asyncpg driver; reject anything else."""
    candidate = url.strip()
    if candidate.startswith(ASYNC_SCHEME):
        return candidate
    for scheme in _SYNC_SCHEMES:
        if candidate.startswith(scheme):
            return ASYNC_SCHEME + candidate[len(scheme) :]
    raise ConfigurationError(
        "Only PostgreSQL is supported; use a postgresql:// or postgresql+asyncpg:// URL."
    )


def _resolve_url(database_url: str | None) -> str:
    raw = database_url or os.environ.get(DATABASE_URL_ENV, "")
    if not raw.strip():
        raise ConfigurationError(
            f"No database URL configured: pass one explicitly or set {DATABASE_URL_ENV}."
        )
    return normalize_url(raw)


def create_engine(
    database_url: str | None = None,
    *,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_timeout: float = 30.0,
    pool_recycle: int = 1800,
    pool_pre_ping: bool = True,
    echo: bool = False,
) -> AsyncEngine:
    """Build a new engine for ``database_url`` (or ``$CHANGEFEED_DATABASE_URL``).

    The pool keyword arguments map onto ``DatabaseConfig``; callers that want
    a shared engine use ``get_engine`` instead.

    Raises:
        ConfigurationError: no URL, or a URL for another database.
    """
    return create_async_engine(
        _resolve_url(database_url),
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=pool_pre_ping,
        echo=echo,
    )


def get_engine(database_url: str | None = None) -> AsyncEngine:
    """Return the process-wide engine for a URL, creating it on first use."""
    url = _resolve_url(database_url)
    engine = _engines.get(url)
    if engine is None:
        engine = _engines[url] = create_engine(url)
    return engine


async def dispose_engine(database_url: str | None = None) -> None:
    """Close pooled connections for one cached engine, or for all when no URL is given."""
    urls = list(_engines) if database_url is None else [_resolve_url(database_url)]
    for url in urls:
        engine = _engines.pop(url, None)
        if engine is not None:
            await engine.dispose()
            logger.debug("disposed engine for %s", engine.url.render_as_string(hide_password=True))
