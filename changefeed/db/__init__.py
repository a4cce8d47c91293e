"""Changefeed database layer: Base, engine, session, exceptions."""

from changefeed.db.base import Base
from changefeed.db.engine import create_engine, dispose_engine, get_engine
from changefeed.db.exceptions import (
    ConfigurationError,
    DatabaseError,
)
from changefeed.db.session import create_session_factory, get_session

__all__ = [
    "Base",
    "create_engine",
    "get_engine",
    "dispose_engine",
    "create_session_factory",
    "get_session",
    "DatabaseError",
    "ConfigurationError",
]
