"""Declarative base for changefeed ORM models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for the outbox tables.

    Exposes metadata for Alembic. Models carry no tenant column: the event log
    is keyed by entity name and record id only.
    """
