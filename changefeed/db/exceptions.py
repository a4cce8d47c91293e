"""Errors raised while setting up database access.

Messages must not echo connection passwords.
"""


class DatabaseError(Exception):
    """Root of the database error hierarchy."""


class ConfigurationError(DatabaseError):
    """The database URL is missing or does not point at PostgreSQL."""
