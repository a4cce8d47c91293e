"""Integration test defaults: one disposable PostgreSQL container per module."""

from __future__ import annotations

import os

import pytest
from docker.errors import DockerException
from testcontainers.postgres import PostgresContainer

os.environ.setdefault("TESTCONTAINERS_RYUK_DISABLED", "true")


def plain_url(url: str) -> str:
    """Strip the psycopg2 driver suffix testcontainers puts on its URLs."""
    value = url.strip()
    if value.startswith("postgresql+psycopg2://"):
        return "postgresql://" + value[len("postgresql+psycopg2://") :]
    return value


@pytest.fixture(scope="module")
def pg_container() -> PostgresContainer:
    try:
        with PostgresContainer("postgres:16-alpine") as postgres:
            yield postgres
    except DockerException as exc:
        pytest.skip(f"Docker unavailable for integration test: {exc}")


@pytest.fixture(scope="module")
def pg_url(pg_container: PostgresContainer) -> str:
    return plain_url(pg_container.get_connection_url())
