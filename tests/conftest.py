"""Shared test fixtures for changefeed."""

from __future__ import annotations

import pytest

from changefeed.config import ConfigManager


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):  # type: ignore[no-untyped-def]
    """Fresh ConfigManager per test, with no config file picked up from the environment."""
    monkeypatch.delenv("CHANGEFEED_CONFIG", raising=False)
    ConfigManager._reset_for_tests()
    yield
    ConfigManager._reset_for_tests()
