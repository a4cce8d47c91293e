"""Transaction behaviour of changefeed.db.get_session."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from changefeed.db import session as db_session


class _FakeTransaction:
    def __init__(self, session: _FakeSession) -> None:
        self._session = session

    async def __aenter__(self) -> _FakeTransaction:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        if exc_type is None:
            self._session.commit_count += 1
        else:
            self._session.rollback_count += 1
        return False


class _FakeSession:
    def __init__(self) -> None:
        self.commit_count = 0
        self.rollback_count = 0
        self.closed = False

    def begin(self) -> _FakeTransaction:
        return _FakeTransaction(self)

    async def __aenter__(self) -> _FakeSession:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        self.closed = True
        return False


def _patch_factory(monkeypatch: pytest.MonkeyPatch, fake: _FakeSession) -> list[Any]:
    engines: list[Any] = []

    def _factory(engine: Any) -> Any:
        engines.append(engine)
        return lambda: fake

    monkeypatch.setattr(db_session, "create_session_factory", _factory)
    monkeypatch.setattr(db_session, "get_engine", lambda: "cached-engine")
    return engines


@settings(max_examples=20, deadline=None)
@given(raise_error=st.booleans())
def test_get_session_commits_on_success_and_rolls_back_on_error(raise_error: bool) -> None:
    fake = _FakeSession()
    with pytest.MonkeyPatch.context() as monkeypatch:
        _patch_factory(monkeypatch, fake)

        async def _run() -> None:
            async with db_session.get_session() as session:
                assert session is fake
                if raise_error:
                    raise RuntimeError("append failed")

        if raise_error:
            with pytest.raises(RuntimeError):
                asyncio.run(_run())
        else:
            asyncio.run(_run())

    assert (fake.commit_count, fake.rollback_count) == ((0, 1) if raise_error else (1, 0))
    assert fake.closed


def test_get_session_uses_explicit_engine(monkeypatch: pytest.MonkeyPatch) -> None:
    engines = _patch_factory(monkeypatch, _FakeSession())

    async def _run() -> None:
        async with db_session.get_session("explicit-engine"):  # type: ignore[arg-type]
            pass
        async with db_session.get_session():
            pass

    asyncio.run(_run())
    assert engines == ["explicit-engine", "cached-engine"]
