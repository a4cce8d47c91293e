"""Session factory and unit-of-work helper."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from changefeed.db.engine import get_engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded objects usable after commit and flush only on demand.

    The publisher flushes explicitly to get the event id, so autoflush stays off.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@asynccontextmanager
async def get_session(engine: AsyncEngine | None = None) -> AsyncIterator[AsyncSession]:
    """One transaction shared by an entity mutation and its event log row.

    Commits when the block exits normally and rolls back when it raises, so a
    failed event append takes the entity write down with it.
    """
    factory = create_session_factory(engine if engine is not None else get_engine())
    async with factory() as session, session.begin():
        yield session
