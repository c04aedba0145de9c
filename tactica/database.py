"""Async engine and the per-request session dependency.

Sessions keep attributes loaded after commit, so a route can serialize the
objects it just wrote.  A request that fails leaves nothing half-written:
get_db rolls back before the error propagates.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tactica.config import settings
from tactica.models import Base  # noqa: F401 - registers every table on Base.metadata


def engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_async_engine(settings.database_url, echo=False, **engine_options(settings.database_url))
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
