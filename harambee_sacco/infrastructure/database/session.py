"""Async database engine, session factory and concurrent read helper"""

import asyncio
from typing import Any, AsyncGenerator, List, Sequence

from sqlalchemy import Row
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.sql import Executable

from harambee_sacco.config import settings

engine = create_async_engine(
    settings.database_url,
    pool_pre_ping=True,  # Verify connections before using
    pool_recycle=3600,
)

SessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency injection for database sessions"""
    async with SessionLocal() as db:
        yield db


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Dependency injection for read paths that open one session per query"""
    return SessionLocal


async def _fetch_rows(session_factory: async_sessionmaker[AsyncSession], statement: Executable) -> Sequence[Row[Any]]:
    async with session_factory() as session:
        result = await session.execute(statement)
        return result.all()


async def gather_queries(
    session_factory: async_sessionmaker[AsyncSession],
    *statements: Executable,
) -> List[Sequence[Row[Any]]]:
    """
    Run independent read statements concurrently.

    A session cannot run two statements at once, so each statement gets its own
    session (and pooled connection). Results come back in argument order.
    """
    return list(await asyncio.gather(*(_fetch_rows(session_factory, stmt) for stmt in statements)))
