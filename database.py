from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config import get_settings


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    url = database_url or get_settings().database_url
    eng = create_async_engine(url)
    if url.startswith("sqlite"):
        event.listen(eng.sync_engine, "connect", _enable_sqlite_pragmas)
    return eng


def _enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def make_sessionmaker(eng: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=eng, autoflush=False, expire_on_commit=False)


def sync_database_url(database_url: str) -> str:
    """URL for synchronous tooling (Alembic) pointing at the same database."""
    return (
        database_url.replace("+aiosqlite", "")
        .replace("+asyncpg", "+psycopg")
        .replace("+aiomysql", "+pymysql")
    )


class Base(DeclarativeBase):
    pass


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    session: AsyncSession = factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
