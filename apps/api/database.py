"""
Async SQLAlchemy engine, session factory and declarative base.
"""

from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from config import settings


def _connect_args(database_url: str) -> dict:
    timeout = max(float(settings.STORE_TIMEOUT_SECONDS), 1.0)
    if database_url.startswith("sqlite"):
        return {"timeout": timeout}
    if "+asyncpg" in database_url:
        return {"timeout": timeout, "command_timeout": timeout}
    return {}


def configure_sqlite_locking(target: AsyncEngine) -> AsyncEngine:
    """Open every SQLite transaction with BEGIN IMMEDIATE.

    The driver otherwise defers BEGIN until the first DML statement, so two
    transactions can both read before either takes the write lock.
    """
    if target.dialect.name != "sqlite":
        return target

    @event.listens_for(target.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return target


engine = configure_sqlite_locking(
    create_async_engine(
        settings.DATABASE_URL,
        echo=settings.SQL_ECHO,
        pool_pre_ping=True,
        connect_args=_connect_args(settings.DATABASE_URL),
    )
)

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped database session."""
    async with async_session_maker() as session:
        yield session
