import json
import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from datetime import datetime, date
from typing import AsyncGenerator, AsyncIterator, Optional

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from commerce.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


# Custom JSON encoder that handles Decimal, datetime, etc.
class CustomJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and datetime values."""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        return super().default(obj)


def custom_json_dumps(obj):
    """JSON serializer used for JSON columns."""
    return json.dumps(obj, cls=CustomJSONEncoder)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def normalize_database_url(url: str) -> str:
    """Select the async driver for PostgreSQL URLs."""
    if url.startswith("postgresql+asyncpg://"):
        return url.replace("postgresql+asyncpg://", "postgresql+psycopg://")
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://")
    return url


class Database:
    """
    Owns the engine and session factory for the process.

    Created once in the application lifespan (or by a job runner / test),
    stored on ``app.state.database`` and disposed at shutdown. Request
    handlers receive sessions through :func:`get_db`.
    """

    def __init__(self, url: str, config: Optional[Settings] = None):
        config = config or default_settings
        self.url = normalize_database_url(url)
        self.is_sqlite = self.url.startswith("sqlite")

        if self.is_sqlite:
            self.engine: AsyncEngine = create_async_engine(
                self.url,
                echo=config.DEBUG,
                json_serializer=custom_json_dumps,
                connect_args={
                    "check_same_thread": False,
                    "timeout": config.SQLITE_BUSY_TIMEOUT,
                },
            )
            _serialize_sqlite_writers(self.engine)
        else:
            self.engine = create_async_engine(
                self.url,
                echo=config.DEBUG,
                json_serializer=custom_json_dumps,
                pool_pre_ping=True,  # Check connection health before use
                pool_size=config.DB_POOL_SIZE,
                max_overflow=config.DB_MAX_OVERFLOW,
                pool_timeout=config.DB_POOL_TIMEOUT,
                pool_recycle=config.DB_POOL_RECYCLE,
                connect_args={
                    "connect_timeout": 30,  # Connection timeout in seconds
                },
            )

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Context manager for a session outside a request (jobs, scripts, tests)."""
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Create tables for all registered models (local development and tests)."""
        from commerce import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Database ready with {len(Base.metadata.tables)} tables")

    async def dispose(self) -> None:
        await self.engine.dispose()


def _serialize_sqlite_writers(engine: AsyncEngine) -> None:
    """
    Make every SQLite transaction take the write lock up front.

    pysqlite's deferred BEGIN lets two transactions read the same stock row
    and then deadlock on upgrade; BEGIN IMMEDIATE queues them instead.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get a database session for the current request."""
    database: Database = request.app.state.database
    async with database.session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
