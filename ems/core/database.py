# ems/core/database.py
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import HTTPException, Request
from sqlalchemy import event, inspect
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ems.core.config import Settings, settings as default_settings
from ems.core.exceptions import EMSError, StoreError
from ems.models.model import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_transactions(engine: AsyncEngine) -> None:
    """Turn on foreign keys and serialise SQLite transactions.

    aiosqlite's implicit BEGIN is disabled and every transaction opens with
    BEGIN IMMEDIATE, so a check-then-insert holds the write lock throughout.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Engine plus session factory for one process.

    Created once at startup and handed to whoever needs the store; nothing in
    the core reaches for a module-level engine.
    """

    def __init__(self, url: str, echo: bool = False, pool_size: int = 20, max_overflow: int = 10):
        self.url = url
        engine_kwargs = {"echo": echo, "pool_pre_ping": True}

        backend = make_url(url).get_backend_name()
        if backend != "sqlite":
            engine_kwargs.update(pool_size=pool_size, max_overflow=max_overflow)

        self.engine = create_async_engine(url, **engine_kwargs)
        if backend == "sqlite":
            _enable_sqlite_transactions(self.engine)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Database":
        settings = settings or default_settings
        return cls(
            settings.database_url,
            echo=settings.SQL_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """One unit of work: commit on success, roll back on any failure."""
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            if isinstance(e, (EMSError, HTTPException)) and not isinstance(e, StoreError):
                logger.warning(f"DB session rolled back: {str(e)}")
            else:
                logger.error(f"DB session error: {str(e)}")
            raise
        finally:
            await session.close()

    async def init_db(self) -> None:
        try:
            async with self.engine.begin() as conn:
                existing_tables = await conn.run_sync(
                    lambda sync_conn: inspect(sync_conn).get_table_names()
                )

                missing = set(Base.metadata.tables) - set(existing_tables)
                if missing:
                    await conn.run_sync(Base.metadata.create_all)
                    logger.info(f"Tables created: {', '.join(sorted(missing))}")
                else:
                    logger.info("Tables already exist")
        except Exception as e:
            logger.error(f"Database initialization error: {str(e)}")
            raise

        logger.info("Database ready")

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Database connections closed")


def get_database(request: Request) -> Database:
    return request.app.state.db


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    async with get_database(request).session() as session:
        yield session


def get_sync_database_url(url: str) -> str:
    """Synchronous driver URL for Alembic."""
    return (
        url.replace("+aiomysql", "+pymysql")
        .replace("+asyncpg", "+psycopg2")
        .replace("+aiosqlite", "")
    )
