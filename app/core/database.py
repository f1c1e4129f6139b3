"""Async SQLAlchemy 2.0 database setup.

A single :class:`Database` handle (engine + session factory) is created at
process start and passed to every component that touches the store.
"""

from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""

    pass


def _enable_sqlite_wal(engine: AsyncEngine) -> None:
    """Install connect hooks for SQLite: WAL journal, FKs, SAVEPOINT support.

    The driver's implicit BEGIN is disabled and emitted from the ``begin``
    event instead, which is what makes ``begin_nested()`` work on SQLite.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


class Database:
    """Store handle owning the async engine and session factory."""

    def __init__(self, url: str, *, echo: bool = False) -> None:
        """Create the engine for ``url``.

        Args:
            url: SQLAlchemy async database URL.
            echo: Log SQL statements.
        """
        self.url = url
        parsed = make_url(url)
        self.is_sqlite = parsed.get_backend_name() == "sqlite"

        if self.is_sqlite and parsed.database and parsed.database != ":memory:":
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

        self.engine: AsyncEngine = create_async_engine(url, echo=echo)
        if self.is_sqlite:
            _enable_sqlite_wal(self.engine)

        self.session_maker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls) -> "Database":
        """Build the handle from application settings."""
        settings = get_settings()
        return cls(settings.database_url, echo=settings.debug)

    async def create_all(self) -> None:
        """Create every table registered on ``Base.metadata``."""
        # Registers the ORM models on Base.metadata
        import app.features.data_platform.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database.schema_ready", backend=self.engine.dialect.name)

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()

    def session(self) -> AsyncSession:
        """Open a new session (use as an async context manager)."""
        return self.session_maker()


def get_database(request: Request) -> Database:
    """Dependency returning the application's store handle."""
    database: Database = request.app.state.database
    return database


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions.

    Yields:
        AsyncSession: Database session that auto-commits on success.
    """
    database = get_database(request)
    async with database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
