"""Async engine and session handling for the durable backends."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from loguru import logger
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import settings
from .models import Base


class DatabaseManager:
    """Owns one async engine; sessions commit on success and roll back on error.

    The engine is created lazily, so building a manager never touches the
    database. Each ControlPlane holds its own manager.
    """

    def __init__(self, database_url: str | None = None, echo: bool | None = None):
        """Initialize database manager.

        Args:
            database_url: SQLAlchemy async URL (defaults to settings)
            echo: Log SQL statements (defaults to settings)
        """
        self.database_url = database_url or settings.database_url
        self.echo = settings.database_echo if echo is None else echo
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    def _engine_options(self) -> dict:
        url = make_url(self.database_url)
        if url.get_backend_name() == "sqlite":
            # File databases need their directory; :memory: has no path
            if url.database and url.database != ":memory:":
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)
            return {"echo": self.echo}
        return {"echo": self.echo, "pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_async_engine(self.database_url, **self._engine_options())
            logger.info(f"Created database engine for {make_url(self.database_url).render_as_string()}")
        return self._engine

    @property
    def sessionmaker(self) -> async_sessionmaker[AsyncSession]:
        if self._sessionmaker is None:
            self._sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False)
        return self._sessionmaker

    async def init_db(self) -> None:
        """Create the run history and fallback cache tables if missing."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Database ready with tables: {', '.join(sorted(Base.metadata.tables))}")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a session for one unit of work.

        Example:
            async with db_manager.get_session() as session:
                await CollectionRunRepository(session).save(run)
        """
        async with self.sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Dispose the engine; a later access creates a fresh one."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("Database connections closed")

    async def health_check(self) -> bool:
        try:
            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False
        return True
