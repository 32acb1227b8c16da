"""Durable backends for run history and fallback cache entries."""

from loguru import logger
from pydantic_core import to_jsonable_python

from ..models import CollectionRun, FallbackCacheEntry
from .database import DatabaseManager
from .repositories import CollectionRunRepository, FallbackCacheRepository


class SqlRunStore:
    """Persists finished collection runs through a DatabaseManager."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    async def save(self, run: CollectionRun) -> None:
        async with self.db_manager.get_session() as session:
            await CollectionRunRepository(session).save(run)
        logger.debug(f"Persisted collection run {run.id} ({run.status.value})")

    async def get_recent(self, limit: int = 10) -> list[CollectionRun]:
        async with self.db_manager.get_session() as session:
            return await CollectionRunRepository(session).get_recent(limit)


class SqlCacheBackend:
    """Fallback cache backend stored in the ``fallback_cache_entries`` table.

    Payloads are converted to JSON-compatible values before writing, so
    models read back as plain dicts.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    async def get(self, key: str) -> FallbackCacheEntry | None:
        async with self.db_manager.get_session() as session:
            return await FallbackCacheRepository(session).get(key)

    async def set(self, entry: FallbackCacheEntry) -> None:
        stored = entry.model_copy(update={"data": to_jsonable_python(entry.data)})
        async with self.db_manager.get_session() as session:
            await FallbackCacheRepository(session).upsert(stored)

    async def delete(self, key: str) -> bool:
        async with self.db_manager.get_session() as session:
            return await FallbackCacheRepository(session).delete(key)

    async def items(self) -> list[FallbackCacheEntry]:
        async with self.db_manager.get_session() as session:
            return await FallbackCacheRepository(session).list_all()

    async def clear(self) -> None:
        async with self.db_manager.get_session() as session:
            removed = await FallbackCacheRepository(session).clear()
        logger.info(f"Cleared {removed} fallback cache entries")
