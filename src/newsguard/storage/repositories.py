"""Repository pattern implementations for database operations."""

from datetime import UTC

from sqlalchemy import delete, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    CollectionRun,
    FallbackCacheEntry,
    ResourceSnapshot,
    RunStatus,
    SourceError,
)
from .models import CollectionRunDB, FallbackCacheEntryDB


class CollectionRunRepository:
    """Repository for collection run records."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: AsyncSession instance
        """
        self.session = session

    async def save(self, run: CollectionRun) -> CollectionRunDB:
        """Insert or update a run record.

        Args:
            run: Collection run to persist

        Returns:
            CollectionRunDB: Persisted record
        """
        db_run = await self.session.get(CollectionRunDB, run.id)
        if db_run is None:
            db_run = CollectionRunDB(id=run.id)
            self.session.add(db_run)

        db_run.status = run.status.value
        db_run.started_at = run.start_time
        db_run.completed_at = run.end_time
        db_run.items_collected = run.items_collected
        db_run.sources_processed = run.sources_processed
        db_run.sources_with_errors = run.sources_with_errors
        db_run.duplicates_removed = run.duplicates_removed
        db_run.duration_ms = run.duration_ms
        db_run.errors = [error.model_dump() for error in run.errors]
        db_run.resource_usage = (
            run.resource_usage.model_dump() if run.resource_usage else None
        )
        await self.session.flush()
        return db_run

    async def get(self, run_id: str) -> CollectionRun | None:
        db_run = await self.session.get(CollectionRunDB, run_id)
        return self._to_model(db_run) if db_run else None

    async def get_recent(self, limit: int = 10) -> list[CollectionRun]:
        """Get most recent runs, newest first.

        Args:
            limit: Maximum number of runs to return
        """
        result = await self.session.execute(
            select(CollectionRunDB)
            .order_by(desc(CollectionRunDB.started_at))
            .limit(limit)
        )
        return [self._to_model(row) for row in result.scalars().all()]

    async def count_by_status(self) -> dict[str, int]:
        result = await self.session.execute(
            select(CollectionRunDB.status, func.count(CollectionRunDB.id)).group_by(
                CollectionRunDB.status
            )
        )
        return {status: count for status, count in result.all()}

    @staticmethod
    def _to_model(db_run: CollectionRunDB) -> CollectionRun:
        # SQLite returns naive datetimes
        def aware(value):
            if value is not None and value.tzinfo is None:
                return value.replace(tzinfo=UTC)
            return value

        return CollectionRun(
            id=db_run.id,
            status=RunStatus(db_run.status),
            start_time=aware(db_run.started_at),
            end_time=aware(db_run.completed_at),
            items_collected=db_run.items_collected,
            sources_processed=db_run.sources_processed,
            sources_with_errors=db_run.sources_with_errors,
            duplicates_removed=db_run.duplicates_removed,
            duration_ms=db_run.duration_ms,
            errors=[SourceError(**error) for error in db_run.errors or []],
            resource_usage=(
                ResourceSnapshot(**db_run.resource_usage)
                if db_run.resource_usage
                else None
            ),
        )


class FallbackCacheRepository:
    """Repository for fallback cache entries."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str) -> FallbackCacheEntry | None:
        row = await self.session.get(FallbackCacheEntryDB, key)
        if row is None:
            return None
        return FallbackCacheEntry(
            key=row.key, data=row.data, timestamp=row.timestamp, ttl=row.ttl
        )

    async def upsert(self, entry: FallbackCacheEntry) -> None:
        """Write an entry; the last writer wins."""
        row = await self.session.get(FallbackCacheEntryDB, entry.key)
        if row is None:
            row = FallbackCacheEntryDB(key=entry.key)
            self.session.add(row)
        row.data = entry.data
        row.timestamp = entry.timestamp
        row.ttl = entry.ttl
        await self.session.flush()

    async def delete(self, key: str) -> bool:
        result = await self.session.execute(
            delete(FallbackCacheEntryDB).where(FallbackCacheEntryDB.key == key)
        )
        return result.rowcount > 0

    async def list_all(self) -> list[FallbackCacheEntry]:
        result = await self.session.execute(select(FallbackCacheEntryDB))
        return [
            FallbackCacheEntry(key=row.key, data=row.data, timestamp=row.timestamp, ttl=row.ttl)
            for row in result.scalars().all()
        ]

    async def clear(self) -> int:
        result = await self.session.execute(delete(FallbackCacheEntryDB))
        return result.rowcount
