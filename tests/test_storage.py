"""Tests for the storage module."""

from datetime import UTC, datetime, timedelta

import pytest

from newsguard.degradation import FallbackCache
from newsguard.models import (
    CollectionResult,
    CollectionRun,
    FallbackCacheEntry,
    ResourceSnapshot,
    RunStatus,
    SourceError,
)
from newsguard.storage import (
    CollectionRunRepository,
    DatabaseManager,
    FallbackCacheRepository,
    SqlCacheBackend,
    SqlRunStore,
)


@pytest.fixture
async def db_manager(tmp_path):
    """Create a test database manager backed by a temporary file."""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await manager.init_db()
    yield manager
    await manager.close()


@pytest.fixture
async def db_session(db_manager):
    """Get a test database session."""
    async with db_manager.get_session() as session:
        yield session


def finished_run(start_time=None, items=3):
    run = CollectionRun(start_time=start_time or datetime.now(UTC))
    run.complete(
        CollectionResult(
            items=[],
            errors=[SourceError(source="bbc", message="timeout")],
            sources_processed=4,
        ),
        items_collected=items,
        duplicates_removed=1,
        resource_usage=ResourceSnapshot(
            rss_bytes=1024, vms_bytes=2048, cpu_user_seconds=0.5, cpu_system_seconds=0.1
        ),
    )
    return run


class TestCollectionRunRepository:
    """Test run persistence."""

    @pytest.mark.asyncio
    async def test_save_and_get(self, db_session):
        repo = CollectionRunRepository(db_session)
        run = finished_run()

        await repo.save(run)
        loaded = await repo.get(run.id)

        assert loaded is not None
        assert loaded.status is RunStatus.COMPLETED
        assert loaded.items_collected == 3
        assert loaded.sources_processed == 4
        assert loaded.sources_with_errors == 1
        assert loaded.duplicates_removed == 1
        assert loaded.errors == [SourceError(source="bbc", message="timeout")]
        assert loaded.resource_usage.rss_bytes == 1024
        assert loaded.start_time.tzinfo is not None

    @pytest.mark.asyncio
    async def test_save_updates_existing_run(self, db_session):
        repo = CollectionRunRepository(db_session)
        run = CollectionRun()
        await repo.save(run)

        run.fail("network down")
        await repo.save(run)

        loaded = await repo.get(run.id)
        assert loaded.status is RunStatus.FAILED
        assert loaded.errors[-1].source == "scheduler"

    @pytest.mark.asyncio
    async def test_get_missing(self, db_session):
        assert await CollectionRunRepository(db_session).get("nope") is None

    @pytest.mark.asyncio
    async def test_get_recent_and_counts(self, db_session):
        repo = CollectionRunRepository(db_session)
        base = datetime.now(UTC)
        runs = [finished_run(base + timedelta(minutes=i)) for i in range(3)]
        failed = CollectionRun(start_time=base + timedelta(minutes=5))
        failed.fail("boom")
        for run in [*runs, failed]:
            await repo.save(run)

        recent = await repo.get_recent(limit=2)

        assert [r.id for r in recent] == [failed.id, runs[2].id]
        assert await repo.count_by_status() == {"completed": 3, "failed": 1}


class TestFallbackCacheRepository:
    """Test cache entry persistence."""

    @pytest.mark.asyncio
    async def test_upsert_get_delete(self, db_session):
        repo = FallbackCacheRepository(db_session)
        entry = FallbackCacheEntry(key="feed-u1", data={"a": 1}, timestamp=10.0, ttl=300.0)

        await repo.upsert(entry)
        await repo.upsert(entry.model_copy(update={"data": {"a": 2}}))

        loaded = await repo.get("feed-u1")
        assert loaded.data == {"a": 2}
        assert len(await repo.list_all()) == 1
        assert await repo.delete("feed-u1") is True
        assert await repo.delete("feed-u1") is False


class TestSqlBackends:
    """Test the durable backends used by the control plane."""

    @pytest.mark.asyncio
    async def test_run_store(self, db_manager):
        store = SqlRunStore(db_manager)
        run = finished_run()

        await store.save(run)

        [loaded] = await store.get_recent()
        assert loaded.id == run.id

    @pytest.mark.asyncio
    async def test_fallback_cache_over_sql(self, db_manager):
        clock_now = [1000.0]
        cache = FallbackCache(
            SqlCacheBackend(db_manager), default_ttl=60.0, clock=lambda: clock_now[0]
        )

        await cache.put("feed-u1", {"articles": ["x"]})
        assert await cache.get("feed-u1") == {"articles": ["x"]}

        clock_now[0] += 61.0
        assert await cache.get("feed-u1") is None
        assert await cache.backend.items() == []

    @pytest.mark.asyncio
    async def test_models_stored_as_json(self, db_manager):
        backend = SqlCacheBackend(db_manager)
        run = CollectionRun(id="collection-1")

        await backend.set(FallbackCacheEntry(key="k", data=run, timestamp=0.0, ttl=10.0))

        loaded = await backend.get("k")
        assert loaded.data["id"] == "collection-1"
        assert loaded.data["status"] == "running"

    @pytest.mark.asyncio
    async def test_clear(self, db_manager):
        backend = SqlCacheBackend(db_manager)
        for key in ("a", "b"):
            await backend.set(FallbackCacheEntry(key=key, data=key, timestamp=0.0, ttl=10.0))

        await backend.clear()

        assert await backend.items() == []

    @pytest.mark.asyncio
    async def test_health_check(self, db_manager):
        assert await db_manager.health_check() is True
