"""Tests for the control plane composition root."""

from unittest.mock import AsyncMock

import pytest

from newsguard.collectors import SourceAggregator
from newsguard.config import Settings
from newsguard.context import ControlPlane
from newsguard.degradation import InMemoryCacheBackend
from newsguard.models import CollectionResult, RunStatus
from newsguard.storage import SqlCacheBackend, SqlRunStore


@pytest.fixture
def config(tmp_path):
    return Settings(
        breaker_failure_threshold=2,
        breaker_reset_timeout=10.0,
        fallback_cache_ttl=60.0,
        scheduler_history_limit=5,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'plane.db'}",
    )


class TestControlPlane:
    """Test wiring from settings."""

    def test_from_settings_without_collection(self, config):
        plane = ControlPlane.from_settings(config)

        assert plane.scheduler is None
        assert plane.trigger is None
        assert plane.breakers.threshold == 2
        assert plane.cache.default_ttl == 60.0
        assert isinstance(plane.cache.backend, InMemoryCacheBackend)
        assert plane.degradation.breakers is plane.breakers

    def test_instances_are_independent(self, config):
        first = ControlPlane.from_settings(config)
        second = ControlPlane.from_settings(config)

        assert first.breakers is not second.breakers
        assert first.cache is not second.cache
        assert first.breakers.get("news-api") is not second.breakers.get("news-api")

    def test_sources_are_aggregated(self, config):
        plane = ControlPlane.from_settings(config, sources=[])

        assert isinstance(plane.scheduler.collect, SourceAggregator)
        assert plane.scheduler.collect.breakers is plane.breakers

    def test_collect_and_sources_are_exclusive(self, config):
        with pytest.raises(ValueError):
            ControlPlane.from_settings(config, collect=AsyncMock(), sources=[])

    def test_schedule_requires_collection(self, config):
        with pytest.raises(ValueError):
            ControlPlane.from_settings(config, schedule=True)

    @pytest.mark.asyncio
    async def test_scheduled_plane_lifecycle(self, config):
        collect = AsyncMock(return_value=CollectionResult(sources_processed=1))
        plane = ControlPlane.from_settings(config, collect=collect, schedule=True)

        await plane.start()
        try:
            assert plane.trigger.scheduler.running
            run = await plane.scheduler.execute_collection()
            assert run.status is RunStatus.COMPLETED
        finally:
            await plane.close()

        assert not plane.trigger.scheduler.running

    @pytest.mark.asyncio
    async def test_persistent_plane(self, config):
        collect = AsyncMock(return_value=CollectionResult(sources_processed=1))
        plane = ControlPlane.from_settings(config, collect=collect, persistent=True)
        assert isinstance(plane.cache.backend, SqlCacheBackend)
        assert isinstance(plane.scheduler.run_store, SqlRunStore)

        await plane.start()
        try:
            run = await plane.scheduler.execute_collection()
            [stored] = await plane.scheduler.run_store.get_recent()
            assert stored.id == run.id

            await plane.cache.put("feed-u1", {"articles": []})
            assert await plane.cache.get("feed-u1") == {"articles": []}
        finally:
            await plane.close()

    @pytest.mark.asyncio
    async def test_health(self, config):
        plane = ControlPlane.from_settings(config, collect=AsyncMock())

        async def fail():
            raise ConnectionError("down")

        for _ in range(2):
            with pytest.raises(ConnectionError):
                await plane.breakers.execute("news-api", fail)

        health = plane.health()

        assert health["degraded"] is True
        assert health["breakers"]["news-api"]["state"] == "open"
        assert health["collection_running"] is False
        assert health["current_run"] is None
