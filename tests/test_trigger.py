"""Tests for the cron collection trigger."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from newsguard.errors import AlreadyRunning
from newsguard.models import CollectionRun, RunStatus
from newsguard.scheduler import CollectionTrigger


@pytest.fixture
def collection_scheduler():
    """Create a stand-in collection scheduler."""
    scheduler = MagicMock()
    scheduler.execute_collection = AsyncMock(
        return_value=CollectionRun(status=RunStatus.COMPLETED)
    )
    scheduler.is_collection_running.return_value = False
    return scheduler


class TestCollectionTrigger:
    """Test trigger setup and tick handling."""

    def test_invalid_cron_expression(self, collection_scheduler):
        with pytest.raises(ValueError, match="Invalid cron expression"):
            CollectionTrigger(collection_scheduler, "not a cron")

    def test_job_registered(self, collection_scheduler):
        trigger = CollectionTrigger(collection_scheduler, "*/5 * * * *")

        job = trigger.scheduler.get_job("collect_news")
        assert job is not None
        assert job.max_instances == 1
        assert job.coalesce is True

    @pytest.mark.asyncio
    async def test_run_now_triggers_collection(self, collection_scheduler):
        trigger = CollectionTrigger(collection_scheduler, "*/5 * * * *")

        await trigger.run_now()

        collection_scheduler.execute_collection.assert_awaited_once()
        status = trigger.get_status()
        assert status["trigger_count"] == 1
        assert status["skipped_count"] == 0
        assert status["last_trigger"] is not None

    @pytest.mark.asyncio
    async def test_tick_skips_when_already_running(self, collection_scheduler):
        collection_scheduler.execute_collection.side_effect = AlreadyRunning("collection-1")
        trigger = CollectionTrigger(collection_scheduler, "*/5 * * * *")

        await trigger.run_now()

        assert trigger.skipped_count == 1
        assert trigger.error_count == 0

    @pytest.mark.asyncio
    async def test_tick_absorbs_failures(self, collection_scheduler):
        collection_scheduler.execute_collection.side_effect = RuntimeError("down")
        trigger = CollectionTrigger(collection_scheduler, "*/5 * * * *")

        await trigger.run_now()

        assert trigger.error_count == 1
        assert trigger.last_error == "down"

    @pytest.mark.asyncio
    async def test_start_and_stop(self, collection_scheduler):
        trigger = CollectionTrigger(collection_scheduler, "0 * * * *")

        trigger.start()
        try:
            status = trigger.get_status()
            assert status["running"] is True
            assert status["cron"] == "0 * * * *"
            assert status["next_run"] is not None
        finally:
            await trigger.stop()

        assert trigger.scheduler.running is False
        assert trigger.get_status()["running"] is False

    @pytest.mark.asyncio
    async def test_restart_after_stop(self, collection_scheduler):
        trigger = CollectionTrigger(collection_scheduler, "0 * * * *")

        trigger.start()
        await trigger.stop()
        trigger.start()
        try:
            assert trigger.scheduler.running is True
            assert trigger.scheduler.get_job("collect_news") is not None
        finally:
            await trigger.stop()

        assert trigger.scheduler.running is False

    @pytest.mark.asyncio
    async def test_stop_when_not_running(self, collection_scheduler):
        trigger = CollectionTrigger(collection_scheduler, "0 * * * *")

        await trigger.stop()

        assert trigger.scheduler.running is False
