"""Cron trigger that starts collection runs on a timer."""

import asyncio
from datetime import UTC, datetime
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from ..config import settings
from ..errors import AlreadyRunning
from .collection import CollectionScheduler

JOB_ID = "collect_news"
SHUTDOWN_POLLS = 100


class CollectionTrigger:
    """Runs CollectionScheduler.execute_collection() on a cron schedule.

    A tick that lands while a run is in progress is skipped, not queued.
    """

    def __init__(
        self,
        collection_scheduler: CollectionScheduler,
        cron_expression: str | None = None,
    ):
        """Initialize trigger.

        Args:
            collection_scheduler: Scheduler whose runs are triggered
            cron_expression: Cron expression (defaults to settings)
        """
        self.collection_scheduler = collection_scheduler
        self.cron_expression = cron_expression or settings.scheduler_collection_cron
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.last_trigger: datetime | None = None
        self.next_run: datetime | None = None
        self.trigger_count: int = 0
        self.skipped_count: int = 0
        self.error_count: int = 0
        self.last_error: str | None = None

        try:
            trigger = CronTrigger.from_crontab(self.cron_expression, timezone="UTC")
        except ValueError as e:
            logger.error(f"Invalid cron expression '{self.cron_expression}': {e}")
            raise ValueError(f"Invalid cron expression: {e}") from e

        self.scheduler.add_job(
            self._tick,
            trigger=trigger,
            id=JOB_ID,
            name=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    async def _tick(self) -> None:
        """Start one run, absorbing failures so the timer keeps firing."""
        self.last_trigger = datetime.now(UTC)
        self.trigger_count += 1

        try:
            run = await self.collection_scheduler.execute_collection()
        except AlreadyRunning as e:
            self.skipped_count += 1
            logger.info(f"Skipping scheduled collection: {e.run_id} still running")
        except Exception as e:
            self.error_count += 1
            self.last_error = str(e)
            logger.error(f"Scheduled collection failed: {e}")
        else:
            self.last_error = None
            logger.info(f"Scheduled collection {run.id} finished as {run.status.value}")
        finally:
            self._refresh_next_run()

    def _refresh_next_run(self) -> None:
        job = self.scheduler.get_job(JOB_ID)
        if job is not None:
            self.next_run = getattr(job, "next_run_time", None)

    def start(self) -> None:
        """Start the scheduler."""
        if self.scheduler.running:
            logger.warning("Collection trigger already running")
            return

        self.scheduler.start()
        self._refresh_next_run()
        logger.info(
            f"Collection trigger started with cron '{self.cron_expression}', "
            f"next run: {self.next_run}"
        )

    async def stop(self) -> None:
        """Stop the scheduler and wait until it reports stopped.

        AsyncIOScheduler queues its shutdown on the event loop, so the loop
        has to run before `running` turns False.
        """
        if not self.scheduler.running:
            logger.warning("Collection trigger not running")
            return

        self.scheduler.shutdown(wait=False)
        for _ in range(SHUTDOWN_POLLS):
            if not self.scheduler.running:
                break
            await asyncio.sleep(0)
        logger.info("Collection trigger stopped")

    async def run_now(self) -> None:
        """Fire one tick immediately."""
        logger.info("Running collection manually")
        await self._tick()

    def get_status(self) -> dict[str, Any]:
        """Get trigger status and counters."""
        return {
            "running": self.scheduler.running,
            "cron": self.cron_expression,
            "collection_running": self.collection_scheduler.is_collection_running(),
            "last_trigger": self.last_trigger.isoformat() if self.last_trigger else None,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "trigger_count": self.trigger_count,
            "skipped_count": self.skipped_count,
            "error_count": self.error_count,
            "last_error": self.last_error,
        }
