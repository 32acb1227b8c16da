"""Single-flight collection runs with retry, dedup and bounded history."""

import asyncio
from collections import deque
from typing import Any, Awaitable, Callable, Protocol

from loguru import logger

from ..config import settings
from ..deduplication import NearDuplicateDetector
from ..errors import AlreadyRunning, ExhaustedRetries, error_message
from ..models import CollectionResult, CollectionRun, CollectionStats, RunStatus
from ..utils.resources import resource_snapshot

CollectOperation = Callable[[], Awaitable[CollectionResult | dict[str, Any]]]
ItemSink = Callable[[list[Any]], Awaitable[None]]


def round_half_up(value: float) -> int:
    """Round non-negative averages with .5 going up"""
    return int(value + 0.5)


class RunStore(Protocol):
    """Durable mirror of finished runs."""

    async def save(self, run: CollectionRun) -> None: ...


class CollectionScheduler:
    """Runs one collection pass at a time.

    A second caller is rejected with AlreadyRunning, never queued. The
    guard is checked and set before the first await, so it holds for
    interleaved coroutines on one event loop.
    """

    def __init__(
        self,
        collect: CollectOperation,
        detector: NearDuplicateDetector | None = None,
        *,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        enable_deduplication: bool | None = None,
        history_limit: int | None = None,
        store_items: ItemSink | None = None,
        run_store: RunStore | None = None,
    ):
        """Initialize scheduler.

        Args:
            collect: Collection operation returning items and per-source errors
            detector: Near-duplicate detector applied to collected items
            max_retries: Total collection attempts per run
            retry_delay: Fixed seconds between attempts
            enable_deduplication: Run the detector on collected items
            history_limit: Number of runs kept in memory
            store_items: Optional sink receiving deduplicated items
            run_store: Optional durable store for finished runs
        """
        self.collect = collect
        self.detector = detector or NearDuplicateDetector()
        self.max_retries = max_retries or settings.scheduler_max_retries
        self.retry_delay = (
            retry_delay if retry_delay is not None else settings.scheduler_retry_delay
        )
        self.enable_deduplication = (
            enable_deduplication
            if enable_deduplication is not None
            else settings.scheduler_enable_deduplication
        )
        self.store_items = store_items
        self.run_store = run_store
        self._history: deque[CollectionRun] = deque(
            maxlen=history_limit or settings.scheduler_history_limit
        )
        self._running = False
        self._current_run_id: str | None = None

    async def execute_collection(self) -> CollectionRun:
        """Run one collection pass end to end.

        Returns:
            The completed run record

        Raises:
            AlreadyRunning: Another pass is in progress; history is untouched
            ExhaustedRetries: Every attempt failed; the run is recorded as failed
        """
        if self._running:
            raise AlreadyRunning(self._current_run_id)
        self._running = True

        run = CollectionRun()
        self._current_run_id = run.id
        self._history.append(run)

        try:
            logger.info(f"Starting news collection {run.id}")
            try:
                result = await self._collect_with_retry()
                items, removed = self._deduplicate(result.items)
                if self.store_items is not None:
                    await self.store_items(items)
            except (Exception, asyncio.CancelledError) as e:
                cause = e.last_error if isinstance(e, ExhaustedRetries) else e
                run.fail(error_message(cause), resource_snapshot())
                logger.error(f"Collection {run.id} failed: {error_message(cause)}")
                raise

            run.complete(result, len(items), removed, resource_snapshot())
            logger.info(
                f"Collection {run.id} completed: {run.items_collected} items from "
                f"{run.sources_processed} sources ({run.sources_with_errors} with errors) "
                f"in {run.duration_ms}ms"
            )
            return run

        finally:
            self._running = False
            self._current_run_id = None
            await self._persist(run)

    async def _collect_with_retry(self) -> CollectionResult:
        """Call the collection operation with a fixed delay between attempts."""
        last_error: Exception | None = None

        for attempt in range(1, self.max_retries + 1):
            try:
                raw = await self.collect()
                if isinstance(raw, CollectionResult):
                    return raw
                return CollectionResult.model_validate(raw)
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Collection attempt {attempt}/{self.max_retries} failed: "
                    f"{error_message(e)}"
                )
                if attempt < self.max_retries:
                    logger.info(f"Retrying in {self.retry_delay}s...")
                    await asyncio.sleep(self.retry_delay)

        raise ExhaustedRetries(self.max_retries, last_error) from last_error

    def _deduplicate(self, items: list[Any]) -> tuple[list[Any], int]:
        if not self.enable_deduplication:
            return list(items), 0
        kept = self.detector.deduplicate(items)
        return kept, len(items) - len(kept)

    async def _persist(self, run: CollectionRun) -> None:
        if self.run_store is None:
            return
        try:
            await self.run_store.save(run)
        except Exception as e:
            # History stays authoritative in memory
            logger.error(f"Failed to persist collection run {run.id}: {e}")

    def is_collection_running(self) -> bool:
        return self._running

    def get_current_status(self) -> CollectionRun | None:
        """Get the in-progress run, if any."""
        if self._current_run_id is None:
            return None
        for run in self._history:
            if run.id == self._current_run_id:
                return run.model_copy(deep=True)
        return None

    def get_collection_history(self, limit: int = 10) -> list[CollectionRun]:
        """Get up to ``limit`` runs, most recent first."""
        recent = list(reversed(self._history))[: max(0, limit)]
        return [run.model_copy(deep=True) for run in recent]

    def get_collection_stats(self) -> CollectionStats:
        """Derive statistics from the retained history."""
        history = list(self._history)
        completed = [run for run in history if run.status is RunStatus.COMPLETED]
        failed = [run for run in history if run.status is RunStatus.FAILED]

        avg_items = (
            sum(run.items_collected for run in completed) / len(completed)
            if completed
            else 0
        )
        avg_duration = (
            sum(run.duration_ms for run in completed) / len(completed)
            if completed
            else 0
        )

        return CollectionStats(
            total_runs=len(history),
            successful_runs=len(completed),
            failed_runs=len(failed),
            average_items_per_run=round_half_up(avg_items),
            average_duration_ms=round_half_up(avg_duration),
            last_run_time=history[-1].start_time if history else None,
        )
