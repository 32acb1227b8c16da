"""Composition root wiring the control plane components together."""

from typing import Any, Self

from loguru import logger

from .collectors import BaseSource, SourceAggregator
from .config import Settings, settings
from .deduplication import NearDuplicateDetector
from .degradation import FallbackCache, GracefulDegradation, InMemoryCacheBackend
from .models import RetryPolicy
from .resilience import CircuitBreakerRegistry
from .scheduler import CollectionScheduler, CollectionTrigger
from .scheduler.collection import CollectOperation, ItemSink
from .storage import DatabaseManager, SqlCacheBackend, SqlRunStore


class ControlPlane:
    """One independent set of breakers, fallback cache, cascade and scheduler.

    Nothing here is shared between instances; two control planes built
    from the same settings do not see each other's breaker state.
    """

    def __init__(
        self,
        breakers: CircuitBreakerRegistry,
        cache: FallbackCache,
        degradation: GracefulDegradation,
        scheduler: CollectionScheduler | None = None,
        trigger: CollectionTrigger | None = None,
        db_manager: DatabaseManager | None = None,
    ):
        self.breakers = breakers
        self.cache = cache
        self.degradation = degradation
        self.scheduler = scheduler
        self.trigger = trigger
        self.db_manager = db_manager

    @classmethod
    def from_settings(
        cls,
        config: Settings | None = None,
        *,
        collect: CollectOperation | None = None,
        sources: list[BaseSource] | None = None,
        store_items: ItemSink | None = None,
        persistent: bool = False,
        schedule: bool = False,
    ) -> Self:
        """Build a control plane from settings.

        Args:
            config: Settings to use (module settings if None)
            collect: Collection operation for the scheduler
            sources: Sources aggregated into the collection operation
                when ``collect`` is not given
            store_items: Sink receiving deduplicated items
            persistent: Back run history and fallback cache with the database
            schedule: Also create a cron trigger for the scheduler
        """
        config = config or settings
        if collect is not None and sources is not None:
            raise ValueError("Pass either collect or sources, not both")

        breakers = CircuitBreakerRegistry(
            threshold=config.breaker_failure_threshold,
            reset_timeout=config.breaker_reset_timeout,
        )

        db_manager = None
        if persistent:
            db_manager = DatabaseManager(config.database_url, echo=config.database_echo)
            backend = SqlCacheBackend(db_manager)
        else:
            backend = InMemoryCacheBackend(max_size=config.fallback_cache_max_size)

        cache = FallbackCache(backend, default_ttl=config.fallback_cache_ttl)
        degradation = GracefulDegradation(cache, breakers=breakers)

        if sources is not None:
            policy = RetryPolicy(
                max_retries=config.retry_max_retries,
                base_delay=config.retry_base_delay,
                max_delay=config.retry_max_delay,
                jitter=config.retry_jitter,
            )
            collect = SourceAggregator(sources, breakers, policy)

        scheduler = None
        trigger = None
        if collect is not None:
            scheduler = CollectionScheduler(
                collect,
                NearDuplicateDetector(config.dedup_similarity_threshold),
                max_retries=config.scheduler_max_retries,
                retry_delay=config.scheduler_retry_delay,
                enable_deduplication=config.scheduler_enable_deduplication,
                history_limit=config.scheduler_history_limit,
                store_items=store_items,
                run_store=SqlRunStore(db_manager) if db_manager else None,
            )
            if schedule:
                trigger = CollectionTrigger(scheduler, config.scheduler_collection_cron)
        elif schedule:
            raise ValueError("Scheduling requires a collection operation")

        return cls(breakers, cache, degradation, scheduler, trigger, db_manager)

    async def start(self) -> None:
        """Create tables if persistent and start the cron trigger."""
        if self.db_manager is not None:
            await self.db_manager.init_db()
        if self.trigger is not None:
            self.trigger.start()
        logger.info("Control plane started")

    async def close(self) -> None:
        """Stop the trigger and release the database engine."""
        if self.trigger is not None and self.trigger.scheduler.running:
            await self.trigger.stop()
        if self.db_manager is not None:
            await self.db_manager.close()
        logger.info("Control plane stopped")

    def health(self) -> dict[str, Any]:
        """Breaker states plus scheduler status, for health endpoints."""
        breakers = {
            name: snapshot.model_dump(mode="json")
            for name, snapshot in self.breakers.snapshot().items()
        }
        status: dict[str, Any] = {
            "breakers": breakers,
            "degraded": any(s["state"] != "closed" for s in breakers.values()),
        }
        if self.scheduler is not None:
            current = self.scheduler.get_current_status()
            status["collection_running"] = self.scheduler.is_collection_running()
            status["current_run"] = current.id if current else None
        if self.trigger is not None:
            status["trigger"] = self.trigger.get_status()
        return status
