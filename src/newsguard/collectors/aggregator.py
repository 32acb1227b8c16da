"""Collection operation composed from several unreliable sources"""

import asyncio
import time
from typing import Any

from loguru import logger

from ..errors import TransientUpstreamFailure, error_message
from ..models import CollectionResult, RetryPolicy, SourceError
from ..resilience import CircuitBreakerRegistry, retry_with_policy
from .base import BaseSource


class SourceAggregator:
    """Fetch every source concurrently, isolating failures per source

    Each fetch runs with retry inside that source's circuit breaker, so
    exhausting retries counts as a single breaker failure. A failing
    source becomes a SourceError; the pass only fails when every source
    does.
    """

    def __init__(
        self,
        sources: list[BaseSource],
        breakers: CircuitBreakerRegistry,
        retry_policy: RetryPolicy | None = None,
    ):
        """Initialize aggregator

        Args:
            sources: Providers to fetch from
            breakers: Registry holding one breaker per source name
            retry_policy: Retry policy for each source fetch
        """
        self.sources = sources
        self.breakers = breakers
        self.retry_policy = retry_policy or RetryPolicy()

    async def _fetch_source(self, source: BaseSource) -> list[Any]:
        start_time = time.time()
        items = await self.breakers.execute(
            source.name,
            lambda: retry_with_policy(source.fetch, self.retry_policy),
        )
        logger.info(
            f"Fetched {len(items)} items from {source.name} "
            f"in {time.time() - start_time:.2f}s"
        )
        return items

    async def collect(self) -> CollectionResult:
        """Collect from all sources

        Raises:
            TransientUpstreamFailure: No source produced items
        """
        logger.info(f"Starting collection from {len(self.sources)} sources")

        results = await asyncio.gather(
            *(self._fetch_source(source) for source in self.sources),
            return_exceptions=True,
        )

        items: list[Any] = []
        errors: list[SourceError] = []
        for source, result in zip(self.sources, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(f"Failed to collect from source {source.name}: {result}")
                errors.append(SourceError(source=source.name, message=error_message(result)))
                continue
            items.extend(result)

        if self.sources and len(errors) == len(self.sources):
            raise TransientUpstreamFailure(
                "collection", f"all {len(self.sources)} sources failed"
            )

        return CollectionResult(
            items=items,
            errors=errors,
            sources_processed=len(self.sources),
        )

    async def __call__(self) -> CollectionResult:
        return await self.collect()
