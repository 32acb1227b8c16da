"""Graceful degradation: ordered fallbacks for failed primary operations"""

from typing import Any, Awaitable, Callable, Protocol

from loguru import logger

from ..errors import error_message
from ..models import (
    FallbackContext,
    FallbackKind,
    FallbackResult,
    GuardedResult,
    UserPreferences,
    item_field,
)
from ..resilience import CircuitBreakerRegistry
from . import fallbacks
from .cache import FallbackCache

FEED = "feed"
SUMMARY = "summary"


class FallbackStrategy(Protocol):
    """One level of the cascade

    Returns a result, or None when it has nothing to offer for the context.
    """

    name: str

    async def __call__(self, key: str, context: FallbackContext) -> FallbackResult | None: ...


class CachedContentStrategy:
    """Serve the last-known-good payload for the key"""

    name = "cached_content"

    _MESSAGES = {
        FEED: "Showing your cached personalized feed.",
        SUMMARY: "Showing cached summary.",
    }

    def __init__(self, cache: FallbackCache):
        self.cache = cache

    async def __call__(self, key: str, context: FallbackContext) -> FallbackResult | None:
        entry = await self.cache.get_entry(key)
        if entry is None:
            return None
        return FallbackResult(
            kind=FallbackKind.CACHED_CONTENT,
            data=entry.data,
            message=self._MESSAGES.get(
                context.feature, "Showing cached content from an earlier successful request."
            ),
        )


class SynthesizedDefaultStrategy:
    """Build default content without the failed dependency"""

    name = "synthesized_default"

    async def __call__(self, key: str, context: FallbackContext) -> FallbackResult | None:
        if context.feature == FEED:
            if context.preferences is not None:
                user_id = context.user_id or context.preferences.user_id
                return fallbacks.personalized_feed(user_id, context.preferences)
            return fallbacks.general_feed(context.category)
        if context.feature == SUMMARY and context.articles:
            return fallbacks.summary_fallback(
                context.articles, context.tone, context.max_reading_time
            )
        return None


class ExcerptStrategy:
    """Show truncated article text"""

    name = "excerpt"

    def __init__(self, length: int | None = None):
        self.length = length

    async def __call__(self, key: str, context: FallbackContext) -> FallbackResult | None:
        if not context.articles:
            return None
        return fallbacks.article_excerpts(context.articles, self.length)


class EmptyStateStrategy:
    """Always answers with guidance for the user"""

    name = "empty_state"

    async def __call__(self, key: str, context: FallbackContext) -> FallbackResult:
        reason = "All fallback mechanisms failed"
        if context.error is not None:
            reason = f"{reason} (primary error: {error_message(context.error)})"
        return fallbacks.empty_state(reason)


class GracefulDegradation:
    """Walks fallback strategies until one produces a result

    The default order is cached content, synthesized default, excerpt,
    empty state. The empty state is always appended last so handle()
    never fails.
    """

    def __init__(
        self,
        cache: FallbackCache,
        strategies: list[FallbackStrategy] | None = None,
        breakers: CircuitBreakerRegistry | None = None,
    ):
        """Initialize cascade

        Args:
            cache: Last-known-good cache, read by the cached-content level
            strategies: Custom ordered strategies (default cascade if None)
            breakers: Registry used by run() when a breaker name is given
        """
        self.cache = cache
        self.breakers = breakers
        self.terminal = EmptyStateStrategy()
        self.strategies: list[FallbackStrategy] = (
            list(strategies)
            if strategies is not None
            else [
                CachedContentStrategy(cache),
                SynthesizedDefaultStrategy(),
                ExcerptStrategy(),
            ]
        )

    async def handle(self, key: str, context: FallbackContext | None = None) -> FallbackResult:
        """Produce the best available fallback for ``key``"""
        context = context or FallbackContext()
        if context.error is not None:
            logger.warning(
                f"Primary operation for {key} failed: {error_message(context.error)}"
            )

        for strategy in self.strategies:
            try:
                result = await strategy(key, context)
            except Exception as e:
                logger.warning(f"Fallback strategy {strategy.name} failed for {key}: {e}")
                continue
            if result is not None:
                logger.info(f"Serving {result.kind.value} fallback for {key} via {strategy.name}")
                return result.model_copy(update={"strategy": strategy.name})

        result = await self.terminal(key, context)
        logger.warning(f"Serving empty state for {key}")
        return result.model_copy(update={"strategy": self.terminal.name})

    async def handle_news_feed_generation(
        self,
        user_id: str,
        preferences: UserPreferences | None = None,
        error: BaseException | None = None,
    ) -> FallbackResult:
        context = FallbackContext(
            feature=FEED, user_id=user_id, preferences=preferences, error=error
        )
        return await self.handle(feed_cache_key(user_id), context)

    async def handle_summary_generation(
        self,
        articles: list[Any],
        tone: str = "casual",
        max_reading_time: int = 5,
        error: BaseException | None = None,
    ) -> FallbackResult:
        context = FallbackContext(
            feature=SUMMARY,
            articles=articles,
            tone=tone,
            max_reading_time=max_reading_time,
            error=error,
        )
        return await self.handle(
            summary_cache_key(articles, tone, max_reading_time), context
        )

    async def run(
        self,
        key: str,
        primary: Callable[[], Awaitable[Any]],
        context: FallbackContext | None = None,
        breaker: str | None = None,
    ) -> GuardedResult:
        """Run ``primary``, caching its payload, or fall back on failure

        Args:
            key: Cache key for the payload
            primary: Zero-argument coroutine factory
            context: What the cascade may use if ``primary`` fails
            breaker: Name of the circuit breaker guarding ``primary``
        """
        if breaker is not None and self.breakers is None:
            raise ValueError("A breaker name requires a CircuitBreakerRegistry")

        try:
            if breaker is not None:
                data = await self.breakers.execute(breaker, primary)
            else:
                data = await primary()
        except Exception as e:
            context = (context or FallbackContext()).model_copy(update={"error": e})
            return GuardedResult(fallback=await self.handle(key, context))

        try:
            await self.cache.put(key, data)
        except Exception as e:
            logger.error(f"Failed to cache result for {key}: {e}")
        return GuardedResult(data=data)


def feed_cache_key(user_id: str) -> str:
    return f"feed-{user_id}"


def summary_cache_key(articles: list[Any], tone: str, max_reading_time: int) -> str:
    ids = "-".join(str(item_field(a, "id") or item_field(a, "url")) for a in articles)
    return f"summary-{ids}-{tone}-{max_reading_time}"
