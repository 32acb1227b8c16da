"""Fallback cache and graceful degradation cascade."""

from .cache import CacheBackend, FallbackCache, InMemoryCacheBackend
from .cascade import (
    CachedContentStrategy,
    EmptyStateStrategy,
    ExcerptStrategy,
    GracefulDegradation,
    SynthesizedDefaultStrategy,
    feed_cache_key,
    summary_cache_key,
)

__all__ = [
    "CacheBackend",
    "CachedContentStrategy",
    "EmptyStateStrategy",
    "ExcerptStrategy",
    "FallbackCache",
    "GracefulDegradation",
    "InMemoryCacheBackend",
    "SynthesizedDefaultStrategy",
    "feed_cache_key",
    "summary_cache_key",
]
