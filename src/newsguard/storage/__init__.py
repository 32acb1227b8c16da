"""Storage module for persisting run history and fallback cache entries."""

from .backends import SqlCacheBackend, SqlRunStore
from .database import DatabaseManager
from .models import Base, CollectionRunDB, FallbackCacheEntryDB
from .repositories import CollectionRunRepository, FallbackCacheRepository

__all__ = [
    "DatabaseManager",
    "Base",
    "CollectionRunDB",
    "FallbackCacheEntryDB",
    "CollectionRunRepository",
    "FallbackCacheRepository",
    "SqlCacheBackend",
    "SqlRunStore",
]
