"""SQLAlchemy models for database persistence."""

from datetime import UTC, datetime

from sqlalchemy import JSON, Column, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CollectionRunDB(Base):
    """Database model for finished collection runs."""

    __tablename__ = "collection_runs"

    id = Column(String(64), primary_key=True)
    status = Column(String(16), nullable=False)
    started_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    items_collected = Column(Integer, nullable=False, default=0)
    sources_processed = Column(Integer, nullable=False, default=0)
    sources_with_errors = Column(Integer, nullable=False, default=0)
    duplicates_removed = Column(Integer, nullable=False, default=0)
    duration_ms = Column(Integer, nullable=False, default=0)
    errors = Column(JSON, nullable=False, default=list)
    resource_usage = Column(JSON, nullable=True)
    recorded_at = Column(DateTime, nullable=False, default=lambda: datetime.now(UTC))

    # Indexes
    __table_args__ = (
        Index("idx_run_started_at", "started_at"),
        Index("idx_run_status", "status"),
    )


class FallbackCacheEntryDB(Base):
    """Database model for last-known-good fallback payloads."""

    __tablename__ = "fallback_cache_entries"

    key = Column(String(512), primary_key=True)
    data = Column(JSON, nullable=True)
    timestamp = Column(Float, nullable=False)
    ttl = Column(Float, nullable=False)

    __table_args__ = (Index("idx_cache_timestamp", "timestamp"),)
