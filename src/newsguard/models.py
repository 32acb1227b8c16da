"""Pydantic models for data validation"""

import random
import time
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class RetryPolicy(BaseModel):
    """Bounded exponential backoff with jitter (all times in seconds)"""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0, description="Retries after the first try")
    base_delay: float = Field(default=1.0, ge=0.0)
    max_delay: float = Field(default=10.0, ge=0.0)
    jitter: float = Field(default=1.0, ge=0.0, description="Upper bound of random jitter")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def base_delay_for(self, attempt: int) -> float:
        """Jitter-free delay before attempt ``attempt + 1``, capped"""
        return min(self.base_delay * (2**attempt), self.max_delay)

    def compute_delay(self, attempt: int) -> float:
        """Delay to wait after the 0-indexed ``attempt`` failed"""
        jitter = random.uniform(0, self.jitter) if self.jitter else 0.0
        return min(self.base_delay * (2**attempt) + jitter, self.max_delay)


class CircuitState(str, Enum):
    """Circuit breaker states"""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class BreakerSnapshot(BaseModel):
    """Read-only view of one breaker for health endpoints"""

    name: str
    state: CircuitState
    failure_count: int = Field(ge=0)
    last_failure_time: float | None = None
    threshold: int
    reset_timeout: float


class CollectedItem(BaseModel):
    """An item produced by a news source

    Only url, headline, source and published_at are read by the control
    plane; any other fields are kept as-is.
    """

    model_config = ConfigDict(extra="allow")

    url: str = Field(min_length=1, description="Original article URL")
    headline: str = Field(description="Article headline")
    source: str = Field(description="Source identifier")
    published_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Publication timestamp",
    )

    @field_validator("url")
    @classmethod
    def strip_url(cls, v: str) -> str:
        return v.strip()


class SourceError(BaseModel):
    """Per-source failure recorded on a collection run"""

    source: str
    message: str


class CollectionResult(BaseModel):
    """Output of one call to the collection operation

    Also accepts camelCase keys (``perSourceErrors``, ``sourcesProcessed``)
    from collectors that report in that shape.
    """

    items: list[Any] = Field(default_factory=list)
    errors: list[SourceError] = Field(
        default_factory=list,
        validation_alias=AliasChoices("errors", "per_source_errors", "perSourceErrors"),
    )
    sources_processed: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("sources_processed", "sourcesProcessed"),
    )

    @property
    def sources_with_errors(self) -> int:
        return len({error.source for error in self.errors})


class RunStatus(str, Enum):
    """Status of a collection run"""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ResourceSnapshot(BaseModel):
    """Process resource usage captured when a run finishes"""

    rss_bytes: int
    vms_bytes: int
    cpu_user_seconds: float
    cpu_system_seconds: float


def new_run_id() -> str:
    """Unique, time-ordered collection run id"""
    return f"collection-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


class CollectionRun(BaseModel):
    """Record of one collection pass

    Leaves RUNNING exactly once, through complete() or fail().
    """

    id: str = Field(default_factory=new_run_id)
    start_time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    status: RunStatus = RunStatus.RUNNING
    items_collected: int = 0
    sources_processed: int = 0
    sources_with_errors: int = 0
    duplicates_removed: int = 0
    errors: list[SourceError] = Field(default_factory=list)
    duration_ms: int = 0
    resource_usage: ResourceSnapshot | None = None

    @property
    def is_finished(self) -> bool:
        return self.status is not RunStatus.RUNNING

    def _finish(self, status: RunStatus, resource_usage: ResourceSnapshot | None) -> None:
        if self.is_finished:
            raise RuntimeError(f"Run {self.id} already finished as {self.status.value}")
        self.end_time = datetime.now(UTC)
        self.duration_ms = int((self.end_time - self.start_time).total_seconds() * 1000)
        self.resource_usage = resource_usage
        self.status = status

    def complete(
        self,
        result: CollectionResult,
        items_collected: int,
        duplicates_removed: int = 0,
        resource_usage: ResourceSnapshot | None = None,
    ) -> None:
        """Mark the run completed with counters from the collection result"""
        self.items_collected = items_collected
        self.duplicates_removed = duplicates_removed
        self.sources_processed = result.sources_processed
        self.sources_with_errors = result.sources_with_errors
        self.errors = list(result.errors)
        self._finish(RunStatus.COMPLETED, resource_usage)

    def fail(self, message: str, resource_usage: ResourceSnapshot | None = None) -> None:
        """Mark the run failed, recording a synthetic scheduler error"""
        self.errors.append(SourceError(source="scheduler", message=message))
        self._finish(RunStatus.FAILED, resource_usage)


class CollectionStats(BaseModel):
    """Statistics derived from run history"""

    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    average_items_per_run: int = 0
    average_duration_ms: int = 0
    last_run_time: datetime | None = None


class FallbackCacheEntry(BaseModel):
    """Last-known-good payload with a time to live (seconds)"""

    key: str
    data: Any
    timestamp: float
    ttl: float = Field(gt=0.0)

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp >= self.ttl


class FallbackKind(str, Enum):
    """Kinds of degraded responses, ordered from best to worst"""

    CACHED_CONTENT = "cached_content"
    DEFAULT_FEED = "default_feed"
    EXCERPT = "excerpt"
    EMPTY_STATE = "empty_state"


class FallbackResult(BaseModel):
    """Uniform output of the degradation cascade"""

    kind: FallbackKind
    data: Any = None
    message: str = Field(min_length=1, description="Why a fallback was used")
    strategy: str | None = None


class UserPreferences(BaseModel):
    """Reading preferences used to shape default feeds"""

    user_id: str
    topics: list[str] = Field(default_factory=lambda: ["general", "technology", "business"])
    tone: str = "casual"
    reading_time: int = Field(default=5, ge=1)
    preferred_sources: list[str] = Field(default_factory=list)
    excluded_sources: list[str] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("topics", mode="before")
    @classmethod
    def clean_topics(cls, v: list[str]) -> list[str]:
        """Lowercase topics and drop blanks, keeping order"""
        if not v:
            return []
        cleaned: list[str] = []
        for topic in v:
            topic = topic.lower().strip()
            if topic and topic not in cleaned:
                cleaned.append(topic)
        return cleaned


class FallbackContext(BaseModel):
    """What the cascade knows about the failed primary operation"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    feature: str = "generic"
    error: BaseException | None = None
    user_id: str | None = None
    preferences: UserPreferences | None = None
    articles: list[Any] = Field(default_factory=list)
    tone: str = "casual"
    max_reading_time: int = 5
    category: str | None = None


class GuardedResult(BaseModel):
    """Primary payload, or the fallback that replaced it"""

    data: Any = None
    fallback: FallbackResult | None = None

    @property
    def degraded(self) -> bool:
        return self.fallback is not None


def item_field(item: Any, name: str, default: Any = None) -> Any:
    """Read a field from a model, object or mapping"""
    if isinstance(item, Mapping):
        return item.get(name, default)
    return getattr(item, name, default)
