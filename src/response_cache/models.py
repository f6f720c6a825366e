"""Records stored on disk, validated with pydantic at the store boundary."""

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from response_cache.utils import now_ms

METADATA_VERSION = "3.0.0"


class CacheContext(BaseModel):
    """Context a query was asked in.

    Accepts snake_case or camelCase keys, so ``{"projectType": "web"}`` and
    ``CacheContext(project_type="web")`` are equivalent.
    """

    project_type: str | None = None
    language: str | None = None
    framework: str | None = None
    task_type: str | None = None
    skill_level: str | None = None
    file_context: str | None = None
    file_extension: str | None = None
    file_type: str | None = None
    ai_model: str | None = None
    session_id: str | None = None
    response_time: float | None = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    @classmethod
    def coerce(cls, context: "CacheContext | Mapping[str, Any] | None") -> "CacheContext":
        """Normalize ``None``, mappings and models into a ``CacheContext``."""
        if context is None:
            return cls()
        if isinstance(context, cls):
            return context
        return cls.model_validate(dict(context))


class CachePayload(BaseModel):
    """Full cached record written to one payload file per cache key."""

    query: str
    context: CacheContext = Field(default_factory=CacheContext)
    response: Any
    timestamp: float
    expires_at: float
    ai_model: str | None = None
    token_count: int | None = None
    response_time: float | None = None


class CacheEntry(BaseModel):
    """Metadata summary of one cached payload."""

    size: int = Field(..., ge=0, description="Bytes stored on disk")
    raw_size: int = Field(0, ge=0, description="Bytes before compression")
    created: float
    expires_at: float
    last_accessed: float
    access_count: int = Field(1, ge=0)
    query: str = Field("", description="Truncated query preview")
    similarity: float | None = None
    compressed: bool = False

    @model_validator(mode="after")
    def _check_expiry(self) -> "CacheEntry":
        if self.expires_at <= self.created:
            raise ValueError("expires_at must be later than created")
        return self

    def is_expired(self, now: float | None = None) -> bool:
        """Check if this entry has expired."""
        return (now if now is not None else now_ms()) > self.expires_at


class CacheMetadata(BaseModel):
    """Index of all entries plus aggregate counters."""

    entries: dict[str, CacheEntry] = Field(default_factory=dict)
    total_size: int = 0
    created: float = Field(default_factory=now_ms)
    last_cleanup: float = Field(default_factory=now_ms)
    version: str = METADATA_VERSION
    hit_count: int = 0
    miss_count: int = 0
    similarity_hit_count: int = 0

    def recompute_total_size(self) -> int:
        """Sum the live entries' sizes."""
        return sum(entry.size for entry in self.entries.values())


def estimate_token_count(response: Any) -> int:
    """Rough token estimate: about four characters per token."""
    text = response if isinstance(response, str) else json.dumps(response, default=str)
    return math.ceil(len(text) / 4)


@dataclass
class PerformanceMetrics:
    """Track lookup timings for cache operations."""

    total_queries: int = 0
    cache_hits: int = 0
    similarity_hits: int = 0
    cache_misses: int = 0
    total_hit_time_ms: float = 0.0
    total_miss_time_ms: float = 0.0

    @property
    def avg_hit_time_ms(self) -> float:
        """Average lookup time of direct and similarity hits."""
        hits = self.cache_hits + self.similarity_hits
        if hits == 0:
            return 0.0
        return self.total_hit_time_ms / hits

    @property
    def avg_miss_time_ms(self) -> float:
        """Average lookup time of misses."""
        if self.cache_misses == 0:
            return 0.0
        return self.total_miss_time_ms / self.cache_misses

    @property
    def avg_lookup_time_ms(self) -> float:
        """Average lookup time over every query."""
        if self.total_queries == 0:
            return 0.0
        return (self.total_hit_time_ms + self.total_miss_time_ms) / self.total_queries

    def record_hit(self, lookup_time_ms: float, similarity: bool = False) -> None:
        """Record a direct or similarity hit."""
        self.total_queries += 1
        if similarity:
            self.similarity_hits += 1
        else:
            self.cache_hits += 1
        self.total_hit_time_ms += lookup_time_ms

    def record_miss(self, lookup_time_ms: float) -> None:
        """Record a cache miss."""
        self.total_queries += 1
        self.cache_misses += 1
        self.total_miss_time_ms += lookup_time_ms
