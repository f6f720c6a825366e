"""Response DTOs for API endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CacheGetResponse(BaseModel):
    """Response DTO for a cache lookup."""

    query: str = Field(..., description="The original query")
    cache_key: str = Field(..., description="Key the query maps to in its context")
    is_hit: bool = Field(..., description="Whether a direct or similarity hit was found")
    response: Any = Field(None, description="The cached response, null on a miss")
    lookup_time_ms: float = Field(..., description="Time taken for the lookup in milliseconds")


class CacheSetResponse(BaseModel):
    """Response DTO for a store operation."""

    success: bool = Field(..., description="Whether the entry was stored")
    cache_key: str | None = Field(None, description="The storage key for the entry")
    message: str = Field(..., description="Human-readable status message")


class CacheRemoveResponse(BaseModel):
    """Response DTO for removing one entry."""

    success: bool
    cache_key: str
    message: str


class CleanupResponse(BaseModel):
    """Response DTO for a cleanup pass."""

    model_config = ConfigDict(from_attributes=True)

    entries_removed: int = Field(..., ge=0)
    size_freed: int = Field(..., ge=0, description="Bytes freed")
    expired_count: int = Field(..., ge=0)
    lru_count: int = Field(..., ge=0)
    duration_ms: float


class WarmupResponse(BaseModel):
    """Response DTO for cache warming."""

    model_config = ConfigDict(from_attributes=True)

    queries_processed: int
    cache_keys_generated: int
    entries_populated: int
    duration_ms: float
    errors: list[str]


class ClearCacheResponse(BaseModel):
    success: bool
    message: str


class QueryStatsItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    query: str
    count: int
    average_similarity: float
    last_used: str


class PerformanceStatsItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    average_cache_hit_time: float
    average_cache_miss_time: float
    cache_efficiency: float
    memory_usage: float
    disk_usage: float
    compression_ratio: float


class CacheStatsResponse(BaseModel):
    """Response DTO for cache statistics.

    Rates and utilization are percentages; sizes are in KB.
    """

    model_config = ConfigDict(from_attributes=True)

    entry_count: int = Field(..., description="Number of cached entries", ge=0)
    total_size_kb: float
    max_size_kb: float
    utilization_percent: float
    entry_utilization_percent: float
    hit_rate: float
    miss_rate: float
    similarity_hit_rate: float
    total_requests: int
    hit_count: int
    miss_count: int
    similarity_hit_count: int
    average_response_time: float
    recent_entries: int
    expired_entries: int
    last_cleanup: str
    top_queries: list[QueryStatsItem] = Field(default_factory=list)
    performance: PerformanceStatsItem | None = None


class AlertItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: str
    severity: str
    message: str
    value: float
    threshold: float
    timestamp: float
    resolved: bool


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    cache_healthy: bool = Field(..., description="Whether the cache directory is writable")
    entry_count: int = Field(..., ge=0)


class CacheEntryResponse(BaseModel):
    """Response DTO for one entry's metadata."""

    model_config = ConfigDict(from_attributes=True)

    cache_key: str
    query: str = Field(..., description="Truncated query preview")
    size: int = Field(..., ge=0, description="Bytes stored on disk")
    created: float
    expires_at: float
    last_accessed: float
    access_count: int
    similarity: float | None = None
    compressed: bool
