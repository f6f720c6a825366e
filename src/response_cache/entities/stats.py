"""Cache statistics entities."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class QueryStats:
    """Usage of one cached query."""

    query: str
    count: int
    average_similarity: float
    last_used: str


@dataclass(frozen=True)
class PerformanceStats:
    """Measured lookup performance and storage footprint."""

    average_cache_hit_time: float
    average_cache_miss_time: float
    cache_efficiency: float
    memory_usage: float
    disk_usage: float
    compression_ratio: float


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of cache state.

    Rates and utilization are percentages (0-100); sizes are in KB.
    """

    entry_count: int
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
    top_queries: list[QueryStats] = field(default_factory=list)
    performance: PerformanceStats | None = None
