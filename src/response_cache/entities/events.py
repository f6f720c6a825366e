"""Cache lifecycle event entity."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from response_cache.utils import now_ms


class CacheEventType(str, Enum):
    """Lifecycle events published by the cache."""

    HIT = "hit"
    MISS = "miss"
    SIMILARITY_HIT = "similarity_hit"
    SET = "set"
    REMOVE = "remove"
    CLEANUP = "cleanup"
    WARMUP = "warmup"
    ERROR = "error"


REQUEST_EVENTS = frozenset({CacheEventType.HIT, CacheEventType.MISS, CacheEventType.SIMILARITY_HIT})


@dataclass(frozen=True)
class CacheEvent:
    """A timestamped observation of one cache operation.

    Attributes:
        type: What happened
        timestamp: Epoch milliseconds
        cache_key: Key involved, when there is one
        query: Query involved, when there is one
        similarity: Score of a similarity hit
        duration: Operation duration in milliseconds
        error: Error message for ``error`` events
        metadata: Extra operation-specific data (cleanup counts, ...)
    """

    type: CacheEventType
    timestamp: float = field(default_factory=now_ms)
    cache_key: str | None = None
    query: str | None = None
    similarity: float | None = None
    duration: float | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_request(self) -> bool:
        """True for hit, miss and similarity_hit events."""
        return self.type in REQUEST_EVENTS
