"""Results of maintenance operations."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class CleanupResult:
    """Outcome of one eviction pass.

    A pass skipped because another one was already running returns all zeros.
    """

    entries_removed: int = 0
    size_freed: int = 0
    expired_count: int = 0
    lru_count: int = 0
    duration_ms: float = 0.0


@dataclass(frozen=True)
class WarmupResult:
    """Outcome of a cache warming run."""

    queries_processed: int = 0
    cache_keys_generated: int = 0
    entries_populated: int = 0
    duration_ms: float = 0.0
    errors: list[str] = field(default_factory=list)
