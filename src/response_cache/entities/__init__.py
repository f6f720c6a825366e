"""Domain entities for internal representation.

These are plain dataclasses used by services and the analytics layer.
They carry no persistence logic; records written to disk live in
``response_cache.models`` and API contracts in ``response_cache.dto``.
"""

from .cache_match import SimilarityAnalysis, SimilarityMatch
from .events import CacheEvent, CacheEventType
from .options import CacheOperationOptions
from .results import CleanupResult, WarmupResult
from .stats import CacheStats, PerformanceStats, QueryStats

__all__ = [
    "CacheEvent",
    "CacheEventType",
    "CacheOperationOptions",
    "CacheStats",
    "CleanupResult",
    "PerformanceStats",
    "QueryStats",
    "SimilarityAnalysis",
    "SimilarityMatch",
    "WarmupResult",
]
