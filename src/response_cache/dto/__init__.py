"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import GetCacheRequest, SetCacheRequest, WarmCacheRequest
from .responses import (
    AlertItem,
    CacheEntryResponse,
    CacheGetResponse,
    CacheRemoveResponse,
    CacheSetResponse,
    CacheStatsResponse,
    CleanupResponse,
    ClearCacheResponse,
    HealthCheckResponse,
    PerformanceStatsItem,
    QueryStatsItem,
    WarmupResponse,
)

__all__ = [
    "GetCacheRequest",
    "SetCacheRequest",
    "WarmCacheRequest",
    "AlertItem",
    "CacheEntryResponse",
    "CacheGetResponse",
    "CacheSetResponse",
    "CacheRemoveResponse",
    "CacheStatsResponse",
    "CleanupResponse",
    "ClearCacheResponse",
    "HealthCheckResponse",
    "PerformanceStatsItem",
    "QueryStatsItem",
    "WarmupResponse",
]
