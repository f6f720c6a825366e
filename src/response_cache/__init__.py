"""Response Cache - Local context-aware caching for expensive AI responses.

This package provides a layered architecture for response caching:

Layers:
    - protocols: Interface contracts (CacheStore, ResponseGenerator)
    - repositories: Data access implementations (local files)
    - services: Business logic (keys, store, similarity, eviction)
    - analytics: Event history, time series, alerts and reports
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from response_cache import CacheService

    # Using class method (recommended, like Path.home())
    cache = CacheService.create()
    cache = CacheService.create(similarity_threshold=0.8)

    response = await cache.get("How do I center a div?", {"language": "css"})
    ```

For HTTP API:
    ```python
    from response_cache.api.app import app, create_app
    ```
"""

from response_cache.analytics import AnalyticsConfig, CacheAnalytics
from response_cache.config import CacheConfig, get_settings, settings
from response_cache.dto import GetCacheRequest, SetCacheRequest
from response_cache.entities import (
    CacheEvent,
    CacheEventType,
    CacheOperationOptions,
    CacheStats,
    CleanupResult,
    SimilarityMatch,
    WarmupResult,
)
from response_cache.errors import (
    ConfigurationError,
    CorruptEntryError,
    NotFoundError,
    PersistenceError,
    ResponseCacheError,
)
from response_cache.events import EventBus
from response_cache.handlers import CacheHandler
from response_cache.models import CacheContext, CacheEntry, CacheMetadata, CachePayload
from response_cache.protocols import CacheStore, ResponseGenerator
from response_cache.repositories import FileCacheRepository
from response_cache.services import (
    CacheKeyGenerator,
    CacheService,
    SimilarityConfig,
    SimilarityMatcher,
    WarmupConfig,
)

__all__ = [
    # Configuration
    "settings",
    "get_settings",
    "CacheConfig",
    "AnalyticsConfig",
    "SimilarityConfig",
    "WarmupConfig",
    # Errors
    "ResponseCacheError",
    "PersistenceError",
    "CorruptEntryError",
    "NotFoundError",
    "ConfigurationError",
    # Protocols (interfaces)
    "CacheStore",
    "ResponseGenerator",
    # Services (business logic)
    "CacheService",
    "CacheKeyGenerator",
    "SimilarityMatcher",
    "CacheAnalytics",
    "EventBus",
    # Handlers (HTTP)
    "CacheHandler",
    # Repositories (data access)
    "FileCacheRepository",
    # Records and entities
    "CacheContext",
    "CacheEntry",
    "CacheMetadata",
    "CachePayload",
    "CacheEvent",
    "CacheEventType",
    "CacheOperationOptions",
    "CacheStats",
    "CleanupResult",
    "SimilarityMatch",
    "WarmupResult",
    # DTOs (API contracts)
    "GetCacheRequest",
    "SetCacheRequest",
]
