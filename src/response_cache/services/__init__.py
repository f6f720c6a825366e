"""Service layer for business logic.

This layer contains the core cache logic and orchestration.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)

Usage:
    ```python
    from response_cache.services import CacheService

    # Using factory method (recommended)
    cache = CacheService.create()
    cache = CacheService.create(similarity_threshold=0.8)

    # Or manual creation
    cache = CacheService(config=CacheConfig(cache_dir=path), repository=repo)
    ```
"""

from .cache_service import CacheService
from .cache_warming import CacheWarmer, WarmupConfig, generate_from_templates
from .eviction import EvictionManager, lru_score
from .key_generator import CacheKeyGenerator, detect_file_type
from .similarity_matcher import SimilarityConfig, SimilarityMatcher

__all__ = [
    "CacheKeyGenerator",
    "CacheService",
    "CacheWarmer",
    "EvictionManager",
    "SimilarityConfig",
    "SimilarityMatcher",
    "WarmupConfig",
    "detect_file_type",
    "generate_from_templates",
    "lru_score",
]
