"""Per-call options for cache operations."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CacheOperationOptions:
    """Options accepted by ``get`` and ``set``.

    Attributes:
        ttl: Time to live in milliseconds; defaults to the cache's TTL
        skip_similarity: Only accept a direct hit on ``get``
        compress: Override the cache's compression setting on ``set``
    """

    ttl: int | None = None
    skip_similarity: bool = False
    compress: bool | None = None
