"""Repository layer for data access.

This layer hides durable storage behind the ``CacheStore`` protocol.
The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.
"""

from response_cache.protocols import CacheStore

from .file_repository import FileCacheRepository

__all__ = [
    "CacheStore",
    "FileCacheRepository",
]
