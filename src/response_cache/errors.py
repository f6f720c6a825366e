"""Exception taxonomy for the response cache.

Only ``ConfigurationError`` is meant to reach callers; the service catches the
persistence errors internally and degrades to a cache miss.
"""


class ResponseCacheError(Exception):
    """Base exception for cache errors."""

    pass


class PersistenceError(ResponseCacheError):
    """I/O or parse failure on the metadata file or a payload file."""

    pass


class CorruptEntryError(PersistenceError):
    """A payload exists in metadata but cannot be read back."""

    def __init__(self, cache_key: str, reason: str) -> None:
        super().__init__(f"Corrupt cache entry {cache_key[:16]}: {reason}")
        self.cache_key = cache_key
        self.reason = reason


class NotFoundError(ResponseCacheError):
    """Lookup of an unknown cache key."""

    def __init__(self, cache_key: str) -> None:
        super().__init__(f"Cache key not found: {cache_key}")
        self.cache_key = cache_key


class ConfigurationError(ResponseCacheError, ValueError):
    """Invalid construction options."""

    pass
