"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Swapping the storage backend (local files, an in-memory fake in tests, ...)
- Plugging in whatever produces responses for cache warming
- Clear separation of concerns

Usage:
    ```python
    from response_cache.protocols import CacheStore, ResponseGenerator

    # Type hints work with any implementation
    store: CacheStore = FileCacheRepository(cache_dir)
    ```
"""

from .cache_store import CacheStore
from .response_generator import ResponseGenerator

__all__ = [
    "CacheStore",
    "ResponseGenerator",
]
