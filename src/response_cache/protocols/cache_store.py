"""Cache storage protocol.

Defines the interface for a durable key -> payload store with a single
metadata document describing every entry.

The default implementation is ``FileCacheRepository`` (one JSON file per
key plus a metadata file, all written atomically).
"""

from typing import Protocol, runtime_checkable

from response_cache.models import CacheMetadata, CachePayload


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for cache storage backends.

    Any type that implements these methods satisfies the protocol, no
    explicit inheritance needed. Payload I/O is async; metadata I/O is
    synchronous so it can be flushed during shutdown.
    """

    def load_metadata(self) -> CacheMetadata:
        """Load the metadata document.

        Returns:
            The stored metadata, or an empty document if it is missing or
            cannot be parsed
        """
        ...

    def save_metadata(self, metadata: CacheMetadata) -> None:
        """Persist the metadata document atomically.

        Raises:
            PersistenceError: If the document cannot be written
        """
        ...

    def encode_payload(self, payload: CachePayload, compress: bool) -> tuple[bytes, int]:
        """Serialize a payload to the exact bytes that will be stored.

        Returns:
            Tuple of (stored bytes, uncompressed size in bytes)
        """
        ...

    async def write_payload(self, cache_key: str, data: bytes, compressed: bool) -> None:
        """Write encoded payload bytes atomically.

        Raises:
            PersistenceError: If the payload cannot be written
        """
        ...

    async def read_payload(self, cache_key: str, compressed: bool) -> CachePayload:
        """Read and validate a payload.

        Raises:
            CorruptEntryError: If the payload is missing or unreadable
        """
        ...

    async def delete_payload(self, cache_key: str) -> bool:
        """Delete a payload, tolerating its absence.

        Returns:
            True if a file was removed
        """
        ...

    async def clear_payloads(self) -> int:
        """Delete every payload.

        Returns:
            Number of payloads deleted
        """
        ...

    def health_check(self) -> bool:
        """Check if the storage location is usable."""
        ...
