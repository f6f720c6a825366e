"""Local filesystem implementation of CacheStore.

Layout inside ``cache_dir``:
    - ``cache-metadata.json``: every entry's summary plus aggregate counters
    - ``<cache_key>.json`` or ``<cache_key>.json.gz``: one payload per key

Every file is written to a unique temp file first and renamed into place,
so readers never observe a partially written file.
"""

import gzip
import logging
import os
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from response_cache.errors import CorruptEntryError, PersistenceError
from response_cache.models import CacheMetadata, CachePayload
from response_cache.utils import atomic_write_bytes, temp_path_for

logger = logging.getLogger(__name__)

METADATA_FILENAME = "cache-metadata.json"
PAYLOAD_SUFFIX = ".json"
COMPRESSED_SUFFIX = ".json.gz"


class FileCacheRepository:
    """Filesystem cache store.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.

    Example:
        ```python
        repo = FileCacheRepository.create(Path(".response-cache"))
        data, raw_size = repo.encode_payload(payload, compress=True)
        await repo.write_payload(key, data, compressed=True)
        ```
    """

    def __init__(self, cache_dir: Path | str) -> None:
        """Initialize the repository, creating ``cache_dir`` if needed.

        Args:
            cache_dir: Directory holding the metadata and payload files.

        Raises:
            PersistenceError: If the directory cannot be created
        """
        self._cache_dir = Path(cache_dir)
        self._metadata_file = self._cache_dir / METADATA_FILENAME
        try:
            self._cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create cache directory {self._cache_dir}: {e}") from e

    @classmethod
    def create(cls, cache_dir: Path | str) -> "FileCacheRepository":
        """Factory method mirroring the other layers' ``create`` constructors."""
        return cls(cache_dir=cache_dir)

    @property
    def cache_dir(self) -> Path:
        """Get the cache directory."""
        return self._cache_dir

    def payload_path(self, cache_key: str, compressed: bool) -> Path:
        """Path of the payload file for ``cache_key``."""
        suffix = COMPRESSED_SUFFIX if compressed else PAYLOAD_SUFFIX
        return self._cache_dir / f"{cache_key}{suffix}"

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def load_metadata(self) -> CacheMetadata:
        """Load metadata, treating a missing or corrupt file as an empty store."""
        if not self._metadata_file.exists():
            return CacheMetadata()

        try:
            metadata = CacheMetadata.model_validate_json(self._metadata_file.read_bytes())
        except (OSError, ValidationError, ValueError) as e:
            logger.warning("Error loading cache metadata, starting empty: %s", e)
            return CacheMetadata()

        actual = metadata.recompute_total_size()
        if actual != metadata.total_size:
            logger.warning(
                "Cache metadata total_size %d disagrees with entries (%d), repairing",
                metadata.total_size,
                actual,
            )
            metadata.total_size = actual
        return metadata

    def save_metadata(self, metadata: CacheMetadata) -> None:
        """Persist metadata atomically."""
        try:
            atomic_write_bytes(self._metadata_file, metadata.model_dump_json(indent=2).encode("utf-8"))
        except OSError as e:
            raise PersistenceError(f"Error saving cache metadata: {e}") from e

    # ------------------------------------------------------------------
    # Payloads
    # ------------------------------------------------------------------

    def encode_payload(self, payload: CachePayload, compress: bool) -> tuple[bytes, int]:
        """Serialize a payload, gzip-compressing it when ``compress`` is set."""
        raw = payload.model_dump_json().encode("utf-8")
        if compress:
            return gzip.compress(raw), len(raw)
        return raw, len(raw)

    async def write_payload(self, cache_key: str, data: bytes, compressed: bool) -> None:
        """Write payload bytes via temp file and rename.

        A stale file with the other suffix (the entry was previously stored
        with the opposite compression setting) is removed afterwards.
        """
        path = self.payload_path(cache_key, compressed)
        tmp = temp_path_for(path)
        try:
            async with aiofiles.open(tmp, "wb") as f:
                await f.write(data)
            await aiofiles.os.replace(tmp, path)
        except OSError as e:
            if await aiofiles.os.path.exists(tmp):
                await aiofiles.os.remove(tmp)
            raise PersistenceError(f"Error writing payload {cache_key[:16]}: {e}") from e

        stale = self.payload_path(cache_key, not compressed)
        if await aiofiles.os.path.exists(stale):
            await aiofiles.os.remove(stale)

    async def read_payload(self, cache_key: str, compressed: bool) -> CachePayload:
        """Read and validate a payload."""
        path = self.payload_path(cache_key, compressed)
        try:
            async with aiofiles.open(path, "rb") as f:
                data = await f.read()
        except FileNotFoundError as e:
            raise CorruptEntryError(cache_key, "payload file missing") from e
        except OSError as e:
            raise CorruptEntryError(cache_key, str(e)) from e

        try:
            if compressed:
                data = gzip.decompress(data)
            return CachePayload.model_validate_json(data)
        except (OSError, EOFError, ValidationError, ValueError) as e:
            raise CorruptEntryError(cache_key, str(e)) from e

    async def delete_payload(self, cache_key: str) -> bool:
        """Delete both possible payload files for ``cache_key``."""
        removed = False
        for compressed in (False, True):
            path = self.payload_path(cache_key, compressed)
            try:
                await aiofiles.os.remove(path)
                removed = True
            except FileNotFoundError:
                continue
            except OSError as e:
                raise PersistenceError(f"Error removing payload {cache_key[:16]}: {e}") from e
        return removed

    async def clear_payloads(self) -> int:
        """Delete every payload and leftover temp file; keep the metadata file."""
        deleted = 0
        for name in await aiofiles.os.listdir(self._cache_dir):
            if name.startswith(METADATA_FILENAME):
                continue
            is_payload = name.endswith(PAYLOAD_SUFFIX) or name.endswith(COMPRESSED_SUFFIX)
            if not (is_payload or name.endswith(".tmp")):
                continue
            try:
                await aiofiles.os.remove(self._cache_dir / name)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Could not delete %s: %s", name, e)
                continue
            if is_payload:
                deleted += 1
        return deleted

    def health_check(self) -> bool:
        """Check if the cache directory exists and is writable."""
        return self._cache_dir.is_dir() and os.access(self._cache_dir, os.W_OK)
