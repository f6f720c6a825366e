"""TTL + LRU hybrid eviction.

Phase 1 drops every expired entry. Phase 2 runs only while the cache is above
80% of its size or entry ceiling and evicts the lowest-scored entries until
both are at or below 70%; the gap between the two keeps the cache from
thrashing at the boundary.
"""

import asyncio
import logging
import time
from collections.abc import Callable

from response_cache.config import CacheConfig
from response_cache.entities import CacheEvent, CacheEventType, CleanupResult
from response_cache.errors import PersistenceError
from response_cache.models import CacheEntry, CacheMetadata
from response_cache.protocols import CacheStore
from response_cache.utils import BYTES_PER_MB, MS_PER_DAY, now_ms

logger = logging.getLogger(__name__)

TRIGGER_RATIO = 0.8
TARGET_RATIO = 0.7


def lru_score(entry: CacheEntry, now: float) -> float:
    """Eviction priority; the lowest-scoring entries are evicted first.

    Days since last access, plus the inverse access count, plus a tenth of
    the size in MB.
    """
    age_days = (now - entry.last_accessed) / MS_PER_DAY
    access_score = 1 / (entry.access_count or 1)
    size_mb = entry.size / BYTES_PER_MB
    return age_days + access_score + 0.1 * size_mb


class EvictionManager:
    """Runs cleanup passes over a cache's metadata, one at a time.

    Victims are chosen from the current metadata, their payloads deleted,
    and only then is the metadata updated and persisted in one step, so a
    request served while the pass is deleting files still sees the
    pre-cleanup index. ``pending_keys`` names the entries whose files may
    already be gone. A victim whose file cannot be deleted is kept.
    """

    def __init__(
        self,
        config: CacheConfig,
        repository: CacheStore,
        publish: Callable[[CacheEvent], None] | None = None,
    ) -> None:
        self._config = config
        self._repository = repository
        self._publish = publish or (lambda event: None)
        self._lock = asyncio.Lock()
        self._pending: frozenset[str] = frozenset()

    @property
    def is_running(self) -> bool:
        """True while a cleanup pass is in progress."""
        return self._lock.locked()

    @property
    def pending_keys(self) -> frozenset[str]:
        """Keys selected by the running pass whose metadata is not yet updated.

        Their payload files may already be gone.
        """
        return self._pending

    def update_config(self, config: CacheConfig) -> None:
        """Use new size/count ceilings for subsequent passes."""
        self._config = config

    def needs_lru(self, total_size: int, entry_count: int) -> bool:
        """Whether size or count is above the trigger band."""
        return (
            total_size > self._config.max_cache_size * TRIGGER_RATIO
            or entry_count > self._config.max_entries * TRIGGER_RATIO
        )

    def within_target(self, total_size: int, entry_count: int) -> bool:
        """Whether size and count are both inside the target band."""
        return (
            total_size <= self._config.max_cache_size * TARGET_RATIO
            and entry_count <= self._config.max_entries * TARGET_RATIO
        )

    async def run(
        self,
        metadata: CacheMetadata,
        reserve_size: int = 0,
        reserve_entries: int = 0,
    ) -> CleanupResult:
        """Run one cleanup pass.

        Args:
            metadata: The live metadata document (mutated in place)
            reserve_size: Bytes about to be added by the caller
            reserve_entries: Entries about to be added by the caller

        Returns:
            Counts of removed entries; all zeros if a pass was already running
        """
        if self._lock.locked():
            logger.debug("Cleanup already running, skipping")
            return CleanupResult()

        async with self._lock:
            start = time.perf_counter()
            now = now_ms()
            expired, lru = self._select_victims(metadata, now, reserve_size, reserve_entries)
            victims = [k for k, _ in expired] + [k for k, _ in lru]
            failed: set[str] = set()

            self._pending = frozenset(victims)
            try:
                for cache_key in victims:
                    try:
                        await self._repository.delete_payload(cache_key)
                    except PersistenceError as e:
                        logger.warning("Cleanup could not delete payload %s: %s", cache_key[:16], e)
                        failed.add(cache_key)
                        self._publish(
                            CacheEvent(
                                type=CacheEventType.ERROR,
                                cache_key=cache_key,
                                error=str(e),
                                metadata={"operation": "cleanup"},
                            )
                        )

                # Entries whose payload is still on disk stay indexed
                expired = [(k, e) for k, e in expired if k not in failed]
                lru = [(k, e) for k, e in lru if k not in failed]
                size_freed, expired_count, lru_count = self._apply(metadata, expired, lru)
            finally:
                self._pending = frozenset()

            metadata.last_cleanup = now
            try:
                self._repository.save_metadata(metadata)
            except PersistenceError as e:
                logger.warning("Cleanup could not persist metadata: %s", e)
                self._publish(CacheEvent(type=CacheEventType.ERROR, error=str(e)))

            result = CleanupResult(
                entries_removed=expired_count + lru_count,
                size_freed=size_freed,
                expired_count=expired_count,
                lru_count=lru_count,
                duration_ms=(time.perf_counter() - start) * 1000,
            )

        self._publish(
            CacheEvent(
                type=CacheEventType.CLEANUP,
                duration=result.duration_ms,
                metadata={
                    "entries_removed": result.entries_removed,
                    "size_freed": result.size_freed,
                    "expired_count": result.expired_count,
                    "lru_count": result.lru_count,
                },
            )
        )
        logger.info(
            "Cleanup complete: removed %d entries (%d expired, %d LRU), freed %dKB in %.0fms",
            result.entries_removed,
            expired_count,
            lru_count,
            round(size_freed / 1024),
            result.duration_ms,
        )
        return result

    def _select_victims(
        self,
        metadata: CacheMetadata,
        now: float,
        reserve_size: int,
        reserve_entries: int,
    ) -> tuple[list[tuple[str, CacheEntry]], list[tuple[str, CacheEntry]]]:
        expired = [(k, e) for k, e in metadata.entries.items() if e.is_expired(now)]

        size = metadata.total_size - sum(e.size for _, e in expired) + reserve_size
        count = len(metadata.entries) - len(expired) + reserve_entries

        lru: list[tuple[str, CacheEntry]] = []
        if not self.needs_lru(size, count):
            return expired, lru

        expired_keys = {k for k, _ in expired}
        remaining = [(k, e) for k, e in metadata.entries.items() if k not in expired_keys]
        remaining.sort(key=lambda item: lru_score(item[1], now))

        for cache_key, entry in remaining:
            if self.within_target(size, count):
                break
            lru.append((cache_key, entry))
            size -= entry.size
            count -= 1

        return expired, lru

    def _apply(
        self,
        metadata: CacheMetadata,
        expired: list[tuple[str, CacheEntry]],
        lru: list[tuple[str, CacheEntry]],
    ) -> tuple[int, int, int]:
        size_freed = 0
        counts = {"expired": 0, "lru": 0}

        for phase, victims in (("expired", expired), ("lru", lru)):
            for cache_key, selected in victims:
                current = metadata.entries.get(cache_key)
                # Replaced by a concurrent set while payloads were being deleted
                if current is None or current.created != selected.created:
                    continue
                del metadata.entries[cache_key]
                metadata.total_size -= current.size
                size_freed += current.size
                counts[phase] += 1
                self._publish(CacheEvent(type=CacheEventType.REMOVE, cache_key=cache_key))

        return size_freed, counts["expired"], counts["lru"]
