"""Cache service for core business logic.

This service orchestrates cache operations by coordinating the repository
(durable storage), the key generator, the similarity matcher, the eviction
manager and the background scheduler, and publishes every lifecycle event
on an ``EventBus``.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from response_cache.analytics import AnalyticsConfig, CacheAnalytics
from response_cache.config import CacheConfig
from response_cache.entities import (
    CacheEvent,
    CacheEventType,
    CacheOperationOptions,
    CacheStats,
    CleanupResult,
    PerformanceStats,
    QueryStats,
    WarmupResult,
)
from response_cache.errors import ConfigurationError, CorruptEntryError, NotFoundError, PersistenceError
from response_cache.events import EventBus, EventHandler
from response_cache.models import (
    CacheContext,
    CacheEntry,
    CacheMetadata,
    CachePayload,
    PerformanceMetrics,
    estimate_token_count,
)
from response_cache.protocols import CacheStore, ResponseGenerator
from response_cache.repositories import FileCacheRepository
from response_cache.scheduler import BackgroundScheduler
from response_cache.utils import iso_from_ms, now_ms, truncate

from .cache_warming import CacheWarmer, WarmupConfig
from .eviction import EvictionManager
from .key_generator import CacheKeyGenerator
from .similarity_matcher import SimilarityConfig, SimilarityMatcher

logger = logging.getLogger(__name__)

RECENT_WINDOW_MS = 60 * 60 * 1000
TOP_QUERY_LIMIT = 10

ContextLike = CacheContext | Mapping[str, Any] | None


class CacheService:
    """Local, file-backed response cache with fuzzy lookup.

    This service depends on PROTOCOLS, not concrete implementations:
    - CacheStore: local files by default, anything structurally compatible
    - ResponseGenerator: optional, lets warming populate entries

    None of the public coroutines raise on storage problems. Failures are
    logged, published as ``error`` events and degrade to a miss, a skipped
    write or a zero result. Only invalid configuration raises.

    Example:
        ```python
        from response_cache.services import CacheService

        # Create with defaults (settings from the environment)
        cache = CacheService.create()

        # Or with custom options
        cache = CacheService.create(cache_dir=".cache", similarity_threshold=0.8)

        async with CacheService.create() as cache:
            response = await cache.get("How do I center a div?", {"language": "css"})
            if response is None:
                await cache.set("How do I center a div?", {"language": "css"}, "use flexbox")
        ```
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        repository: CacheStore | None = None,
        response_generator: ResponseGenerator | None = None,
        event_bus: EventBus | None = None,
        analytics: CacheAnalytics | None = None,
        warmup_config: WarmupConfig | None = None,
    ) -> None:
        """Initialize the cache service.

        Args:
            config: Cache options. Defaults to ``CacheConfig()`` (environment settings).
            repository: Storage backend. Defaults to files under ``config.cache_dir``.
            response_generator: Used by ``warm_cache`` to populate entries.
            event_bus: Event channel. A private one is created if omitted.
            analytics: Analytics engine. Created when ``enable_analytics`` is set.
            warmup_config: Warming caps and template options. Defaults to the
                environment settings.

        Raises:
            ConfigurationError: If the options are invalid or the cache
                directory cannot be created
        """
        self._config = config or CacheConfig()
        try:
            self._repository = repository or FileCacheRepository.create(self._config.cache_dir)
        except PersistenceError as e:
            raise ConfigurationError(str(e)) from e

        self._generator = response_generator
        self._events = event_bus or EventBus()
        self._keys = CacheKeyGenerator()
        self._matcher = SimilarityMatcher(SimilarityConfig(threshold=self._config.similarity_threshold))
        self._eviction = EvictionManager(self._config, self._repository, self._events.publish)
        self._warmer = CacheWarmer(warmup_config or WarmupConfig.from_settings())
        self._scheduler = BackgroundScheduler(self._config.cleanup_interval_ms, self.cleanup, name="cleanup")
        self._metrics = PerformanceMetrics()
        self._metadata: CacheMetadata = self._repository.load_metadata()
        # cache_key -> (original query, context), filled from payloads on demand
        self._index: dict[str, tuple[str, CacheContext]] = {}
        self._closed = False

        self._analytics = analytics
        if self._analytics is None and self._config.enable_analytics:
            self._analytics = CacheAnalytics(
                AnalyticsConfig.from_settings(),
                storage_dir=self._config.cache_dir / "analytics",
                stats_provider=self.get_stats,
            )
        if self._analytics is not None:
            self._events.subscribe("*", self._analytics.record_event)

        logger.info(
            "Response cache ready at %s: %d entries, %dKB",
            self._config.cache_dir,
            len(self._metadata.entries),
            round(self._metadata.total_size / 1024),
        )
        self._start_background()

    @classmethod
    def create(
        cls,
        response_generator: ResponseGenerator | None = None,
        **options: Any,
    ) -> "CacheService":
        """Factory method to create CacheService with sensible defaults.

        Args:
            response_generator: Optional collaborator for cache warming.
            **options: ``CacheConfig`` fields overriding the environment settings.

        Returns:
            Configured CacheService instance
        """
        return cls(config=CacheConfig.from_settings(**options), response_generator=response_generator)

    async def __aenter__(self) -> "CacheService":
        self._start_background()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get(
        self,
        query: str,
        context: ContextLike = None,
        options: CacheOperationOptions | None = None,
    ) -> Any | None:
        """Look up a cached response.

        Business logic:
        1. Exact key lookup (expired or unreadable entries are evicted)
        2. Unless ``skip_similarity``, fuzzy search over live entries
        3. Otherwise count a miss

        Args:
            query: The query text
            context: Context the query was asked in
            options: Per-call options

        Returns:
            The cached response, or None on a miss
        """
        self._start_background()
        options = options or CacheOperationOptions()
        start = time.perf_counter()
        ctx = CacheContext.coerce(context)
        cache_key = self._keys.generate(query, ctx)

        try:
            found, response = await self._get_direct(cache_key)
            if found:
                duration = self._elapsed_ms(start)
                self._metadata.hit_count += 1
                self._metrics.record_hit(duration)
                self._persist()
                self._events.publish(
                    CacheEvent(type=CacheEventType.HIT, cache_key=cache_key, query=query, duration=duration)
                )
                logger.debug("Direct cache hit for %s", cache_key[:16])
                return response

            if not options.skip_similarity:
                match = await self._get_similar(query, ctx)
                if match is not None:
                    matched_key, similarity, response = match
                    duration = self._elapsed_ms(start)
                    self._metadata.similarity_hit_count += 1
                    self._metrics.record_hit(duration, similarity=True)
                    self._persist()
                    self._events.publish(
                        CacheEvent(
                            type=CacheEventType.SIMILARITY_HIT,
                            cache_key=matched_key,
                            query=query,
                            similarity=similarity,
                            duration=duration,
                        )
                    )
                    logger.debug("Similarity cache hit (%.1f%% match)", similarity * 100)
                    return response
        except PersistenceError as e:
            self._report_error("get", e, cache_key)

        duration = self._elapsed_ms(start)
        self._metadata.miss_count += 1
        self._metrics.record_miss(duration)
        self._persist()
        self._events.publish(CacheEvent(type=CacheEventType.MISS, query=query, duration=duration))
        return None

    async def _get_direct(self, cache_key: str) -> tuple[bool, Any]:
        entry = self._metadata.entries.get(cache_key)
        if entry is None:
            return False, None

        if entry.is_expired():
            await self._evict(cache_key)
            return False, None

        payload = await self._read_or_evict(cache_key, entry)
        if payload is None:
            return False, None

        self._index[cache_key] = (payload.query, payload.context)
        self._touch(cache_key)
        return True, payload.response

    async def _get_similar(self, query: str, context: CacheContext) -> tuple[str, float, Any] | None:
        await self._fill_index()
        matches = self._matcher.find_similar(query, context, self._index, self._metadata.entries)

        for match in matches:
            payload = await self._read_or_evict(match.cache_key, match.entry)
            if payload is None:
                continue
            self._touch(match.cache_key, similarity=match.similarity)
            return match.cache_key, match.similarity, payload.response
        return None

    async def _read_or_evict(self, cache_key: str, entry: CacheEntry) -> CachePayload | None:
        """Read a payload; an unreadable one is evicted and reported.

        A key the running cleanup pass is removing is a plain miss: its file
        may already be deleted while metadata still lists it.
        """
        try:
            return await self._repository.read_payload(cache_key, entry.compressed)
        except CorruptEntryError as e:
            if cache_key in self._eviction.pending_keys:
                logger.debug("Payload %s is being evicted, treating as a miss", cache_key[:16])
                return None
            self._report_error("read", e, cache_key)
            await self._evict(cache_key)
            return None

    async def _fill_index(self) -> None:
        """Load query/context for live entries the index does not know yet."""
        for cache_key in [k for k in self._metadata.entries if k not in self._index]:
            entry = self._metadata.entries.get(cache_key)
            if entry is None or entry.is_expired():
                continue
            payload = await self._read_or_evict(cache_key, entry)
            if payload is not None:
                self._index[cache_key] = (payload.query, payload.context)

    def _touch(self, cache_key: str, similarity: float | None = None) -> None:
        # Re-fetch: the entry may have been replaced while the payload was read
        entry = self._metadata.entries.get(cache_key)
        if entry is None:
            return
        entry.last_accessed = now_ms()
        entry.access_count += 1
        if similarity is not None:
            entry.similarity = similarity

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def set(
        self,
        query: str,
        context: ContextLike,
        response: Any,
        options: CacheOperationOptions | None = None,
    ) -> str | None:
        """Store a response.

        Business logic:
        1. Build and encode the payload so its stored size is known
        2. Run eviction first if the entry would breach a ceiling
        3. Write the payload atomically, then update and persist metadata

        Args:
            query: The query text
            context: Context the query was asked in
            response: Any JSON-serializable response
            options: Per-call options (ttl, compress)

        Returns:
            The cache key, or None if the entry was not stored
        """
        self._start_background()
        options = options or CacheOperationOptions()
        ctx = CacheContext.coerce(context)
        cache_key = self._keys.generate(query, ctx)

        ttl = options.ttl if options.ttl is not None else self._config.default_ttl_ms
        if ttl <= 0:
            logger.warning("Ignoring non-positive ttl %s, using default %dms", ttl, self._config.default_ttl_ms)
            ttl = self._config.default_ttl_ms
        compress = self._config.compression_enabled if options.compress is None else options.compress

        now = now_ms()
        payload = CachePayload(
            query=query,
            context=ctx,
            response=response,
            timestamp=now,
            expires_at=now + ttl,
            ai_model=ctx.ai_model,
            token_count=estimate_token_count(response),
            response_time=ctx.response_time,
        )
        try:
            data, raw_size = self._repository.encode_payload(payload, compress)
        except (TypeError, ValueError) as e:
            self._report_error("encode", e, cache_key)
            return None

        size = len(data)
        if size > self._config.max_cache_size:
            logger.warning(
                "Entry of %d bytes exceeds max_cache_size %d, not caching",
                size,
                self._config.max_cache_size,
            )
            self._report_error("set", ValueError(f"entry of {size} bytes exceeds cache size"), cache_key)
            return None

        existing = self._metadata.entries.get(cache_key)
        if (
            self._metadata.total_size + size - (existing.size if existing else 0) > self._config.max_cache_size
            or len(self._metadata.entries) + (0 if existing else 1) > self._config.max_entries
        ):
            # The entry being replaced may be a victim itself, so reserve a full new slot
            await self.cleanup(reserve_size=size, reserve_entries=1)

        try:
            await self._repository.write_payload(cache_key, data, compress)
        except PersistenceError as e:
            self._report_error("set", e, cache_key)
            return None

        # Re-read: cleanup or another call may have changed it during the write
        previous = self._metadata.entries.get(cache_key)
        if previous is not None:
            self._metadata.total_size -= previous.size

        self._metadata.entries[cache_key] = CacheEntry(
            size=size,
            raw_size=raw_size,
            created=now,
            expires_at=now + ttl,
            last_accessed=now,
            access_count=1,
            query=truncate(query),
            compressed=compress,
        )
        self._metadata.total_size += size
        self._index[cache_key] = (query, ctx)
        self._persist()

        self._events.publish(CacheEvent(type=CacheEventType.SET, cache_key=cache_key, query=query))
        logger.debug("Cached response for %s (%d bytes)", cache_key[:16], size)
        return cache_key

    async def remove(self, cache_key: str) -> bool:
        """Delete one entry.

        Returns:
            True if the entry existed and was removed, False otherwise
        """
        try:
            self.get_entry(cache_key)
        except NotFoundError:
            logger.debug("Nothing to remove for %s", cache_key[:16])
            return False
        return await self._evict(cache_key)

    async def _evict(self, cache_key: str) -> bool:
        try:
            await self._repository.delete_payload(cache_key)
        except PersistenceError as e:
            self._report_error("remove", e, cache_key)
            return False

        entry = self._metadata.entries.pop(cache_key, None)
        self._index.pop(cache_key, None)
        if entry is None:
            return False
        self._metadata.total_size -= entry.size
        self._persist()
        self._events.publish(CacheEvent(type=CacheEventType.REMOVE, cache_key=cache_key))
        return True

    async def cleanup(self, reserve_size: int = 0, reserve_entries: int = 0) -> CleanupResult:
        """Run an eviction pass (expired entries, then LRU if over 80%).

        Only one pass runs at a time; a call made while a pass is running
        returns an all-zero result.
        """
        result = await self._eviction.run(
            self._metadata,
            reserve_size=reserve_size,
            reserve_entries=reserve_entries,
        )
        for cache_key in [k for k in self._index if k not in self._metadata.entries]:
            del self._index[cache_key]
        return result

    async def warm_cache(self, queries: list[str] | None = None) -> WarmupResult:
        """Precompute keys for common queries across common contexts.

        ``queries``, configured ``warmup_queries``, built-in queries and, when
        enabled, template queries are combined and capped by the warmup
        config. With a ``ResponseGenerator`` configured, combinations not
        yet cached are generated and stored; without one only keys are
        computed. Existence is checked against metadata, so warming does not
        change hit or miss counters.
        """
        self._start_background()
        start = time.perf_counter()
        all_queries = self._warmer.queries(custom=queries, configured=self._config.warmup_queries)
        contexts = self._warmer.contexts()
        errors: list[str] = []
        queries_processed = 0
        keys_generated = 0
        populated = 0

        logger.info("Warming cache with %d queries across %d contexts", len(all_queries), len(contexts))
        for query in all_queries:
            queries_processed += 1
            try:
                for context in contexts:
                    cache_key = self._keys.generate(query, context)
                    keys_generated += 1
                    if self._generator is None:
                        continue
                    entry = self._metadata.entries.get(cache_key)
                    if entry is not None and not entry.is_expired():
                        continue
                    ctx = CacheContext.coerce(context)
                    response = await self._generator.generate(query, ctx)
                    if await self.set(query, ctx, response) is not None:
                        populated += 1
            except Exception as e:
                logger.warning("Error warming query %r: %s", truncate(query, 50), e)
                errors.append(f'Error warming query "{query}": {e}')

        result = WarmupResult(
            queries_processed=queries_processed,
            cache_keys_generated=keys_generated,
            entries_populated=populated,
            duration_ms=self._elapsed_ms(start),
            errors=errors,
        )
        self._warmer.record(result)
        self._events.publish(
            CacheEvent(
                type=CacheEventType.WARMUP,
                duration=result.duration_ms,
                metadata={
                    "queries_processed": queries_processed,
                    "cache_keys_generated": keys_generated,
                    "entries_populated": populated,
                    "errors": len(errors),
                },
            )
        )
        logger.info(
            "Cache warming complete: %d queries, %d keys, %d populated in %.0fms",
            queries_processed,
            keys_generated,
            populated,
            result.duration_ms,
        )
        return result

    async def clear_cache(self) -> bool:
        """Delete every entry and reset the counters.

        Returns:
            True if the cache was cleared and the empty metadata persisted
        """
        try:
            deleted = await self._repository.clear_payloads()
        except (PersistenceError, OSError) as e:
            self._report_error("clear", e)
            return False

        self._metadata = CacheMetadata()
        self._index.clear()
        if not self._persist():
            return False
        logger.info("Cache cleared: %d payloads deleted", deleted)
        return True

    # ------------------------------------------------------------------
    # Introspection and lifecycle
    # ------------------------------------------------------------------

    def get_stats(self) -> CacheStats:
        """Snapshot of the cache.

        Returns:
            CacheStats with rates and utilization as percentages
        """
        metadata = self._metadata
        now = now_ms()
        entries = list(metadata.entries.values())

        total_requests = metadata.hit_count + metadata.miss_count + metadata.similarity_hit_count
        hit_rate = _percent(metadata.hit_count, total_requests)
        similarity_hit_rate = _percent(metadata.similarity_hit_count, total_requests)
        total_size_kb = round(metadata.total_size / 1024, 2)
        raw_total = sum(e.raw_size or e.size for e in entries)

        top = sorted(entries, key=lambda e: e.access_count, reverse=True)[:TOP_QUERY_LIMIT]

        return CacheStats(
            entry_count=len(entries),
            total_size_kb=total_size_kb,
            max_size_kb=round(self._config.max_cache_size / 1024, 2),
            utilization_percent=_percent(metadata.total_size, self._config.max_cache_size),
            entry_utilization_percent=_percent(len(entries), self._config.max_entries),
            hit_rate=hit_rate,
            miss_rate=_percent(metadata.miss_count, total_requests),
            similarity_hit_rate=similarity_hit_rate,
            total_requests=total_requests,
            hit_count=metadata.hit_count,
            miss_count=metadata.miss_count,
            similarity_hit_count=metadata.similarity_hit_count,
            average_response_time=round(self._metrics.avg_lookup_time_ms, 2),
            recent_entries=sum(1 for e in entries if now - e.created < RECENT_WINDOW_MS),
            expired_entries=sum(1 for e in entries if e.is_expired(now)),
            last_cleanup=iso_from_ms(metadata.last_cleanup),
            top_queries=[
                QueryStats(
                    query=e.query,
                    count=e.access_count,
                    average_similarity=e.similarity or 0.0,
                    last_used=iso_from_ms(e.last_accessed),
                )
                for e in top
            ],
            performance=PerformanceStats(
                average_cache_hit_time=round(self._metrics.avg_hit_time_ms, 2),
                average_cache_miss_time=round(self._metrics.avg_miss_time_ms, 2),
                cache_efficiency=round(hit_rate + similarity_hit_rate * 0.8, 2),
                memory_usage=total_size_kb,
                disk_usage=total_size_kb,
                compression_ratio=round(metadata.total_size / raw_total, 3) if raw_total else 1.0,
            ),
        )

    def generate_cache_key(self, query: str, context: ContextLike = None) -> str:
        """Key under which ``query`` asked in ``context`` is stored."""
        return self._keys.generate(query, context)

    def get_entry(self, cache_key: str) -> CacheEntry:
        """Metadata record for ``cache_key``, without touching it.

        Raises:
            NotFoundError: If no entry is stored under ``cache_key``
        """
        entry = self._metadata.entries.get(cache_key)
        if entry is None:
            raise NotFoundError(cache_key)
        return entry

    def get_warming_stats(self) -> dict[str, Any]:
        """Warming configuration, template count and the last run's outcome."""
        return self._warmer.get_stats()

    def update_warmup_config(self, **changes: Any) -> WarmupConfig:
        """Change warming caps and template options.

        Raises:
            ConfigurationError: On unknown or invalid options
        """
        return self._warmer.update_config(**changes)

    def subscribe(self, event_type: CacheEventType | str, handler: EventHandler) -> Callable[[], None]:
        """Register a lifecycle event handler; returns an unsubscribe callable."""
        return self._events.subscribe(event_type, handler)

    def update_config(self, **changes: Any) -> CacheConfig:
        """Apply validated option changes to a live cache.

        Raises:
            ConfigurationError: On unknown or invalid options, or an attempt
                to move the cache directory
        """
        new_config = self._config.with_changes(**changes)
        if new_config.cache_dir != self._config.cache_dir:
            raise ConfigurationError("cache_dir cannot be changed on a live cache")

        old_config, self._config = self._config, new_config
        self._matcher.update_config(threshold=new_config.similarity_threshold)
        self._eviction.update_config(new_config)

        if (
            new_config.cleanup_interval_ms != old_config.cleanup_interval_ms
            or new_config.background_cleanup != old_config.background_cleanup
        ):
            self._scheduler.cancel()
            self._scheduler = BackgroundScheduler(new_config.cleanup_interval_ms, self.cleanup, name="cleanup")
            self._start_background()
        return new_config

    async def shutdown(self) -> None:
        """Stop background work and flush metadata and analytics."""
        if self._closed:
            return
        self._closed = True
        await self._scheduler.stop()
        if self._analytics is not None:
            await self._analytics.shutdown()
        self._persist()
        logger.info("Response cache shut down (%d entries)", len(self._metadata.entries))

    async def is_healthy(self) -> bool:
        """Check if the storage location is usable."""
        return self._repository.health_check()

    @property
    def config(self) -> CacheConfig:
        """Get the current configuration."""
        return self._config

    @property
    def metadata(self) -> CacheMetadata:
        """Get the live metadata document (for testing)."""
        return self._metadata

    @property
    def repository(self) -> CacheStore:
        """Get the underlying repository (for testing)."""
        return self._repository

    @property
    def matcher(self) -> SimilarityMatcher:
        """Get the similarity matcher."""
        return self._matcher

    @property
    def analytics(self) -> CacheAnalytics | None:
        """Get the analytics engine, if enabled."""
        return self._analytics

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start_background(self) -> None:
        if self._closed:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; started on the first async call instead
            return
        if self._config.background_cleanup and not self._scheduler.is_running:
            self._scheduler.start()
        if self._analytics is not None:
            self._analytics.start()

    def _persist(self) -> bool:
        try:
            self._repository.save_metadata(self._metadata)
        except PersistenceError as e:
            self._report_error("save", e)
            return False
        return True

    def _report_error(self, operation: str, error: Exception, cache_key: str | None = None) -> None:
        logger.warning("Cache %s failed: %s", operation, error)
        self._events.publish(
            CacheEvent(
                type=CacheEventType.ERROR,
                cache_key=cache_key,
                error=str(error),
                metadata={"operation": operation},
            )
        )

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return (time.perf_counter() - start) * 1000


def _percent(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 2)
