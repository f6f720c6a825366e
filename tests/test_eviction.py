"""
Tests for TTL + LRU eviction.
"""

import asyncio

import pytest

from response_cache.config import CacheConfig
from response_cache.entities import CacheEventType, CleanupResult
from response_cache.errors import PersistenceError
from response_cache.models import CacheMetadata
from response_cache.services import EvictionManager, lru_score
from response_cache.utils import BYTES_PER_MB, MS_PER_DAY, now_ms


class RecordingStore:
    """Minimal store that records deletions and saves."""

    def __init__(self, on_delete=None, fail_save=False, fail_delete=(), gate: asyncio.Event | None = None):
        self.deleted: list[str] = []
        self.saved = 0
        self._on_delete = on_delete
        self._fail_save = fail_save
        self._fail_delete = set(fail_delete)
        self._gate = gate

    async def delete_payload(self, cache_key: str) -> bool:
        if self._gate is not None:
            await self._gate.wait()
        if cache_key in self._fail_delete:
            raise PersistenceError(f"permission denied: {cache_key}")
        self.deleted.append(cache_key)
        if self._on_delete is not None:
            self._on_delete(cache_key)
        return True

    def save_metadata(self, metadata: CacheMetadata) -> None:
        if self._fail_save:
            raise PersistenceError("disk full")
        self.saved += 1


@pytest.fixture
def config(tmp_path):
    """Create an eviction config with 10 entries and 1000 bytes."""
    return CacheConfig(cache_dir=tmp_path, max_entries=10, max_cache_size=1000, background_cleanup=False)


def build_metadata(entries) -> CacheMetadata:
    metadata = CacheMetadata()
    for key, entry in entries.items():
        metadata.entries[key] = entry
    metadata.total_size = metadata.recompute_total_size()
    return metadata


def test_lru_score_prefers_old_rare_large(entry_factory):
    """Older, less used and larger entries score higher and are kept longer."""
    now = now_ms()
    fresh = entry_factory(now=now)
    assert lru_score(entry_factory(age_ms=MS_PER_DAY, now=now), now) > lru_score(fresh, now)
    assert lru_score(entry_factory(access_count=10, now=now), now) < lru_score(fresh, now)
    assert lru_score(entry_factory(size=5 * BYTES_PER_MB, now=now), now) > lru_score(fresh, now)


def test_lru_score_formula(entry_factory):
    now = now_ms()
    entry = entry_factory(size=BYTES_PER_MB, age_ms=2 * MS_PER_DAY, access_count=4, ttl_ms=10 * MS_PER_DAY, now=now)
    assert lru_score(entry, now) == pytest.approx(2 + 0.25 + 0.1)


def test_trigger_and_target_bands(config):
    manager = EvictionManager(config, RecordingStore())
    assert manager.needs_lru(total_size=801, entry_count=0)
    assert manager.needs_lru(total_size=0, entry_count=9)
    assert not manager.needs_lru(total_size=800, entry_count=8)
    assert manager.within_target(total_size=700, entry_count=7)
    assert not manager.within_target(total_size=701, entry_count=7)


async def test_expired_entries_removed_below_trigger(config, entry_factory):
    """Below the trigger band only expired entries go."""
    store = RecordingStore()
    metadata = build_metadata(
        {
            "live": entry_factory(size=100),
            "stale": entry_factory(size=50, age_ms=2000, ttl_ms=1000),
        }
    )

    result = await EvictionManager(config, store).run(metadata)

    assert result.expired_count == 1
    assert result.lru_count == 0
    assert result.size_freed == 50
    assert list(metadata.entries) == ["live"]
    assert metadata.total_size == 100
    assert store.deleted == ["stale"]
    assert store.saved == 1


async def test_count_trigger_evicts_lowest_scores_to_target(config, entry_factory):
    """Nine of ten entries is above 80%; eviction stops at 70%."""
    metadata = build_metadata({f"k{i}": entry_factory(size=10, age_ms=i * 60_000) for i in range(9)})

    result = await EvictionManager(config, RecordingStore()).run(metadata)

    assert result.lru_count == 2
    assert len(metadata.entries) == 7
    assert "k0" not in metadata.entries
    assert "k1" not in metadata.entries
    assert "k8" in metadata.entries


async def test_size_trigger_evicts_to_target(config, entry_factory):
    metadata = build_metadata({f"k{i}": entry_factory(size=180, age_ms=i * 60_000) for i in range(5)})

    result = await EvictionManager(config, RecordingStore()).run(metadata)

    assert result.lru_count == 2
    assert result.size_freed == 360
    assert metadata.total_size == 540
    assert sorted(metadata.entries) == ["k2", "k3", "k4"]
    assert metadata.total_size == metadata.recompute_total_size()


async def test_reserve_counts_toward_target(config, entry_factory):
    """Room is made for an entry that is about to be added."""
    metadata = build_metadata({f"k{i}": entry_factory(size=10, age_ms=i * 60_000) for i in range(7)})

    result = await EvictionManager(config, RecordingStore()).run(metadata, reserve_entries=2)

    assert result.lru_count == 2
    assert len(metadata.entries) == 5


async def test_entry_replaced_during_cleanup_survives(config, entry_factory):
    """An entry rewritten while its payload was being deleted is kept."""
    metadata = build_metadata({"stale": entry_factory(size=50, age_ms=2000, ttl_ms=1000)})

    def replace_entry(cache_key):
        metadata.entries[cache_key] = entry_factory(size=70)
        metadata.total_size = 70

    result = await EvictionManager(config, RecordingStore(on_delete=replace_entry)).run(metadata)

    assert result.entries_removed == 0
    assert metadata.entries["stale"].size == 70
    assert metadata.total_size == 70


async def test_events_published(config, entry_factory):
    events = []
    metadata = build_metadata(
        {
            "a": entry_factory(age_ms=2000, ttl_ms=1000),
            "b": entry_factory(age_ms=2000, ttl_ms=1000),
        }
    )

    await EvictionManager(config, RecordingStore(), events.append).run(metadata)

    assert [e.type for e in events] == [CacheEventType.REMOVE, CacheEventType.REMOVE, CacheEventType.CLEANUP]
    assert {e.cache_key for e in events[:2]} == {"a", "b"}
    assert events[-1].metadata["expired_count"] == 2


async def test_save_failure_reported(config, entry_factory):
    """A metadata write failure is published, not raised."""
    events = []
    metadata = build_metadata({"a": entry_factory(age_ms=2000, ttl_ms=1000)})

    result = await EvictionManager(config, RecordingStore(fail_save=True), events.append).run(metadata)

    assert result.entries_removed == 1
    assert CacheEventType.ERROR in [e.type for e in events]


async def test_delete_failure_keeps_entry(config, entry_factory):
    """An entry whose payload cannot be deleted stays indexed and is reported."""
    events = []
    metadata = build_metadata(
        {
            "locked": entry_factory(size=40, age_ms=2000, ttl_ms=1000),
            "stale": entry_factory(size=60, age_ms=2000, ttl_ms=1000),
        }
    )
    store = RecordingStore(fail_delete={"locked"})

    result = await EvictionManager(config, store, events.append).run(metadata)

    assert result.expired_count == 1
    assert result.size_freed == 60
    assert list(metadata.entries) == ["locked"]
    assert metadata.total_size == 40
    errors = [e for e in events if e.type == CacheEventType.ERROR]
    assert len(errors) == 1
    assert errors[0].cache_key == "locked"
    assert "permission denied" in errors[0].error


async def test_pending_keys_during_pass(config, entry_factory):
    """Victims are exposed while their payloads are being deleted."""
    gate = asyncio.Event()
    metadata = build_metadata(
        {
            "live": entry_factory(),
            "stale": entry_factory(age_ms=2000, ttl_ms=1000),
        }
    )
    manager = EvictionManager(config, RecordingStore(gate=gate))
    assert manager.pending_keys == frozenset()

    task = asyncio.create_task(manager.run(metadata))
    await asyncio.sleep(0)
    assert manager.pending_keys == {"stale"}

    gate.set()
    await task
    assert manager.pending_keys == frozenset()


async def test_single_flight(config, entry_factory):
    """A pass requested while another runs is skipped."""
    gate = asyncio.Event()
    metadata = build_metadata({"a": entry_factory(age_ms=2000, ttl_ms=1000)})
    manager = EvictionManager(config, RecordingStore(gate=gate))

    first = asyncio.create_task(manager.run(metadata))
    await asyncio.sleep(0)
    assert manager.is_running

    assert await manager.run(metadata) == CleanupResult()

    gate.set()
    result = await first
    assert result.expired_count == 1
    assert not manager.is_running


async def test_update_config_changes_ceilings(config, entry_factory):
    metadata = build_metadata({f"k{i}": entry_factory(size=10) for i in range(5)})
    manager = EvictionManager(config, RecordingStore())
    manager.update_config(CacheConfig(cache_dir=config.cache_dir, max_entries=5, max_cache_size=1000))

    result = await manager.run(metadata)

    assert len(metadata.entries) == 3
    assert result.lru_count == 2
