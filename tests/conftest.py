"""
Shared fixtures for response cache tests.

Every cache lives in its own ``tmp_path`` directory with background
cleanup and analytics turned off unless a test opts in.
"""

from pathlib import Path
from typing import Any

import pytest

from response_cache.config import CacheConfig
from response_cache.entities import CacheEvent
from response_cache.models import CacheContext, CacheEntry
from response_cache.repositories import FileCacheRepository
from response_cache.services import CacheService, WarmupConfig
from response_cache.utils import MS_PER_DAY, now_ms


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def cache_config(cache_dir: Path) -> CacheConfig:
    return CacheConfig(
        cache_dir=cache_dir,
        background_cleanup=False,
        enable_analytics=False,
        compression_enabled=False,
        similarity_threshold=0.75,
        max_cache_size=10 * 1024 * 1024,
        max_entries=1000,
        default_ttl_ms=MS_PER_DAY,
        warmup_queries=[],
    )


@pytest.fixture
async def cache(cache_config: CacheConfig):
    service = CacheService(config=cache_config, warmup_config=WarmupConfig())
    yield service
    await service.shutdown()


@pytest.fixture
def repository(cache_dir: Path) -> FileCacheRepository:
    return FileCacheRepository(cache_dir)


@pytest.fixture
def recorded_events(cache: CacheService) -> list[CacheEvent]:
    """Every event the ``cache`` fixture publishes."""
    events: list[CacheEvent] = []
    cache.subscribe("*", events.append)
    return events


def make_entry(
    size: int = 100,
    age_ms: float = 0,
    access_count: int = 1,
    ttl_ms: float = MS_PER_DAY,
    now: float | None = None,
) -> CacheEntry:
    """Build a metadata record created ``age_ms`` ago and last accessed then."""
    now = now if now is not None else now_ms()
    created = now - age_ms
    return CacheEntry(
        size=size,
        raw_size=size,
        created=created,
        expires_at=created + ttl_ms,
        last_accessed=created,
        access_count=access_count,
        query="q",
    )


class FakeGenerator:
    """ResponseGenerator that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, CacheContext]] = []

    async def generate(self, query: str, context: CacheContext) -> Any:
        self.calls.append((query, context))
        return f"answer to {query} ({context.framework or context.language})"


@pytest.fixture
def entry_factory():
    return make_entry


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()
