"""
Tests for cache warming query and context generation.
"""

import pytest

from response_cache.entities import WarmupResult
from response_cache.errors import ConfigurationError
from response_cache.services import CacheService, CacheWarmer, WarmupConfig, generate_from_templates
from response_cache.services.cache_warming import (
    DEFAULT_WARMUP_QUERIES,
    QUERY_TEMPLATES,
    WARMUP_CONTEXTS,
    QueryTemplate,
)


def test_template_expansion():
    template = QueryTemplate("How to debug {language} applications?", ("python", "go"), category="debugging")

    assert template.expand() == ["How to debug python applications?", "How to debug go applications?"]
    assert not template.framework_specific


def test_generate_from_templates():
    queries = generate_from_templates()

    assert len(queries) == sum(len(t.values) for t in QUERY_TEMPLATES)
    assert "How to optimize react performance?" in queries
    assert "How to debug python applications?" in queries
    assert not any("{" in q for q in queries)


def test_generate_from_templates_language_only():
    """Without framework-specific templates only {language} ones expand."""
    queries = generate_from_templates(include_framework_specific=False)

    assert queries == [
        "How to debug javascript applications?",
        "How to debug typescript applications?",
        "How to debug python applications?",
        "How to debug go applications?",
    ]


def test_default_queries_and_contexts():
    warmer = CacheWarmer()

    assert warmer.queries() == list(DEFAULT_WARMUP_QUERIES)
    assert warmer.contexts() == [dict(c) for c in WARMUP_CONTEXTS]


def test_queries_order_and_dedupe():
    """Caller queries come first and duplicates keep their first position."""
    warmer = CacheWarmer()

    queries = warmer.queries(
        custom=["How do I center a div?", "Debugging techniques?"],
        configured=["How do I center a div?", "How do I deploy?"],
    )

    assert queries[:3] == ["How do I center a div?", "Debugging techniques?", "How do I deploy?"]
    assert queries.count("Debugging techniques?") == 1
    assert len(queries) == len(DEFAULT_WARMUP_QUERIES) + 2


def test_templates_included_when_enabled():
    warmer = CacheWarmer(WarmupConfig(include_templates=True))

    queries = warmer.queries()

    assert len(queries) == len(DEFAULT_WARMUP_QUERIES) + len(generate_from_templates())
    assert queries[-1] == "Testing strategies for express?"


def test_caps_limit_queries_and_contexts():
    warmer = CacheWarmer(WarmupConfig(max_queries=3, max_contexts=2, include_templates=True))

    assert warmer.queries(custom=["a", "b"]) == ["a", "b", DEFAULT_WARMUP_QUERIES[0]]
    assert len(warmer.contexts()) == 2


@pytest.mark.parametrize("changes", [{"max_queries": 0}, {"max_contexts": -1}, {"max_queries": True}])
def test_invalid_warmup_config(changes):
    with pytest.raises(ConfigurationError):
        WarmupConfig(**changes)


def test_update_config():
    warmer = CacheWarmer()

    warmer.update_config(include_templates=True, max_queries=20)

    assert warmer.config.include_templates
    assert len(warmer.queries()) == 20
    with pytest.raises(ConfigurationError):
        warmer.update_config(project_specific=True)


def test_stats_track_last_run():
    warmer = CacheWarmer(WarmupConfig(include_framework_specific=False))
    assert warmer.get_stats()["last_run"] is None
    assert warmer.get_stats()["template_queries"] == 4

    warmer.record(WarmupResult(queries_processed=2, cache_keys_generated=14))

    stats = warmer.get_stats()
    assert stats["runs"] == 1
    assert stats["last_run"]["cache_keys_generated"] == 14
    assert stats["config"]["include_framework_specific"] is False


async def test_service_warms_templates_within_caps(cache_config, fake_generator):
    warmup = WarmupConfig(include_templates=True, max_queries=15, max_contexts=2)
    async with CacheService(cache_config, response_generator=fake_generator, warmup_config=warmup) as cache:
        result = await cache.warm_cache()

        assert result.queries_processed == 15
        assert result.cache_keys_generated == 30
        assert result.entries_populated == 30
        assert await cache.get("How to optimize react performance?", WARMUP_CONTEXTS[0]) == (
            "answer to How to optimize react performance? (react)"
        )
        assert cache.get_warming_stats()["last_run"]["entries_populated"] == 30


async def test_service_update_warmup_config(cache):
    cache.update_warmup_config(max_contexts=1)

    result = await cache.warm_cache(["x"])

    assert result.cache_keys_generated == result.queries_processed
    with pytest.raises(ConfigurationError):
        cache.update_warmup_config(max_queries=0)
