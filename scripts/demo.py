#!/usr/bin/env python3
"""
Demo script for the response cache.

This script demonstrates direct hits, similarity hits, context-sensitive
keys, eviction, analytics and threshold tuning against a temporary cache
directory.
"""

import asyncio
import tempfile
from pathlib import Path

from response_cache import CacheConfig, CacheService
from response_cache.analytics import time_series_to_csv
from response_cache.evaluator import CacheEvaluator, QueryPair


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


async def demo_basic_cache(cache_dir: Path) -> None:
    """Demonstrate direct and similarity hits."""
    print_section("Basic Cache Operations")

    async with CacheService(CacheConfig(cache_dir=cache_dir, background_cleanup=False)) as cache:
        qa_pairs = [
            ("How do I center a div?", {"language": "css"}, "Use flexbox: display: flex; justify-content: center"),
            ("How do I reverse a list?", {"language": "python"}, "Use reversed(items) or items[::-1]"),
            ("How do I read a file?", {"language": "python"}, "with open(path) as f: data = f.read()"),
        ]

        print("\n📝 Storing sample Q&A pairs...")
        for query, context, response in qa_pairs:
            await cache.set(query, context, response)
            print(f"  ✓ Stored: {query}")

        print("\n🔍 Looking up queries:")
        lookups = [
            ("How do I center a div?", {"language": "css"}),  # direct
            ("how do I center a div", {"language": "css"}),  # punctuation differs
            ("How do I reverse a python list?", {"language": "python"}),  # paraphrase
            ("What is a monad?", {"language": "haskell"}),  # unrelated
        ]
        for query, context in lookups:
            response = await cache.get(query, context)
            print(f"\n  Query: {query}")
            if response is not None:
                print(f"  ✓ HIT: {response}")
            else:
                print("  ✗ Cache miss")

        stats = cache.get_stats()
        print(
            f"\n📊 {stats.entry_count} entries, hit rate {stats.hit_rate}%, "
            f"similarity hit rate {stats.similarity_hit_rate}%, miss rate {stats.miss_rate}%"
        )


async def demo_context_keys(cache_dir: Path) -> None:
    """Demonstrate that context attributes separate entries."""
    print_section("Context-Sensitive Keys")

    async with CacheService(CacheConfig(cache_dir=cache_dir, background_cleanup=False)) as cache:
        for framework in ("react", "vue"):
            key = cache.generate_cache_key("How do I manage state?", {"framework": framework})
            print(f"  {framework:<6} → {key[:16]}...")


async def demo_eviction(cache_dir: Path) -> None:
    """Demonstrate count-triggered eviction."""
    print_section("Eviction")

    config = CacheConfig(cache_dir=cache_dir, background_cleanup=False, max_entries=10)
    async with CacheService(config) as cache:
        for i in range(12):
            await cache.set(f"question number {i}", {"language": "python"}, f"answer {i}")
        stats = cache.get_stats()
        print(f"\n  After 12 inserts with max_entries=10: {stats.entry_count} entries")


async def demo_analytics(cache_dir: Path) -> None:
    """Demonstrate analytics reports."""
    print_section("Analytics")

    async with CacheService(CacheConfig(cache_dir=cache_dir, background_cleanup=False)) as cache:
        await cache.set("What is a closure?", {"language": "javascript"}, "A function with its scope")
        for _ in range(3):
            await cache.get("What is a closure?", {"language": "javascript"})
        await cache.get("What is hoisting?", {"language": "javascript"})

        analytics = cache.analytics
        analytics.update_stats(cache.get_stats())
        report = analytics.generate_report()

        print(f"\n  Requests: {report.summary.total_requests}")
        print(f"  Hit rate: {report.summary.average_hit_rate}%")
        print(f"  Efficiency: {report.summary.cache_efficiency}%")
        for insight in report.insights:
            print(f"  💡 {insight}")
        for recommendation in report.recommendations:
            print(f"  🎯 {recommendation}")
        print("\n" + time_series_to_csv(report.time_series))


def demo_threshold_tuning() -> None:
    """Demonstrate threshold tuning."""
    print_section("Threshold Tuning")

    test_queries = [
        # Should match (same question, different wording)
        QueryPair("How do I center a div?", "how do i center a div", should_match=True),
        QueryPair("How to reverse a list", "How do I reverse a list?", should_match=True),
        QueryPair("Best practices for testing", "Testing best practices", should_match=True),
        # Should not match (different question)
        QueryPair("How do I center a div?", "How do I deploy to production?", should_match=False),
        QueryPair("What is a closure?", "What is a database index?", should_match=False),
    ]

    print(f"\n📋 Test query pairs: {len(test_queries)}")

    evaluator = CacheEvaluator()
    evaluator.sweep_thresholds(test_queries, min_threshold=0.5, max_threshold=0.95, steps=10)
    evaluator.print_summary()


async def run() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        await demo_basic_cache(root / "basic")
        await demo_context_keys(root / "context")
        await demo_eviction(root / "eviction")
        await demo_analytics(root / "analytics")
    demo_threshold_tuning()


def main() -> None:
    """Run all demos."""
    print("\n🚀 Response Cache Demo")
    print("=" * 70)
    print("This demo showcases local response caching with similarity matching")

    asyncio.run(run())

    print("\n" + "=" * 70)
    print("✅ Demo completed successfully!")
    print("=" * 70)


if __name__ == "__main__":
    main()
