"""Report building: summary metrics, trends, insights and recommendations."""

import math
from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timezone

import numpy as np

from response_cache.entities import CacheEvent, CacheEventType
from response_cache.utils import BYTES_PER_MB, format_duration, iso_from_ms

from .models import AnalyticsReport, ReportPeriod, ReportSummary, ReportTrends, TimeSeriesPoint

THROUGHPUT_BUCKET_MS = 60 * 1000
SIMILARITY_HIT_WEIGHT = 0.8

# Relative change (%) below which a trend counts as stable
HIT_RATE_BAND = 5.0
RESPONSE_TIME_BAND = 10.0
SIZE_BAND = 10.0

LARGE_CACHE_MB = 80.0


def _mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(np.mean(values))


def relative_change(before: float, after: float) -> float:
    """Percent change from ``before`` to ``after``.

    A zero baseline yields 0 when nothing changed and +/-inf otherwise.
    """
    if before == 0:
        if after == 0:
            return 0.0
        return math.copysign(math.inf, after)
    return (after - before) / abs(before) * 100


def _direction(before: float, after: float, band: float) -> int:
    change = relative_change(before, after)
    if abs(change) < band:
        return 0
    return 1 if change > 0 else -1


def calculate_trends(series: Sequence[TimeSeriesPoint]) -> ReportTrends:
    """Compare the first half of ``series`` with the second half."""
    if len(series) < 2:
        return ReportTrends()

    middle = len(series) // 2
    first, second = series[:middle], series[middle:]

    def halves(attr: str) -> tuple[float, float]:
        return _mean([getattr(p, attr) for p in first]), _mean([getattr(p, attr) for p in second])

    hit_rate = _direction(*halves("hit_rate"), HIT_RATE_BAND)
    response = _direction(*halves("response_time"), RESPONSE_TIME_BAND)
    size = _direction(*halves("cache_size"), SIZE_BAND)

    return ReportTrends(
        hit_rate_trend={1: "increasing", -1: "decreasing"}.get(hit_rate, "stable"),
        # Inverted: lower response time is better
        response_trend={1: "degrading", -1: "improving"}.get(response, "stable"),
        size_trend={1: "growing", -1: "shrinking"}.get(size, "stable"),
    )


def peak_throughput(events: Sequence[CacheEvent], bucket_ms: int = THROUGHPUT_BUCKET_MS) -> int:
    """Largest number of events falling in one fixed-size time bucket."""
    buckets = Counter(int(e.timestamp // bucket_ms) for e in events)
    return max(buckets.values(), default=0)


def cache_efficiency(hits: int, similarity_hits: int, total: int) -> float:
    """Hit percentage with similarity hits weighted at 80%."""
    if total == 0:
        return 0.0
    weighted = hits + similarity_hits * SIMILARITY_HIT_WEIGHT
    return round(weighted / total * 100, 2)


def hourly_distribution(events: Sequence[CacheEvent]) -> list[int]:
    """Event counts per UTC hour of day."""
    counts = [0] * 24
    for event in events:
        counts[datetime.fromtimestamp(event.timestamp / 1000, tz=timezone.utc).hour] += 1
    return counts


def generate_insights(series: Sequence[TimeSeriesPoint], events: Sequence[CacheEvent]) -> list[str]:
    insights: list[str] = []

    if series:
        avg_hit_rate = _mean([p.hit_rate for p in series])
        if avg_hit_rate > 80:
            insights.append(f"Excellent cache performance with {avg_hit_rate:.1f}% hit rate")
        elif avg_hit_rate < 50:
            insights.append(
                f"Low cache hit rate ({avg_hit_rate:.1f}%) indicates potential optimization opportunities"
            )

    similarity_hits = sum(1 for e in events if e.type == CacheEventType.SIMILARITY_HIT)
    total_hits = sum(1 for e in events if e.type in (CacheEventType.HIT, CacheEventType.SIMILARITY_HIT))
    if similarity_hits > 0:
        insights.append(
            f"Similarity matching contributed {similarity_hits / total_hits * 100:.1f}% of cache hits"
        )

    if series:
        avg_response = _mean([p.response_time for p in series])
        if avg_response < 10:
            insights.append(f"Excellent response times averaging {avg_response:.1f}ms")
        elif avg_response > 100:
            insights.append(f"High response times ({avg_response:.1f}ms) may impact user experience")

    if events:
        hourly = hourly_distribution(events)
        peak = max(hourly)
        insights.append(f"Peak usage occurs around {hourly.index(peak)}:00 UTC with {peak} requests")

    return insights


def generate_recommendations(
    hit_rate: float,
    response_time: float,
    series: Sequence[TimeSeriesPoint],
    similarity_hits: int,
) -> list[str]:
    recommendations: list[str] = []

    if hit_rate < 70:
        recommendations.append("Consider increasing cache TTL or adjusting similarity threshold")
        recommendations.append("Review query patterns to identify opportunities for better caching")

    if response_time > 50:
        recommendations.append("Consider enabling compression or optimizing cache lookup algorithms")

    if _mean([p.cache_size for p in series]) > LARGE_CACHE_MB:
        recommendations.append("Cache size is growing large - consider more aggressive cleanup policies")

    if similarity_hits == 0:
        recommendations.append("Enable similarity matching to improve cache hit rates for similar queries")

    return recommendations


def build_report(
    events: Sequence[CacheEvent],
    series: Sequence[TimeSeriesPoint],
    start: float,
    end: float,
) -> AnalyticsReport:
    """Build a report over events and samples within ``[start, end]`` (epoch ms)."""
    period_events = [e for e in events if start <= e.timestamp <= end]
    period_series = [p for p in series if start <= p.timestamp <= end]
    requests = [e for e in period_events if e.is_request]

    hits = sum(1 for e in requests if e.type == CacheEventType.HIT)
    misses = sum(1 for e in requests if e.type == CacheEventType.MISS)
    similarity_hits = sum(1 for e in requests if e.type == CacheEventType.SIMILARITY_HIT)
    total = hits + misses + similarity_hits

    average_hit_rate = hits / total * 100 if total else 0.0
    durations = [e.duration for e in requests if e.duration is not None]
    average_response_time = _mean(durations)

    return AnalyticsReport(
        period=ReportPeriod(
            start=iso_from_ms(start),
            end=iso_from_ms(end),
            duration=format_duration(end - start),
        ),
        summary=ReportSummary(
            total_requests=total,
            total_hits=hits,
            total_misses=misses,
            total_similarity_hits=similarity_hits,
            average_hit_rate=round(average_hit_rate, 2),
            average_response_time=round(average_response_time, 2),
            peak_throughput=peak_throughput(requests),
            cache_efficiency=cache_efficiency(hits, similarity_hits, total),
        ),
        trends=calculate_trends(period_series),
        insights=generate_insights(period_series, requests),
        recommendations=generate_recommendations(
            average_hit_rate,
            average_response_time,
            period_series,
            similarity_hits,
        ),
        time_series=list(period_series),
    )


def size_mb(total_size_kb: float) -> float:
    """Convert a KB figure from ``CacheStats`` to MB."""
    return total_size_kb * 1024 / BYTES_PER_MB
