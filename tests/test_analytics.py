"""
Tests for analytics: alerts, trends, reports, export and persistence.
"""

import csv
import io
import json
import math

import pytest

from response_cache.analytics import (
    AlertMonitor,
    AlertSeverity,
    AlertThresholds,
    AlertType,
    AnalyticsConfig,
    CacheAnalytics,
    TimeSeriesPoint,
    build_report,
    calculate_trends,
    grade_severity,
    relative_change,
    render,
    time_series_to_csv,
)
from response_cache.analytics.alerts import DEDUPE_WINDOW_MS
from response_cache.analytics.engine import ALERTS_FILE, EVENTS_FILE, TIMESERIES_FILE
from response_cache.entities import CacheEvent, CacheEventType, CacheStats
from response_cache.errors import ConfigurationError
from response_cache.services import CacheService
from response_cache.utils import MS_PER_DAY, now_ms

# Aligned to a one-minute throughput bucket
T0 = 1_700_000_040_000


def make_stats(**overrides) -> CacheStats:
    values = dict(
        entry_count=10,
        total_size_kb=2048.0,
        max_size_kb=102400.0,
        utilization_percent=2.0,
        entry_utilization_percent=0.1,
        hit_rate=80.0,
        miss_rate=20.0,
        similarity_hit_rate=0.0,
        total_requests=10,
        hit_count=8,
        miss_count=2,
        similarity_hit_count=0,
        average_response_time=5.0,
        recent_entries=10,
        expired_entries=0,
        last_cleanup="2024-01-01T00:00:00+00:00",
    )
    values.update(overrides)
    return CacheStats(**values)


def make_point(timestamp=T0, hit_rate=80.0, response_time=5.0, cache_size=1.0) -> TimeSeriesPoint:
    return TimeSeriesPoint(
        timestamp=timestamp,
        hit_rate=hit_rate,
        miss_rate=100 - hit_rate,
        similarity_hit_rate=0.0,
        cache_size=cache_size,
        response_time=response_time,
        throughput=3,
    )


def request(event_type, offset_ms=0, duration=2.0, timestamp=None) -> CacheEvent:
    return CacheEvent(
        type=event_type,
        timestamp=timestamp if timestamp is not None else T0 + offset_ms,
        duration=duration,
    )


# ----------------------------------------------------------------------
# Alerts
# ----------------------------------------------------------------------


@pytest.mark.parametrize(
    "value, threshold, higher_is_worse, expected",
    [
        (1050, 1000, True, AlertSeverity.LOW),
        (1100, 1000, True, AlertSeverity.MEDIUM),
        (1300, 1000, True, AlertSeverity.HIGH),
        (1600, 1000, True, AlertSeverity.CRITICAL),
        (65, 70, False, AlertSeverity.LOW),
        (30, 70, False, AlertSeverity.CRITICAL),
    ],
)
def test_grade_severity(value, threshold, higher_is_worse, expected):
    """Severity scales with the relative distance past the threshold."""
    assert grade_severity(value, threshold, higher_is_worse) == expected


def test_slow_request_alert():
    monitor = AlertMonitor()

    alert = monitor.check_event(request(CacheEventType.HIT, duration=1300))

    assert alert.type == AlertType.RESPONSE_TIME
    assert alert.severity == AlertSeverity.HIGH
    assert alert.value == 1300
    assert "1300ms" in alert.message


def test_non_request_events_never_alert():
    monitor = AlertMonitor()
    assert monitor.check_event(CacheEvent(type=CacheEventType.CLEANUP, duration=5000)) is None
    assert monitor.check_event(request(CacheEventType.MISS, duration=10)) is None


def test_alerts_deduplicated_within_window():
    """Only one unresolved alert per type within five minutes."""
    monitor = AlertMonitor()

    assert monitor.check_event(request(CacheEventType.HIT, duration=2000)) is not None
    assert monitor.check_event(request(CacheEventType.HIT, offset_ms=60_000, duration=2000)) is None
    assert monitor.check_event(request(CacheEventType.HIT, offset_ms=DEDUPE_WINDOW_MS, duration=2000)) is not None
    assert len(monitor.alerts) == 2


def test_hit_rate_alert_and_resolution():
    monitor = AlertMonitor(AlertThresholds(low_hit_rate=70))

    raised = monitor.check_stats(make_stats(hit_rate=40.0), now=T0)
    assert [a.type for a in raised] == [AlertType.HIT_RATE]
    assert raised[0].severity == AlertSeverity.HIGH

    monitor.check_stats(make_stats(hit_rate=85.0), now=T0 + 1000)
    assert all(a.resolved for a in monitor.alerts)


def test_no_hit_rate_alert_without_requests():
    monitor = AlertMonitor()
    assert monitor.check_stats(make_stats(hit_rate=0.0, total_requests=0), now=T0) == []


def test_utilization_alert():
    monitor = AlertMonitor()

    raised = monitor.check_stats(make_stats(utilization_percent=95.0), now=T0)

    assert [a.type for a in raised] == [AlertType.CACHE_SIZE]
    assert raised[0].severity == AlertSeverity.LOW


def test_resolved_alert_allows_new_one():
    monitor = AlertMonitor()
    monitor.check_event(request(CacheEventType.HIT, duration=2000))
    assert monitor.resolve(AlertType.RESPONSE_TIME) == 1

    assert monitor.check_event(request(CacheEventType.HIT, offset_ms=1000, duration=2000)) is not None


# ----------------------------------------------------------------------
# Trends and reports
# ----------------------------------------------------------------------


def test_relative_change():
    assert relative_change(50, 75) == 50.0
    assert relative_change(0, 0) == 0.0
    assert relative_change(0, 5) == math.inf
    assert relative_change(10, 0) == -100.0


def test_trends_need_two_points():
    trends = calculate_trends([make_point()])
    assert (trends.hit_rate_trend, trends.response_trend, trends.size_trend) == ("stable", "stable", "stable")


def test_trends_compare_halves():
    series = [
        make_point(hit_rate=50, response_time=100, cache_size=1.0),
        make_point(hit_rate=50, response_time=100, cache_size=1.0),
        make_point(hit_rate=80, response_time=50, cache_size=1.05),
        make_point(hit_rate=80, response_time=50, cache_size=1.05),
    ]

    trends = calculate_trends(series)

    assert trends.hit_rate_trend == "increasing"
    assert trends.response_trend == "improving"
    assert trends.size_trend == "stable"


def test_trends_inverted_for_response_time():
    series = [make_point(response_time=10, cache_size=2), make_point(response_time=20, cache_size=1)]

    trends = calculate_trends(series)

    assert trends.response_trend == "degrading"
    assert trends.size_trend == "shrinking"


def test_trend_from_zero_baseline():
    series = [make_point(hit_rate=0), make_point(hit_rate=10)]
    assert calculate_trends(series).hit_rate_trend == "increasing"


def test_build_report():
    events = [
        request(CacheEventType.HIT, 0),
        request(CacheEventType.HIT, 10),
        request(CacheEventType.HIT, 20),
        request(CacheEventType.SIMILARITY_HIT, 30),
        request(CacheEventType.MISS, 40, duration=12.0),
        CacheEvent(type=CacheEventType.SET, timestamp=T0 + 50),
        request(CacheEventType.HIT, timestamp=T0 - 10 * 60_000),
    ]

    report = build_report(events, [make_point()], start=T0 - 1000, end=T0 + 60_000)

    summary = report.summary
    assert summary.total_requests == 5
    assert summary.total_hits == 3
    assert summary.total_misses == 1
    assert summary.total_similarity_hits == 1
    assert summary.average_hit_rate == 60.0
    assert summary.average_response_time == 4.0
    assert summary.peak_throughput == 5
    assert summary.cache_efficiency == 76.0
    assert report.period.duration == "1m 1s"
    assert any("Similarity matching contributed 25.0%" in i for i in report.insights)
    assert any("Peak usage" in i for i in report.insights)
    assert any("TTL" in r for r in report.recommendations)
    assert not any("Enable similarity" in r for r in report.recommendations)


def test_empty_report():
    report = build_report([], [], start=T0, end=T0 + MS_PER_DAY)

    assert report.summary.total_requests == 0
    assert report.summary.cache_efficiency == 0.0
    assert report.insights == []
    assert report.period.duration == "1d 0h"


# ----------------------------------------------------------------------
# Export
# ----------------------------------------------------------------------


def test_csv_export():
    text = time_series_to_csv([make_point(), make_point(timestamp=T0 + 60_000, hit_rate=90)])

    rows = list(csv.DictReader(io.StringIO(text)))
    assert len(rows) == 2
    assert rows[1]["hit_rate"] == "90"
    assert list(rows[0]) == [
        "timestamp",
        "hit_rate",
        "miss_rate",
        "similarity_hit_rate",
        "cache_size",
        "response_time",
        "throughput",
    ]


def test_csv_export_header_only_when_empty():
    assert time_series_to_csv([]).strip().count("\n") == 0


def test_json_export_is_nested():
    report = build_report([request(CacheEventType.HIT)], [make_point()], start=T0 - 1, end=T0 + 1)

    data = json.loads(render(report, "json"))

    assert data["summary"]["total_hits"] == 1
    assert data["trends"]["size_trend"] == "stable"
    assert data["time_series"][0]["throughput"] == 3


def test_unknown_export_format():
    report = build_report([], [], start=T0, end=T0 + 1)
    with pytest.raises(ValueError):
        render(report, "xml")


# ----------------------------------------------------------------------
# Engine
# ----------------------------------------------------------------------


def test_invalid_analytics_config():
    with pytest.raises(ConfigurationError):
        AnalyticsConfig(max_events=0)


def test_event_store_is_bounded():
    analytics = CacheAnalytics(AnalyticsConfig(max_events=5))
    for i in range(8):
        analytics.record_event(CacheEvent(type=CacheEventType.SET, cache_key=str(i)))

    assert [e.cache_key for e in analytics.get_events()] == ["3", "4", "5", "6", "7"]
    assert analytics.get_events(CacheEventType.MISS) == []


def test_update_stats_builds_point():
    analytics = CacheAnalytics()
    now = now_ms()
    for offset, event_type in ((10, CacheEventType.HIT), (20, CacheEventType.MISS)):
        analytics.record_event(request(event_type, duration=4.0, timestamp=now - offset))
    analytics.record_event(CacheEvent(type=CacheEventType.SET, timestamp=now - 5))

    point = analytics.update_stats(make_stats(total_size_kb=1024.0), now=now)

    assert point.throughput == 2
    assert point.response_time == 4.0
    assert point.cache_size == 1.0
    assert analytics.get_time_series() == [point]


def test_update_stats_raises_alerts():
    analytics = CacheAnalytics()
    analytics.update_stats(make_stats(hit_rate=10.0))

    alerts = analytics.get_alerts(include_resolved=False)
    assert [a.type for a in alerts] == [AlertType.HIT_RATE]


async def test_aggregate_uses_stats_provider():
    analytics = CacheAnalytics(stats_provider=lambda: make_stats(hit_rate=90.0))

    point = await analytics.aggregate()

    assert point.hit_rate == 90.0


def test_history_persists(tmp_path):
    """Events, samples and alerts survive a restart."""
    first = CacheAnalytics(storage_dir=tmp_path)
    first.record_event(request(CacheEventType.HIT, timestamp=now_ms(), duration=1500.0))
    first.update_stats(make_stats())
    first.save()

    for name in (EVENTS_FILE, TIMESERIES_FILE, ALERTS_FILE):
        assert (tmp_path / name).exists()

    second = CacheAnalytics(storage_dir=tmp_path)
    assert [e.type for e in second.get_events()] == [CacheEventType.HIT]
    assert len(second.get_time_series()) == 1
    assert second.get_alerts()[0].type == AlertType.RESPONSE_TIME


def test_saves_every_n_events(tmp_path):
    analytics = CacheAnalytics(AnalyticsConfig(save_every=2), storage_dir=tmp_path)
    analytics.record_event(CacheEvent(type=CacheEventType.SET))
    assert not (tmp_path / EVENTS_FILE).exists()

    analytics.record_event(CacheEvent(type=CacheEventType.SET))
    assert (tmp_path / EVENTS_FILE).exists()


def test_retention_prunes_old_history():
    analytics = CacheAnalytics(AnalyticsConfig(retention_days=1))
    now = now_ms()
    analytics.record_event(CacheEvent(type=CacheEventType.SET, timestamp=now - 2 * MS_PER_DAY))
    analytics.record_event(CacheEvent(type=CacheEventType.SET, timestamp=now))

    analytics.prune(now)

    assert len(analytics.get_events()) == 1


def test_corrupt_history_ignored(tmp_path):
    (tmp_path / EVENTS_FILE).write_text("[{broken")

    assert CacheAnalytics(storage_dir=tmp_path).get_events() == []


async def test_export_to_path(tmp_path):
    analytics = CacheAnalytics()
    analytics.update_stats(make_stats())

    path = await analytics.export("csv", tmp_path / "report.csv")

    assert path.read_text().startswith("timestamp,hit_rate")


async def test_export_default_location(tmp_path):
    analytics = CacheAnalytics(storage_dir=tmp_path)

    path = await analytics.export("json")

    assert path.parent == tmp_path
    assert json.loads(path.read_text())["summary"]["total_requests"] == 0


async def test_export_requires_target_without_storage():
    with pytest.raises(ValueError):
        await CacheAnalytics().export("json")


async def test_cache_feeds_analytics(cache_config):
    """An analytics-enabled cache records its events and stores history beside the cache."""
    config = cache_config.with_changes(enable_analytics=True)
    async with CacheService(config) as cache:
        await cache.set("How do I center a div?", {"language": "css"}, "use flexbox")
        await cache.get("How do I center a div?", {"language": "css"})
        await cache.get("What is a monad?", None)

        analytics = cache.analytics
        assert [e.type for e in analytics.get_events()] == [
            CacheEventType.SET,
            CacheEventType.HIT,
            CacheEventType.MISS,
        ]
        report = analytics.generate_report()
        assert report.summary.total_requests == 2
        assert report.summary.average_hit_rate == 50.0

    assert (cache_config.cache_dir / "analytics" / EVENTS_FILE).exists()
