"""Analytics layer: event history, time series, alerts and reports.

Usage:
    ```python
    from response_cache.analytics import CacheAnalytics

    analytics = cache.analytics
    report = analytics.generate_report()
    await analytics.export("csv", "cache-report.csv")
    ```
"""

from .alerts import AlertMonitor, AlertThresholds, grade_severity
from .engine import AnalyticsConfig, CacheAnalytics
from .export import render, report_to_json, time_series_to_csv
from .models import (
    AlertEvent,
    AlertSeverity,
    AlertType,
    AnalyticsReport,
    ReportPeriod,
    ReportSummary,
    ReportTrends,
    TimeSeriesPoint,
)
from .report import build_report, calculate_trends, relative_change

__all__ = [
    "AlertEvent",
    "AlertMonitor",
    "AlertSeverity",
    "AlertThresholds",
    "AlertType",
    "AnalyticsConfig",
    "AnalyticsReport",
    "CacheAnalytics",
    "ReportPeriod",
    "ReportSummary",
    "ReportTrends",
    "TimeSeriesPoint",
    "build_report",
    "calculate_trends",
    "grade_severity",
    "relative_change",
    "render",
    "report_to_json",
    "time_series_to_csv",
]
