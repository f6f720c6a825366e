"""Analytics engine: records cache events and turns them into reports.

The engine only observes. It is fed through the cache's event channel and
an optional stats provider, and never touches cache state.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import aiofiles
from pydantic import TypeAdapter, ValidationError

from response_cache.config import Settings, settings
from response_cache.entities import CacheEvent, CacheEventType, CacheStats
from response_cache.errors import ConfigurationError
from response_cache.scheduler import BackgroundScheduler
from response_cache.utils import MS_PER_DAY, atomic_write_bytes, now_ms

from .alerts import AlertMonitor, AlertThresholds
from .export import ExportFormat, render
from .models import AlertEvent, AnalyticsReport, TimeSeriesPoint
from .report import build_report, size_mb

logger = logging.getLogger(__name__)

EVENTS_FILE = "events.json"
TIMESERIES_FILE = "timeseries.json"
ALERTS_FILE = "alerts.json"

DEFAULT_REPORT_WINDOW_MS = MS_PER_DAY

_events_adapter = TypeAdapter(list[CacheEvent])
_series_adapter = TypeAdapter(list[TimeSeriesPoint])
_alerts_adapter = TypeAdapter(list[AlertEvent])


@dataclass(frozen=True)
class AnalyticsConfig:
    """Analytics options.

    Attributes:
        retention_days: Events, samples and alerts older than this are pruned
        aggregation_interval_ms: Period of the aggregation tick
        enable_real_time_metrics: Run the aggregation tick at all
        max_events: Upper bound on retained raw events
        save_every: Persist after this many recorded events
        alert_thresholds: Alerting thresholds
    """

    retention_days: int = 30
    aggregation_interval_ms: int = 60 * 1000
    enable_real_time_metrics: bool = True
    max_events: int = 10_000
    save_every: int = 100
    alert_thresholds: AlertThresholds = field(default_factory=AlertThresholds)

    def __post_init__(self) -> None:
        for name in ("retention_days", "aggregation_interval_ms", "max_events", "save_every"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "AnalyticsConfig":
        source = source or settings
        return cls(
            retention_days=source.analytics_retention_days,
            aggregation_interval_ms=source.analytics_aggregation_interval_ms,
        )


class CacheAnalytics:
    """Event store, time-series aggregator, alert monitor and reporter.

    Example:
        ```python
        analytics = CacheAnalytics(storage_dir=Path(".response-cache/analytics"))
        cache.subscribe("*", analytics.record_event)
        report = analytics.generate_report()
        ```
    """

    def __init__(
        self,
        config: AnalyticsConfig | None = None,
        storage_dir: Path | str | None = None,
        stats_provider: Callable[[], CacheStats] | None = None,
    ) -> None:
        """Initialize the engine and load retained history.

        Args:
            config: Analytics options.
            storage_dir: Where history is persisted. None keeps it in memory only.
            stats_provider: Called on every aggregation tick for a fresh snapshot.
        """
        self.config = config or AnalyticsConfig()
        self._storage_dir = Path(storage_dir) if storage_dir is not None else None
        self._stats_provider = stats_provider
        self._events: list[CacheEvent] = []
        self._series: list[TimeSeriesPoint] = []
        self._monitor = AlertMonitor(self.config.alert_thresholds)
        self._last_stats: CacheStats | None = None
        self._recorded_since_save = 0
        self._scheduler = BackgroundScheduler(self.config.aggregation_interval_ms, self.aggregate, name="analytics")

        if self._storage_dir is not None:
            self._storage_dir.mkdir(parents=True, exist_ok=True)
            self._load()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_event(self, event: CacheEvent) -> None:
        """Store an event, check it for alerts and persist periodically."""
        self._events.append(event)
        if len(self._events) > self.config.max_events:
            del self._events[: len(self._events) - self.config.max_events]

        self._monitor.check_event(event)

        self._recorded_since_save += 1
        if self._recorded_since_save >= self.config.save_every:
            self.save()

    def update_stats(self, stats: CacheStats, now: float | None = None) -> TimeSeriesPoint:
        """Append a time-series sample built from ``stats`` and recent events."""
        now = now if now is not None else now_ms()
        self._last_stats = stats

        window_start = now - self.config.aggregation_interval_ms
        recent = [e for e in self._events if e.is_request and window_start < e.timestamp <= now]
        durations = [e.duration for e in recent if e.duration is not None]

        point = TimeSeriesPoint(
            timestamp=now,
            hit_rate=stats.hit_rate,
            miss_rate=stats.miss_rate,
            similarity_hit_rate=stats.similarity_hit_rate,
            cache_size=round(size_mb(stats.total_size_kb), 4),
            response_time=round(sum(durations) / len(durations), 2) if durations else 0.0,
            throughput=len(recent),
        )
        self._series.append(point)
        self._monitor.check_stats(stats, now=now)
        return point

    async def aggregate(self) -> TimeSeriesPoint | None:
        """Aggregation tick: sample the latest stats, then persist."""
        stats = self._stats_provider() if self._stats_provider else self._last_stats
        point = self.update_stats(stats) if stats is not None else None
        self.save()
        return point

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_events(
        self,
        event_type: CacheEventType | str | None = None,
        since: float | None = None,
    ) -> list[CacheEvent]:
        wanted = CacheEventType(event_type) if event_type is not None else None
        return [
            e
            for e in self._events
            if (wanted is None or e.type == wanted) and (since is None or e.timestamp >= since)
        ]

    def get_time_series(self) -> list[TimeSeriesPoint]:
        return list(self._series)

    def get_alerts(self, include_resolved: bool = True) -> list[AlertEvent]:
        return [a for a in self._monitor.alerts if include_resolved or not a.resolved]

    def generate_report(self, start: float | None = None, end: float | None = None) -> AnalyticsReport:
        """Report over ``[start, end]`` in epoch ms; defaults to the last 24 hours."""
        end = end if end is not None else now_ms()
        start = start if start is not None else end - DEFAULT_REPORT_WINDOW_MS
        return build_report(self._events, self._series, start, end)

    async def export(
        self,
        fmt: ExportFormat = "json",
        output_path: Path | str | None = None,
        report: AnalyticsReport | None = None,
    ) -> Path:
        """Write a report to disk.

        Args:
            fmt: ``json`` for the whole report, ``csv`` for its time series
            output_path: Target file. Defaults to a timestamped file in the
                storage directory.
            report: Report to export. Defaults to the last 24 hours.

        Returns:
            The path written

        Raises:
            ValueError: On an unsupported format or when no target is known
        """
        content = render(report or self.generate_report(), fmt)
        if output_path is None:
            if self._storage_dir is None:
                raise ValueError("output_path is required when analytics are not persisted")
            stamp = int(now_ms())
            output_path = self._storage_dir / f"analytics-report-{stamp}.{fmt}"

        path = Path(output_path)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(content)
        logger.info("Analytics data exported to %s", path)
        return path

    # ------------------------------------------------------------------
    # Lifecycle and persistence
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the aggregation tick on the running loop."""
        if self.config.enable_real_time_metrics and not self._scheduler.is_running:
            self._scheduler.start()

    async def shutdown(self) -> None:
        """Stop the aggregation tick and persist history."""
        await self._scheduler.stop()
        self.save()
        logger.info("Analytics shut down (%d events retained)", len(self._events))

    def prune(self, now: float | None = None) -> None:
        """Drop history older than the retention window."""
        cutoff = (now if now is not None else now_ms()) - self.config.retention_days * MS_PER_DAY
        self._events = [e for e in self._events if e.timestamp > cutoff]
        self._series = [p for p in self._series if p.timestamp > cutoff]
        self._monitor.prune(cutoff)

    def save(self) -> None:
        """Prune, then persist history. Failures are logged, not raised."""
        self._recorded_since_save = 0
        self.prune()
        if self._storage_dir is None:
            return
        try:
            atomic_write_bytes(self._storage_dir / EVENTS_FILE, _events_adapter.dump_json(self._events, indent=2))
            atomic_write_bytes(self._storage_dir / TIMESERIES_FILE, _series_adapter.dump_json(self._series, indent=2))
            atomic_write_bytes(
                self._storage_dir / ALERTS_FILE, _alerts_adapter.dump_json(self._monitor.alerts, indent=2)
            )
        except OSError as e:
            logger.warning("Error saving analytics data: %s", e)

    def _load(self) -> None:
        self._events = self._load_file(EVENTS_FILE, _events_adapter)
        self._series = self._load_file(TIMESERIES_FILE, _series_adapter)
        self._monitor = AlertMonitor(self.config.alert_thresholds, self._load_file(ALERTS_FILE, _alerts_adapter))
        self.prune()
        logger.info(
            "Loaded %d events, %d time series points, %d alerts",
            len(self._events),
            len(self._series),
            len(self._monitor.alerts),
        )

    def _load_file(self, name: str, adapter: TypeAdapter) -> list:
        path = self._storage_dir / name
        if not path.exists():
            return []
        try:
            return adapter.validate_json(path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.warning("Error loading analytics history from %s: %s", name, e)
            return []
