"""Threshold alerting over cache events and statistics."""

import logging
from dataclasses import dataclass, replace

from response_cache.entities import CacheEvent, CacheStats
from response_cache.utils import now_ms

from .models import AlertEvent, AlertSeverity, AlertType

logger = logging.getLogger(__name__)

# Within this window an unresolved alert of the same type suppresses new ones
DEDUPE_WINDOW_MS = 5 * 60 * 1000


@dataclass(frozen=True)
class AlertThresholds:
    """Alert thresholds.

    Attributes:
        low_hit_rate: Alert when the hit rate (%) drops below this
        max_response_time: Alert when a request takes longer (ms)
        max_utilization: Alert when size utilization (%) exceeds this
    """

    low_hit_rate: float = 70.0
    max_response_time: float = 1000.0
    max_utilization: float = 90.0


def grade_severity(value: float, threshold: float, higher_is_worse: bool = True) -> AlertSeverity:
    """Grade a violation by its relative distance past the threshold.

    Example:
        >>> grade_severity(1100, 1000)
        <AlertSeverity.MEDIUM: 'medium'>
        >>> grade_severity(30, 70, higher_is_worse=False)
        <AlertSeverity.CRITICAL: 'critical'>
    """
    if threshold == 0:
        return AlertSeverity.CRITICAL
    excess = (value - threshold) if higher_is_worse else (threshold - value)
    ratio = excess / threshold
    if ratio < 0.10:
        return AlertSeverity.LOW
    if ratio < 0.25:
        return AlertSeverity.MEDIUM
    if ratio < 0.50:
        return AlertSeverity.HIGH
    return AlertSeverity.CRITICAL


class AlertMonitor:
    """Raises, de-duplicates and resolves alerts."""

    def __init__(
        self,
        thresholds: AlertThresholds | None = None,
        alerts: list[AlertEvent] | None = None,
    ) -> None:
        self.thresholds = thresholds or AlertThresholds()
        self._alerts: list[AlertEvent] = list(alerts or [])

    @property
    def alerts(self) -> list[AlertEvent]:
        return list(self._alerts)

    def check_event(self, event: CacheEvent) -> AlertEvent | None:
        """Alert on a single slow request."""
        limit = self.thresholds.max_response_time
        if not event.is_request or event.duration is None or event.duration <= limit:
            return None
        return self._raise(
            AlertType.RESPONSE_TIME,
            value=event.duration,
            threshold=limit,
            message=f"High response time detected: {round(event.duration)}ms",
            higher_is_worse=True,
            now=event.timestamp,
        )

    def check_stats(self, stats: CacheStats, now: float | None = None) -> list[AlertEvent]:
        """Alert on hit rate and utilization; resolve metrics back in range."""
        now = now if now is not None else now_ms()
        raised: list[AlertEvent] = []
        t = self.thresholds

        if stats.total_requests > 0 and stats.hit_rate < t.low_hit_rate:
            alert = self._raise(
                AlertType.HIT_RATE,
                value=stats.hit_rate,
                threshold=t.low_hit_rate,
                message=f"Low cache hit rate: {stats.hit_rate}%",
                higher_is_worse=False,
                now=now,
            )
            if alert:
                raised.append(alert)
        elif stats.total_requests > 0:
            self.resolve(AlertType.HIT_RATE)

        if stats.utilization_percent > t.max_utilization:
            alert = self._raise(
                AlertType.CACHE_SIZE,
                value=stats.utilization_percent,
                threshold=t.max_utilization,
                message=f"Cache size approaching limit: {stats.utilization_percent}%",
                higher_is_worse=True,
                now=now,
            )
            if alert:
                raised.append(alert)
        else:
            self.resolve(AlertType.CACHE_SIZE)

        if stats.average_response_time <= t.max_response_time:
            self.resolve(AlertType.RESPONSE_TIME)

        return raised

    def resolve(self, alert_type: AlertType) -> int:
        """Mark every unresolved alert of ``alert_type`` resolved."""
        resolved = 0
        for i, alert in enumerate(self._alerts):
            if alert.type == alert_type and not alert.resolved:
                self._alerts[i] = replace(alert, resolved=True)
                resolved += 1
        if resolved:
            logger.info("Resolved %d %s alert(s)", resolved, alert_type.value)
        return resolved

    def prune(self, cutoff: float) -> None:
        """Drop alerts raised before ``cutoff`` (epoch ms)."""
        self._alerts = [a for a in self._alerts if a.timestamp > cutoff]

    def _raise(
        self,
        alert_type: AlertType,
        value: float,
        threshold: float,
        message: str,
        higher_is_worse: bool,
        now: float,
    ) -> AlertEvent | None:
        for existing in self._alerts:
            if existing.type == alert_type and not existing.resolved and now - existing.timestamp < DEDUPE_WINDOW_MS:
                return None

        alert = AlertEvent(
            type=alert_type,
            severity=grade_severity(value, threshold, higher_is_worse),
            message=message,
            value=value,
            threshold=threshold,
            timestamp=now,
        )
        self._alerts.append(alert)
        logger.warning("%s ALERT: %s", alert.severity.value.upper(), message)
        return alert
