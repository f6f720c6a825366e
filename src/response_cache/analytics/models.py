"""Analytics records.

Plain frozen dataclasses; they are persisted and loaded back through
pydantic ``TypeAdapter``s in the engine.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from response_cache.utils import now_ms


class AlertType(str, Enum):
    HIT_RATE = "hit_rate"
    RESPONSE_TIME = "response_time"
    CACHE_SIZE = "cache_size"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class AlertEvent:
    """A threshold violation.

    Attributes:
        type: Which metric crossed its threshold
        severity: Graded by how far the value is past the threshold
        message: Human-readable description
        value: Observed value
        threshold: Configured threshold
        timestamp: Epoch milliseconds
        resolved: Set once the metric is back within its threshold
    """

    type: AlertType
    severity: AlertSeverity
    message: str
    value: float
    threshold: float
    timestamp: float = field(default_factory=now_ms)
    resolved: bool = False


@dataclass(frozen=True)
class TimeSeriesPoint:
    """One aggregated sample.

    Rates are percentages, ``cache_size`` is in MB, ``response_time`` is the
    average request duration (ms) and ``throughput`` the number of requests
    within the aggregation interval ending at ``timestamp``.
    """

    timestamp: float
    hit_rate: float
    miss_rate: float
    similarity_hit_rate: float
    cache_size: float
    response_time: float
    throughput: int


@dataclass(frozen=True)
class ReportPeriod:
    start: str
    end: str
    duration: str


@dataclass(frozen=True)
class ReportSummary:
    total_requests: int
    total_hits: int
    total_misses: int
    total_similarity_hits: int
    average_hit_rate: float
    average_response_time: float
    peak_throughput: int
    cache_efficiency: float


@dataclass(frozen=True)
class ReportTrends:
    hit_rate_trend: str = "stable"
    response_trend: str = "stable"
    size_trend: str = "stable"


@dataclass(frozen=True)
class AnalyticsReport:
    """Summary of cache behaviour over a time window."""

    period: ReportPeriod
    summary: ReportSummary
    trends: ReportTrends
    insights: list[str]
    recommendations: list[str]
    time_series: list[TimeSeriesPoint]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
