"""Report export as nested JSON or a flat CSV of the time series."""

import csv
import io
import json
from collections.abc import Sequence
from dataclasses import asdict, fields
from typing import Literal

from .models import AnalyticsReport, TimeSeriesPoint

ExportFormat = Literal["json", "csv"]

CSV_COLUMNS = tuple(f.name for f in fields(TimeSeriesPoint))


def report_to_json(report: AnalyticsReport) -> str:
    return json.dumps(report.to_dict(), indent=2)


def time_series_to_csv(series: Sequence[TimeSeriesPoint]) -> str:
    """One row per sample; a header row is always written."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for point in series:
        writer.writerow(asdict(point))
    return buffer.getvalue()


def render(report: AnalyticsReport, fmt: ExportFormat) -> str:
    """Render ``report`` in ``fmt``.

    Raises:
        ValueError: If ``fmt`` is not ``json`` or ``csv``
    """
    if fmt == "json":
        return report_to_json(report)
    if fmt == "csv":
        return time_series_to_csv(report.time_series)
    raise ValueError(f"Unsupported export format: {fmt}")
