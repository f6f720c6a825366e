"""Small helpers shared across the cache layers."""

import os
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path

MS_PER_DAY = 24 * 60 * 60 * 1000
BYTES_PER_MB = 1024 * 1024


def now_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000


def iso_from_ms(timestamp_ms: float) -> str:
    """Format an epoch-millisecond timestamp as an ISO-8601 UTC string."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).isoformat()


def temp_path_for(path: Path) -> Path:
    """Return a unique sibling temp path used for atomic writes."""
    return path.with_name(f"{path.name}.{uuid.uuid4().hex[:8]}.tmp")


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` via a temp file and an atomic rename.

    Raises:
        OSError: If the temp file cannot be written or renamed.
    """
    tmp = temp_path_for(path)
    try:
        with open(tmp, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def format_duration(ms: float) -> str:
    """Format a millisecond span as a compact human string (``1d 2h``)."""
    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def truncate(text: str, limit: int = 100) -> str:
    """Truncate ``text`` to ``limit`` characters, marking the cut with ``...``."""
    return text[:limit] + ("..." if len(text) > limit else "")


__all__ = [
    "BYTES_PER_MB",
    "MS_PER_DAY",
    "atomic_write_bytes",
    "format_duration",
    "iso_from_ms",
    "now_ms",
    "temp_path_for",
    "truncate",
]
