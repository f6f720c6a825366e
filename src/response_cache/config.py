import os
from dataclasses import dataclass, field, fields, replace
from functools import lru_cache
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from response_cache.errors import ConfigurationError

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_list(name: str) -> tuple[str, ...]:
    raw = os.getenv(name, "")
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Storage
    cache_dir: str = os.getenv("RESPONSE_CACHE_DIR", ".response-cache")

    # Cache
    max_cache_size: int = int(os.getenv("CACHE_MAX_SIZE", str(100 * 1024 * 1024)))  # 100MB
    default_ttl_ms: int = int(os.getenv("CACHE_DEFAULT_TTL_MS", str(24 * 60 * 60 * 1000)))  # 24h
    similarity_threshold: float = float(os.getenv("CACHE_SIMILARITY_THRESHOLD", "0.75"))
    compression_enabled: bool = _env_bool("CACHE_COMPRESSION_ENABLED", "true")
    background_cleanup: bool = _env_bool("CACHE_BACKGROUND_CLEANUP", "true")
    cleanup_interval_ms: int = int(os.getenv("CACHE_CLEANUP_INTERVAL_MS", str(60 * 60 * 1000)))  # 1h
    max_entries: int = int(os.getenv("CACHE_MAX_ENTRIES", "10000"))
    enable_analytics: bool = _env_bool("CACHE_ENABLE_ANALYTICS", "true")
    warmup_queries: tuple[str, ...] = _env_list("CACHE_WARMUP_QUERIES")

    # Warming
    warmup_max_queries: int = int(os.getenv("CACHE_WARMUP_MAX_QUERIES", "100"))
    warmup_max_contexts: int = int(os.getenv("CACHE_WARMUP_MAX_CONTEXTS", "7"))
    warmup_templates: bool = _env_bool("CACHE_WARMUP_TEMPLATES", "false")
    warmup_framework_specific: bool = _env_bool("CACHE_WARMUP_FRAMEWORK_SPECIFIC", "true")

    # Analytics
    analytics_retention_days: int = int(os.getenv("ANALYTICS_RETENTION_DAYS", "30"))
    analytics_aggregation_interval_ms: int = int(
        os.getenv("ANALYTICS_AGGREGATION_INTERVAL_MS", str(60 * 1000))
    )

    # API
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = _env_bool("API_RELOAD", "false")

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if not 0 <= self.similarity_threshold <= 1:
            raise ConfigurationError("CACHE_SIMILARITY_THRESHOLD must be between 0 and 1")

        if self.analytics_retention_days <= 0:
            raise ConfigurationError(
                f"ANALYTICS_RETENTION_DAYS must be positive, got {self.analytics_retention_days}"
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


@dataclass
class CacheConfig:
    """Per-instance cache options.

    Durations are in milliseconds and sizes in bytes. Defaults come from the
    environment-backed ``settings``; pass explicit values to override them.

    Raises:
        ConfigurationError: If any option is out of range.
    """

    cache_dir: Path = field(default_factory=lambda: Path(settings.cache_dir))
    max_cache_size: int = field(default_factory=lambda: settings.max_cache_size)
    default_ttl_ms: int = field(default_factory=lambda: settings.default_ttl_ms)
    similarity_threshold: float = field(default_factory=lambda: settings.similarity_threshold)
    compression_enabled: bool = field(default_factory=lambda: settings.compression_enabled)
    background_cleanup: bool = field(default_factory=lambda: settings.background_cleanup)
    cleanup_interval_ms: int = field(default_factory=lambda: settings.cleanup_interval_ms)
    max_entries: int = field(default_factory=lambda: settings.max_entries)
    enable_analytics: bool = field(default_factory=lambda: settings.enable_analytics)
    warmup_queries: list[str] = field(default_factory=lambda: list(settings.warmup_queries))

    def __post_init__(self) -> None:
        self.cache_dir = Path(self.cache_dir)

        for name in ("max_cache_size", "default_ttl_ms", "cleanup_interval_ms", "max_entries"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")

        if not 0 <= self.similarity_threshold <= 1:
            raise ConfigurationError(
                f"similarity_threshold must be between 0 and 1, got {self.similarity_threshold}"
            )

        if not all(isinstance(q, str) for q in self.warmup_queries):
            raise ConfigurationError("warmup_queries must be a list of strings")

    @classmethod
    def from_settings(cls, source: Settings | None = None, **overrides: Any) -> "CacheConfig":
        """Build a config from environment settings, applying ``overrides``."""
        source = source or settings
        values: dict[str, Any] = {
            "cache_dir": Path(source.cache_dir),
            "max_cache_size": source.max_cache_size,
            "default_ttl_ms": source.default_ttl_ms,
            "similarity_threshold": source.similarity_threshold,
            "compression_enabled": source.compression_enabled,
            "background_cleanup": source.background_cleanup,
            "cleanup_interval_ms": source.cleanup_interval_ms,
            "max_entries": source.max_entries,
            "enable_analytics": source.enable_analytics,
            "warmup_queries": list(source.warmup_queries),
        }
        values.update(overrides)
        return cls(**values)

    def with_changes(self, **changes: Any) -> "CacheConfig":
        """Return a validated copy with ``changes`` applied."""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ConfigurationError(f"Unknown cache options: {', '.join(sorted(unknown))}")
        return replace(self, **changes)
