"""Query and context generation for cache warming.

A warming run pairs every query with every context. Queries come from the
caller, the configured ``warmup_queries``, a built-in list and, optionally,
templates expanded over common frameworks and languages. Both lists are
de-duplicated in order and capped by ``WarmupConfig``.
"""

import logging
from dataclasses import asdict, dataclass, fields, replace
from typing import Any

from response_cache.config import Settings, settings
from response_cache.entities import WarmupResult
from response_cache.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_WARMUP_QUERIES: tuple[str, ...] = (
    "How do I optimize performance?",
    "Best practices for this project?",
    "How to write better tests?",
    "Code review suggestions?",
    "Security best practices?",
    "How to improve code quality?",
    "Debugging techniques?",
    "Performance monitoring setup?",
    "Error handling strategies?",
    "API design patterns?",
)

WARMUP_CONTEXTS: tuple[dict[str, str], ...] = (
    {"projectType": "web", "language": "javascript", "framework": "react"},
    {"projectType": "web", "language": "typescript", "framework": "react"},
    {"projectType": "api", "language": "node", "framework": "express"},
    {"projectType": "api", "language": "typescript", "framework": "nestjs"},
    {"projectType": "mobile", "language": "react-native"},
    {"projectType": "web", "language": "vue", "framework": "vue"},
    {"projectType": "web", "language": "javascript", "framework": "svelte"},
)


@dataclass(frozen=True)
class QueryTemplate:
    """A query with one ``{framework}`` or ``{language}`` placeholder.

    Attributes:
        template: Query text containing the placeholder
        values: Substituted in turn to produce one query each
        category: What kind of question this is (debugging, testing, ...)
        priority: high, medium or low
    """

    template: str
    values: tuple[str, ...]
    category: str
    priority: str = "medium"

    @property
    def framework_specific(self) -> bool:
        return "{framework}" in self.template

    def expand(self) -> list[str]:
        return [self.template.replace("{framework}", v).replace("{language}", v) for v in self.values]


QUERY_TEMPLATES: tuple[QueryTemplate, ...] = (
    QueryTemplate(
        "How to optimize {framework} performance?",
        ("react", "vue", "angular", "express"),
        category="optimization",
        priority="high",
    ),
    QueryTemplate(
        "Best practices for {framework} development?",
        ("react", "vue", "angular", "node"),
        category="best-practices",
        priority="high",
    ),
    QueryTemplate(
        "How to debug {language} applications?",
        ("javascript", "typescript", "python", "go"),
        category="debugging",
    ),
    QueryTemplate(
        "Security considerations for {framework}?",
        ("react", "express", "vue", "angular"),
        category="security",
        priority="high",
    ),
    QueryTemplate(
        "Testing strategies for {framework}?",
        ("react", "vue", "node", "express"),
        category="testing",
    ),
)


def generate_from_templates(
    templates: tuple[QueryTemplate, ...] = QUERY_TEMPLATES,
    include_framework_specific: bool = True,
) -> list[str]:
    """Expand templates into queries, in template order.

    Args:
        templates: Templates to expand
        include_framework_specific: Also expand ``{framework}`` templates

    Returns:
        One query per template value
    """
    queries: list[str] = []
    for template in templates:
        if template.framework_specific and not include_framework_specific:
            continue
        queries.extend(template.expand())
    return queries


@dataclass
class WarmupConfig:
    """Warming options.

    Attributes:
        max_queries: Queries per run, after de-duplication
        max_contexts: Contexts each query is paired with
        include_templates: Add queries expanded from ``QUERY_TEMPLATES``
        include_framework_specific: Expand ``{framework}`` templates as well as
            ``{language}`` ones
    """

    max_queries: int = 100
    max_contexts: int = len(WARMUP_CONTEXTS)
    include_templates: bool = False
    include_framework_specific: bool = True

    def __post_init__(self) -> None:
        for name in ("max_queries", "max_contexts"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "WarmupConfig":
        source = source or settings
        return cls(
            max_queries=source.warmup_max_queries,
            max_contexts=source.warmup_max_contexts,
            include_templates=source.warmup_templates,
            include_framework_specific=source.warmup_framework_specific,
        )

    def with_changes(self, **changes: Any) -> "WarmupConfig":
        """Return a validated copy with ``changes`` applied."""
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            raise ConfigurationError(f"Unknown warmup options: {', '.join(sorted(unknown))}")
        return replace(self, **changes)


class CacheWarmer:
    """Builds the query and context lists for a warming run.

    The cache service owns the run itself; this class decides what to warm
    and keeps a record of the last run.

    Example:
        ```python
        warmer = CacheWarmer(WarmupConfig(include_templates=True, max_queries=50))
        for query in warmer.queries(custom=["How do I center a div?"]):
            for context in warmer.contexts():
                ...
        ```
    """

    def __init__(self, config: WarmupConfig | None = None) -> None:
        self._config = config or WarmupConfig()
        self._runs = 0
        self._last_result: WarmupResult | None = None

    @property
    def config(self) -> WarmupConfig:
        """Get the current configuration."""
        return self._config

    def update_config(self, **changes: Any) -> WarmupConfig:
        """Apply validated option changes.

        Raises:
            ConfigurationError: On unknown or invalid options
        """
        self._config = self._config.with_changes(**changes)
        logger.info("Cache warming configuration updated: %s", ", ".join(sorted(changes)))
        return self._config

    def queries(self, custom: list[str] | None = None, configured: list[str] | None = None) -> list[str]:
        """Caller queries first, then configured, built-in and template ones.

        Duplicates keep their first position; the result is capped at
        ``max_queries``.
        """
        candidates = [*(custom or []), *(configured or []), *DEFAULT_WARMUP_QUERIES]
        if self._config.include_templates:
            candidates.extend(
                generate_from_templates(include_framework_specific=self._config.include_framework_specific)
            )
        return list(dict.fromkeys(candidates))[: self._config.max_queries]

    def contexts(self) -> list[dict[str, str]]:
        """The common contexts, capped at ``max_contexts``."""
        return [dict(context) for context in WARMUP_CONTEXTS[: self._config.max_contexts]]

    def record(self, result: WarmupResult) -> None:
        """Remember the outcome of a finished run."""
        self._runs += 1
        self._last_result = result

    def get_stats(self) -> dict[str, Any]:
        """Configuration, template count and the last run's outcome."""
        return {
            "config": asdict(self._config),
            "template_queries": len(
                generate_from_templates(include_framework_specific=self._config.include_framework_specific)
            ),
            "runs": self._runs,
            "last_run": asdict(self._last_result) if self._last_result is not None else None,
        }
