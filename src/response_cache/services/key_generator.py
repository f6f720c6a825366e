"""Cache key generation.

Keys are SHA-256 digests of the normalized query joined with a canonical,
defaulted JSON rendering of the context attributes that affect the answer.
"""

import hashlib
import json
from collections.abc import Mapping
from typing import Any

from response_cache.models import CacheContext

# Ordered: the first pattern found in the lowercased file context wins
FILE_TYPE_PATTERNS: tuple[tuple[str, str], ...] = (
    ("package.json", "config"),
    ("dockerfile", "docker"),
    (".test.", "test"),
    (".spec.", "test"),
    ("readme", "documentation"),
    (".css", "style"),
    (".scss", "style"),
    (".less", "style"),
    (".tsx", "react"),
    (".jsx", "react"),
    (".vue", "vue"),
    (".ts", "typescript"),
    (".js", "javascript"),
    (".py", "python"),
    (".go", "go"),
    (".rs", "rust"),
    (".java", "java"),
)

DEFAULT_FILE_TYPE = "code"


def detect_file_type(file_context: str) -> str:
    """Map a file name or path to a coarse file-type category.

    Example:
        >>> detect_file_type("src/App.tsx")
        'react'
        >>> detect_file_type("Makefile")
        'code'
    """
    lowered = file_context.lower()
    for pattern, file_type in FILE_TYPE_PATTERNS:
        if pattern in lowered:
            return file_type
    return DEFAULT_FILE_TYPE


class CacheKeyGenerator:
    """Derives deterministic cache keys from a query and its context.

    Identical queries (ignoring case and surrounding whitespace) asked in
    the same context always produce the same key; changing any tracked
    context attribute produces a different one. ``session_id`` and
    ``response_time`` are deliberately not part of the key.

    Example:
        >>> gen = CacheKeyGenerator()
        >>> key = gen.generate("How do I center a div?", {"language": "css"})
        >>> len(key)
        64
    """

    def canonical_context(self, context: CacheContext | Mapping[str, Any] | None) -> dict[str, str]:
        """Fill absent attributes with defaults and resolve the file type."""
        ctx = CacheContext.coerce(context)
        canonical = {
            "projectType": ctx.project_type or "unknown",
            "language": ctx.language or "unknown",
            "framework": ctx.framework or "unknown",
            "taskType": ctx.task_type or "general",
            "skillLevel": ctx.skill_level or "intermediate",
            "aiModel": ctx.ai_model or "default",
            "fileType": ctx.file_type or "unknown",
        }
        if ctx.file_context:
            canonical["fileType"] = detect_file_type(ctx.file_context)
        return canonical

    @staticmethod
    def normalize_query(query: str) -> str:
        """Lowercase and trim the query."""
        return query.lower().strip()

    def generate(self, query: str, context: CacheContext | Mapping[str, Any] | None = None) -> str:
        """Generate the cache key for ``query`` asked in ``context``.

        Returns:
            64-character SHA-256 hex digest
        """
        context_json = json.dumps(
            self.canonical_context(context),
            sort_keys=True,
            separators=(",", ":"),
        )
        combined = f"{self.normalize_query(query)}|{context_json}"
        return hashlib.sha256(combined.encode("utf-8")).hexdigest()
