"""Lexical and statistical similarity matching for cache misses.

When an exact key lookup misses, the matcher compares the query (and its
context) against every live cached query and reports those scoring at or
above the configured threshold.
"""

import re
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Literal

import numpy as np

from response_cache.entities import SimilarityAnalysis, SimilarityMatch
from response_cache.errors import ConfigurationError
from response_cache.models import CacheContext, CacheEntry
from response_cache.utils import now_ms

Algorithm = Literal["levenshtein", "jaccard", "cosine", "hybrid"]

ALGORITHMS: tuple[str, ...] = ("levenshtein", "jaccard", "cosine", "hybrid")

CONTEXT_WEIGHTS: dict[str, float] = {
    "project_type": 0.3,
    "language": 0.25,
    "framework": 0.2,
    "task_type": 0.15,
    "file_type": 0.1,
}

# Partial credit for near-identical context values ("typescript" vs "typescript5")
PARTIAL_MATCH_MIN = 0.7

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "is", "are", "was", "were", "be", "been", "have",
        "has", "had", "do", "does", "did", "will", "would", "could", "should",
        "how", "what", "where", "when", "why", "this", "that", "these", "those",
    }
)

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_SUFFIXES = re.compile(r"\b(\w+)(ing|ed|er|est|ly|tion|sion)\b")
_ALPHA = re.compile(r"^[a-zA-Z]+$")


@dataclass(frozen=True)
class SimilarityConfig:
    """Similarity matching options.

    Attributes:
        algorithm: Text similarity algorithm
        threshold: Minimum overall similarity for a match (0-1)
        context_weight: Weight of context similarity in the overall score
        query_weight: Weight of text similarity in the overall score
        normalize_case: Lowercase queries before comparing
        remove_punctuation: Replace punctuation with whitespace
        stemming: Strip common English suffixes
    """

    algorithm: Algorithm = "hybrid"
    threshold: float = 0.75
    context_weight: float = 0.3
    query_weight: float = 0.7
    normalize_case: bool = True
    remove_punctuation: bool = True
    stemming: bool = False

    def __post_init__(self) -> None:
        if self.algorithm not in ALGORITHMS:
            raise ConfigurationError(f"Unknown similarity algorithm: {self.algorithm}")
        if not 0 <= self.threshold <= 1:
            raise ConfigurationError("Similarity threshold must be between 0 and 1")
        if self.context_weight < 0 or self.query_weight < 0:
            raise ConfigurationError("Similarity weights must be non-negative")


# ----------------------------------------------------------------------
# Text measures
# ----------------------------------------------------------------------


def levenshtein_distance(a: str, b: str) -> int:
    """Unit-cost edit distance (insert, delete, substitute)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(current[j - 1] + 1, previous[j] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def levenshtein_similarity(a: str, b: str) -> float:
    """``1 - distance / max_len``; two empty strings are identical."""
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / max_len


def jaccard_similarity(a: str, b: str) -> float:
    """Overlap of whitespace-separated token sets."""
    tokens_a = set(a.split())
    tokens_b = set(b.split())
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def cosine_similarity(a: str, b: str) -> float:
    """Cosine of the character-frequency vectors of ``a`` and ``b``."""
    freq_a = Counter(a)
    freq_b = Counter(b)
    chars = sorted(set(freq_a) | set(freq_b))
    if not chars:
        return 0.0
    vec_a = np.array([freq_a[c] for c in chars], dtype=float)
    vec_b = np.array([freq_b[c] for c in chars], dtype=float)
    magnitude = float(np.linalg.norm(vec_a) * np.linalg.norm(vec_b))
    if magnitude == 0:
        return 0.0
    return float(np.dot(vec_a, vec_b) / magnitude)


def hybrid_similarity(a: str, b: str) -> float:
    """Weighted blend favouring Levenshtein, which tolerates typos best."""
    return (
        0.5 * levenshtein_similarity(a, b)
        + 0.3 * jaccard_similarity(a, b)
        + 0.2 * cosine_similarity(a, b)
    )


_TEXT_MEASURES = {
    "levenshtein": levenshtein_similarity,
    "jaccard": jaccard_similarity,
    "cosine": cosine_similarity,
    "hybrid": hybrid_similarity,
}


def extract_keywords(text: str) -> set[str]:
    """Alphabetic words longer than two characters that are not stop words."""
    return {
        word
        for word in text.lower().split()
        if len(word) > 2 and word not in STOP_WORDS and _ALPHA.match(word)
    }


def apply_stemming(text: str) -> str:
    """Naive suffix stripping."""
    return _SUFFIXES.sub(r"\1", text)


# ----------------------------------------------------------------------
# Matcher
# ----------------------------------------------------------------------


class SimilarityMatcher:
    """Scores query/context pairs and finds similar cached queries.

    Example:
        ```python
        matcher = SimilarityMatcher(SimilarityConfig(threshold=0.8))
        analysis = matcher.analyze("center a div", "centering a div", {}, {})
        analysis.overall_similarity
        ```
    """

    def __init__(self, config: SimilarityConfig | None = None) -> None:
        self._config = config or SimilarityConfig()

    @property
    def config(self) -> SimilarityConfig:
        """Get the current configuration."""
        return self._config

    def update_config(self, **changes: Any) -> None:
        """Replace configuration fields (validated)."""
        self._config = replace(self._config, **changes)

    def normalize_query(self, query: str) -> str:
        """Apply the configured normalization steps."""
        normalized = query
        if self._config.normalize_case:
            normalized = normalized.lower()
        if self._config.remove_punctuation:
            normalized = _PUNCTUATION.sub(" ", normalized)
        normalized = _WHITESPACE.sub(" ", normalized).strip()
        if self._config.stemming:
            normalized = apply_stemming(normalized)
        return normalized

    def text_similarity(self, a: str, b: str) -> float:
        """Score two already-normalized strings with the configured algorithm."""
        return _TEXT_MEASURES[self._config.algorithm](a, b)

    def context_similarity(
        self,
        context_a: CacheContext | Mapping[str, Any] | None,
        context_b: CacheContext | Mapping[str, Any] | None,
    ) -> float:
        """Weighted agreement over the tracked context attributes.

        Attributes missing on either side are left out of both the score and
        the weight total. With nothing comparable the result is a neutral 0.5.
        """
        ctx_a = CacheContext.coerce(context_a)
        ctx_b = CacheContext.coerce(context_b)

        score = 0.0
        total_weight = 0.0
        for attribute, weight in CONTEXT_WEIGHTS.items():
            value_a = getattr(ctx_a, attribute)
            value_b = getattr(ctx_b, attribute)
            if not value_a or not value_b:
                continue

            total_weight += weight
            if value_a == value_b:
                score += weight
            else:
                partial = levenshtein_similarity(value_a, value_b)
                if partial > PARTIAL_MATCH_MIN:
                    score += weight * partial

        if total_weight == 0:
            return 0.5
        return score / total_weight

    def semantic_similarity(self, a: str, b: str) -> float:
        """Keyword-set overlap; reported for diagnostics, not used for matching."""
        keywords_a = extract_keywords(a)
        keywords_b = extract_keywords(b)
        union = keywords_a | keywords_b
        if not union:
            return 0.0
        return len(keywords_a & keywords_b) / len(union)

    @staticmethod
    def confidence(text: float, context: float, semantic: float) -> float:
        """Lower spread between the three measures means higher confidence."""
        return max(0.0, 1.0 - 2.0 * float(np.std([text, context, semantic])))

    def analyze(
        self,
        query_a: str,
        query_b: str,
        context_a: CacheContext | Mapping[str, Any] | None = None,
        context_b: CacheContext | Mapping[str, Any] | None = None,
    ) -> SimilarityAnalysis:
        """Compare two raw queries and their contexts."""
        return self._analyze_normalized(
            self.normalize_query(query_a),
            self.normalize_query(query_b),
            context_a,
            context_b,
        )

    def _analyze_normalized(
        self,
        normalized_a: str,
        normalized_b: str,
        context_a: CacheContext | Mapping[str, Any] | None,
        context_b: CacheContext | Mapping[str, Any] | None,
    ) -> SimilarityAnalysis:
        text = self.text_similarity(normalized_a, normalized_b)
        context = self.context_similarity(context_a, context_b)
        semantic = self.semantic_similarity(normalized_a, normalized_b)
        overall = text * self._config.query_weight + context * self._config.context_weight

        return SimilarityAnalysis(
            text_similarity=text,
            context_similarity=context,
            semantic_similarity=semantic,
            overall_similarity=overall,
            confidence=self.confidence(text, context, semantic),
        )

    def find_similar(
        self,
        query: str,
        context: CacheContext | Mapping[str, Any] | None,
        candidates: Mapping[str, tuple[str, CacheContext]],
        entries: Mapping[str, CacheEntry],
        now: float | None = None,
    ) -> list[SimilarityMatch]:
        """Find cached queries similar to ``query``.

        Args:
            query: The incoming query
            context: The incoming query's context
            candidates: cache_key -> (stored query, stored context)
            entries: cache_key -> metadata record; keys without a live
                record are skipped
            now: Reference time for expiry checks (epoch ms)

        Returns:
            Matches at or above the threshold, best first
        """
        now = now if now is not None else now_ms()
        normalized = self.normalize_query(query)
        ctx = CacheContext.coerce(context)
        matches: list[SimilarityMatch] = []

        for cache_key, (cached_query, cached_context) in candidates.items():
            entry = entries.get(cache_key)
            if entry is None or entry.is_expired(now):
                continue

            analysis = self._analyze_normalized(
                normalized,
                self.normalize_query(cached_query),
                ctx,
                cached_context,
            )
            if analysis.overall_similarity >= self._config.threshold:
                matches.append(
                    SimilarityMatch(
                        cache_key=cache_key,
                        query=cached_query,
                        similarity=analysis.overall_similarity,
                        context=cached_context,
                        entry=entry,
                    )
                )

        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches
