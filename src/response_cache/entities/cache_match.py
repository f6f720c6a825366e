"""Similarity match domain entities."""

from dataclasses import dataclass

from response_cache.models import CacheContext, CacheEntry


@dataclass(frozen=True)
class SimilarityAnalysis:
    """Breakdown of how two query/context pairs compare.

    Attributes:
        text_similarity: Score of the configured text algorithm (0-1)
        context_similarity: Weighted context attribute agreement (0-1)
        semantic_similarity: Keyword overlap, diagnostic only (0-1)
        overall_similarity: text * query_weight + context * context_weight
        confidence: Agreement of the three measures (1 = consistent)
    """

    text_similarity: float
    context_similarity: float
    semantic_similarity: float
    overall_similarity: float
    confidence: float


@dataclass(frozen=True)
class SimilarityMatch:
    """A cached entry that matched a query above the similarity threshold.

    Attributes:
        cache_key: Key of the matched entry
        query: The original query stored with the entry
        similarity: Overall similarity score (0-1)
        context: Context stored with the entry
        entry: Metadata record of the entry at match time
    """

    cache_key: str
    query: str
    similarity: float
    context: CacheContext
    entry: CacheEntry
