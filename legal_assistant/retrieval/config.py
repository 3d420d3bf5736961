"""
Retrieval configuration and relevance policy.

This module defines:
- SimilarityMetric: How the similarity-search service scores hits
- RelevancePolicy: A bar plus the direction implied by the metric
- RetrievalConfig: Configuration for the retrieval pipeline
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SimilarityMetric(str, Enum):
    """Score semantics of the vector index."""
    COSINE = "cosine"  # similarity, higher is better
    DOT = "dot"        # similarity, higher is better
    L2 = "l2"          # distance, lower is better

    @property
    def higher_is_better(self) -> bool:
        return self is not SimilarityMetric.L2


# Default "similar case" bars for summarization recommendations
DEFAULT_RECOMMENDATION_BARS = {
    SimilarityMetric.COSINE: 0.5,
    SimilarityMetric.DOT: 0.5,
    SimilarityMetric.L2: 0.35,
}


@dataclass(frozen=True)
class RelevancePolicy:
    """
    Decides whether a retrieval score is usable.

    The metric and the bar travel together so a distance bar can never be
    applied to similarity scores (or the other way around).
    """
    metric: SimilarityMetric
    bar: float

    def passes(self, score: float) -> bool:
        if self.metric.higher_is_better:
            return score >= self.bar
        return score <= self.bar

    def rank(self, items: list[T], score_of) -> list[T]:
        """Sort best-first under this metric."""
        return sorted(items, key=score_of, reverse=self.metric.higher_is_better)

    def select(self, items: list[T], score_of) -> list[T]:
        """Keep passing items, best first."""
        return self.rank([i for i in items if self.passes(score_of(i))], score_of)


@dataclass
class RetrievalConfig:
    """Configuration for the evidence retriever."""
    # Nearest neighbours requested per question
    top_k: int = 4

    # Score semantics must match the index that produced the scores
    metric: SimilarityMetric = SimilarityMetric.COSINE
    relevance_bar: float = 0.6
    recommendation_bar: Optional[float] = None
    similar_top_k: int = 5

    # Full-text enrichment of the best hits
    enrich_top_n: int = 2
    enrich_max_chars: int = 8000
    enrich_timeout: float = 10.0

    def relevance_policy(self) -> RelevancePolicy:
        return RelevancePolicy(self.metric, self.relevance_bar)

    def recommendation_policy(self) -> RelevancePolicy:
        bar = self.recommendation_bar
        if bar is None:
            bar = DEFAULT_RECOMMENDATION_BARS[self.metric]
        return RelevancePolicy(self.metric, bar)
