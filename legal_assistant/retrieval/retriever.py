"""
Evidence Retriever.

Turns a user question into ranked, filtered case evidence:
1. Strip punctuation from the question
2. Ask the similarity-search service for the top-K hits
3. Keep hits that clear the relevance bar (direction set by the metric)
4. Enrich the best hits with full document text, falling back to snippets
5. Deduplicate citations by case title

Retrieval never fails a request: an unavailable search service or a failed
enrichment fetch only degrades the evidence.
"""

import asyncio
import inspect
import logging
import re
from typing import Optional

from ..models import (
    CaseSource,
    EvidenceCandidate,
    RetrievalResult,
    dedupe_sources,
)
from ..models.evidence import best_text
from .config import RetrievalConfig
from .document_fetcher import DocumentFetcher
from .vector_store import SimilaritySearch

logger = logging.getLogger(__name__)


def strip_punctuation(text: str) -> str:
    return re.sub(r"[^\w\s]", "", text)


class EvidenceRetriever:
    """Similarity search + relevance filtering + full-text enrichment."""

    def __init__(
        self,
        store: SimilaritySearch,
        fetcher: Optional[DocumentFetcher] = None,
        config: Optional[RetrievalConfig] = None,
    ):
        self.store = store
        self.fetcher = fetcher
        self.config = config or RetrievalConfig()

        store_metric = getattr(store, "metric", None)
        if store_metric is not None and store_metric != self.config.metric:
            raise ValueError(
                f"Relevance metric '{self.config.metric.value}' does not match "
                f"the search index metric '{store_metric}'"
            )

        self.policy = self.config.relevance_policy()

    async def retrieve(self, query: str) -> RetrievalResult:
        """Retrieve grounding evidence for a question."""
        clean_query = strip_punctuation(query)
        logger.info(f"[RETRIEVER] Searching for: '{clean_query[:100]}'")

        hits = await self._search(clean_query, self.config.top_k)
        candidates = [EvidenceCandidate.from_search_hit(meta, score) for meta, score in hits]
        kept = self.policy.select(candidates, lambda c: c.relevance_score)

        dropped = len(candidates) - len(kept)
        if dropped:
            logger.info(
                f"[RETRIEVER] Dropped {dropped} hit(s) outside the "
                f"{self.policy.metric.value} bar {self.policy.bar}"
            )

        if not kept:
            logger.info("[RETRIEVER] No hits met the relevance bar, no grounding evidence")
            return RetrievalResult(query=query)

        await self._enrich(kept[:self.config.enrich_top_n])

        result = RetrievalResult(query=query, candidates=kept, sources=dedupe_sources(kept))
        logger.info(
            f"[RETRIEVER] {len(kept)} candidate(s), {len(result.sources)} unique source(s)"
        )
        return result

    async def similar_cases(self, text: str, top_k: Optional[int] = None) -> list[CaseSource]:
        """Case recommendations for a block of text (e.g. a summary)."""
        hits = await self._search(text, top_k or self.config.similar_top_k)
        candidates = [EvidenceCandidate.from_search_hit(meta, score) for meta, score in hits]
        policy = self.config.recommendation_policy()
        return dedupe_sources(policy.select(candidates, lambda c: c.relevance_score))

    async def _search(self, text: str, top_k: int) -> list[tuple[dict, float]]:
        try:
            if inspect.iscoroutinefunction(self.store.search):
                return await self.store.search(text, top_k)
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self.store.search, text, top_k)
        except Exception as e:
            logger.error(f"[RETRIEVER] Similarity search failed, continuing without evidence: {e}")
            return []

    async def _enrich(self, candidates: list[EvidenceCandidate]) -> None:
        if self.fetcher is None or not candidates:
            return

        texts = await asyncio.gather(
            *(
                self.fetcher.fetch_full_text(c.source_url, self.config.enrich_max_chars)
                for c in candidates
            ),
            return_exceptions=True,
        )

        for candidate, text in zip(candidates, texts):
            if isinstance(text, BaseException):
                logger.error(f"[RETRIEVER] Enrichment failed for '{candidate.title}': {text}")
                continue
            best_text(candidate, text)
