"""
Tests for evidence retrieval: relevance bar, deduplication and enrichment.
"""

import asyncio

import pytest
from legal_assistant.retrieval import (
    EvidenceRetriever,
    RelevancePolicy,
    RetrievalConfig,
    SimilarityMetric,
    strip_punctuation,
)

from fakes import FakeFetcher, FakeSearch, case_hit

LONG_TEXT = "The appellant was convicted under Section 302 IPC. " * 20


def retrieve(retriever, query="What is Section 302 IPC?"):
    return asyncio.run(retriever.retrieve(query))


class TestRelevancePolicy:
    """Tests for metric-aware score filtering."""

    def test_similarity_higher_is_better(self):
        policy = RelevancePolicy(SimilarityMetric.COSINE, 0.6)
        assert policy.passes(0.82)
        assert policy.passes(0.6)
        assert not policy.passes(0.59)

    def test_distance_lower_is_better(self):
        policy = RelevancePolicy(SimilarityMetric.L2, 0.35)
        assert policy.passes(0.2)
        assert not policy.passes(0.5)

    def test_select_orders_best_first(self):
        policy = RelevancePolicy(SimilarityMetric.L2, 1.0)
        assert policy.select([0.9, 0.1, 0.5], lambda s: s) == [0.1, 0.5, 0.9]


class TestRetrieve:
    """Tests for the retrieval pipeline."""

    def test_single_relevant_case(self):
        """One case at 0.82 against a 0.6 bar becomes the only source."""
        store = FakeSearch([case_hit("State v. Sharma", 0.82)])
        result = retrieve(EvidenceRetriever(store))

        assert result.has_evidence
        assert [s.case_title for s in result.sources] == ["State v. Sharma"]
        assert result.sources[0].score == pytest.approx(0.82)

    def test_below_bar_is_dropped(self):
        store = FakeSearch([case_hit("Relevant", 0.82), case_hit("Irrelevant", 0.41)])
        result = retrieve(EvidenceRetriever(store))

        assert [c.title for c in result.candidates] == ["Relevant"]
        assert [s.case_title for s in result.sources] == ["Relevant"]

    def test_nothing_relevant_means_no_evidence(self):
        store = FakeSearch([case_hit("Irrelevant", 0.3)])
        result = retrieve(EvidenceRetriever(store))

        assert not result.has_evidence
        assert result.sources == []

    def test_duplicate_titles_cited_once(self):
        store = FakeSearch([
            case_hit("State v. Sharma", 0.9, case_id="a"),
            case_hit("State v. Sharma", 0.8, case_id="b"),
            case_hit("Rao v. Union", 0.7),
        ])
        result = retrieve(EvidenceRetriever(store))

        assert len(result.candidates) == 3
        assert [s.case_title for s in result.sources] == ["State v. Sharma", "Rao v. Union"]
        assert result.sources[0].case_id == "a"

    def test_distance_metric(self):
        store = FakeSearch([case_hit("Far", 0.9), case_hit("Near", 0.2)], metric="l2")
        config = RetrievalConfig(metric=SimilarityMetric.L2, relevance_bar=0.35)
        result = retrieve(EvidenceRetriever(store, config=config))

        assert [c.title for c in result.candidates] == ["Near"]

    def test_metric_mismatch_rejected(self):
        """A cosine bar can't be applied to an L2 index."""
        with pytest.raises(ValueError):
            EvidenceRetriever(FakeSearch(metric="l2"), config=RetrievalConfig())

    def test_query_is_stripped_of_punctuation(self):
        store = FakeSearch()
        retrieve(EvidenceRetriever(store), "What's Section 302, IPC?")

        assert store.calls == [("Whats Section 302 IPC", 4)]

    def test_search_failure_degrades_to_no_evidence(self):
        store = FakeSearch(error=ConnectionError("index offline"))
        result = retrieve(EvidenceRetriever(store))

        assert not result.has_evidence

    def test_prefers_mirror_url(self):
        store = FakeSearch([case_hit("Mirrored", 0.9, r2_url="https://mirror.example/m.pdf")])
        result = retrieve(EvidenceRetriever(store))

        assert result.sources[0].source_url == "https://mirror.example/m.pdf"


class TestEnrichment:
    """Tests for full-text enrichment of the top hits."""

    def test_top_hits_get_full_text(self):
        hits = [case_hit(f"Case {i}", 0.9 - i * 0.05) for i in range(3)]
        fetcher = FakeFetcher({hits[0][0]["source_url"]: LONG_TEXT, hits[1][0]["source_url"]: LONG_TEXT})
        result = retrieve(EvidenceRetriever(FakeSearch(hits), fetcher))

        assert len(fetcher.calls) == 2
        assert result.candidates[0].enriched
        assert result.candidates[0].text == LONG_TEXT
        assert not result.candidates[2].enriched
        assert result.candidates[2].text == "Snippet of Case 2."

    def test_failed_fetch_keeps_snippet(self):
        fetcher = FakeFetcher()
        result = retrieve(EvidenceRetriever(FakeSearch([case_hit("Case", 0.9)]), fetcher))

        assert result.candidates[0].text == "Snippet of Case."
        assert not result.candidates[0].enriched

    def test_fetch_exception_keeps_snippet(self):
        hit = case_hit("Case", 0.9)
        fetcher = FakeFetcher({hit[0]["source_url"]: TimeoutError("slow host")})
        result = retrieve(EvidenceRetriever(FakeSearch([hit]), fetcher))

        assert result.candidates[0].text == "Snippet of Case."

    def test_enrichment_respects_char_budget(self):
        hit = case_hit("Case", 0.9)
        fetcher = FakeFetcher({hit[0]["source_url"]: LONG_TEXT})
        config = RetrievalConfig(enrich_max_chars=120)
        result = retrieve(EvidenceRetriever(FakeSearch([hit]), fetcher, config))

        assert len(result.candidates[0].text) == 120


class TestSimilarCases:
    """Tests for summary-based recommendations."""

    def test_uses_recommendation_bar(self):
        store = FakeSearch([case_hit("Close", 0.55), case_hit("Distant", 0.3)])
        sources = asyncio.run(EvidenceRetriever(store).similar_cases("summary text"))

        assert [s.case_title for s in sources] == ["Close"]
        assert store.calls == [("summary text", 5)]


def test_strip_punctuation():
    assert strip_punctuation("Is bail a right? (Section 436)") == "Is bail a right Section 436"
