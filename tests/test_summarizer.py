"""
Tests for document cleaning and summarization.
"""

import asyncio

import pytest
from legal_assistant.errors import InvalidInputError, ProviderExhaustedError
from legal_assistant.retrieval import EvidenceRetriever
from legal_assistant.summarizer import clean_legal_document, summarize_document

from fakes import FakeProviders, FakeSearch, RateLimitError, case_hit, make_gateway

SUMMARY = "The appellant challenged a conviction for murder under Section 302 IPC."


def scripted(messages):
    prompt = messages[-1].content
    if "extract ALL applicable Indian laws" in prompt:
        return '{"Section 302 IPC": "Punishment for murder."}'
    return SUMMARY


class TestCleanLegalDocument:
    def test_drops_page_numbers_and_collapses_whitespace(self):
        text = "JUDGMENT\n12\nThe appeal   is\n\nallowed.\n  13  \n"
        assert clean_legal_document(text) == "JUDGMENT The appeal is allowed."

    def test_length_cap(self):
        assert len(clean_legal_document("word " * 10000)) == 15000

    @pytest.mark.parametrize("text", ["", "1\n2\n3", "   "])
    def test_empty_after_cleaning(self, text):
        with pytest.raises(InvalidInputError):
            clean_legal_document(text)


class TestSummarizeDocument:
    """Tests for the summarize flow."""

    def _run(self, text, providers, hits=()):
        gateway = make_gateway(providers)
        retriever = EvidenceRetriever(FakeSearch(list(hits)))
        return asyncio.run(summarize_document(text, gateway, retriever))

    def test_summary_similar_cases_and_statutes(self):
        providers = FakeProviders(default=scripted)
        result = self._run(
            "The accused was convicted of murder.",
            providers,
            hits=[case_hit("State v. Sharma", 0.7), case_hit("Unrelated", 0.2)],
        )

        assert result.summary == SUMMARY
        assert [c.case_title for c in result.similar_cases] == ["State v. Sharma"]
        assert result.statutes == {"Section 302 IPC": "Punishment for murder."}

    def test_summary_uses_primary_first(self):
        providers = FakeProviders(default=scripted)
        self._run("The accused was convicted of murder.", providers)

        assert providers.calls[0] == "gemini#1"
        assert providers.calls[1] == "openai#1"

    def test_response_shape(self):
        result = self._run("The accused was convicted of murder.", FakeProviders(default=scripted))

        assert set(result.to_dict()) == {"summary_text", "paths", "legalStatutes"}

    def test_missing_text(self):
        with pytest.raises(InvalidInputError):
            self._run("  ", FakeProviders())

    def test_long_input_is_truncated(self):
        providers = FakeProviders(default=scripted)
        text = " ".join(f"w{i}" for i in range(12000))

        self._run(text, providers)

        statute_prompt = providers.prompts[1][-1].content
        assert "w3999" in statute_prompt
        assert "w4000 " not in statute_prompt

    def test_no_provider(self):
        with pytest.raises(ProviderExhaustedError):
            self._run("The accused was convicted of murder.", FakeProviders(default=RateLimitError("429")))
