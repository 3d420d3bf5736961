"""
Legal document summarization.

summarize_document() runs three steps over one submitted document:
- a ~500 word summary from the primary backend
- similar cases found by searching the index with that summary
- the statutes the document relies on (see statutes.py)
"""

import logging
import re
from dataclasses import dataclass, field

from .errors import InvalidInputError
from .llm import ProviderGateway
from .models import CaseSource
from .retrieval import EvidenceRetriever
from .statutes import extract_statutes, truncate_words

logger = logging.getLogger(__name__)

MAX_INPUT_WORDS = 10000
MAX_CLEAN_CHARS = 15000

SUMMARY_PROMPT = """You are an expert legal assistant specializing in summarizing legal documents.
Just give the summary, and don't write statements like "Here is a concise and coherent summary" or "The summary is as follows:".

Summarize this legal document in about 500 words, focusing on the key facts, arguments, and conclusions:

{document}"""

_PAGE_NUMBER_LINE = re.compile(r"^\d+$")


@dataclass
class DocumentSummary:
    summary: str
    similar_cases: list[CaseSource] = field(default_factory=list)
    statutes: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "summary_text": self.summary,
            "paths": [c.to_dict() for c in self.similar_cases],
            "legalStatutes": self.statutes,
        }


def clean_legal_document(text: str) -> str:
    """Drop page-number lines, collapse whitespace and cap the length."""
    lines = [line for line in (text or "").split("\n") if not _PAGE_NUMBER_LINE.match(line.strip())]
    cleaned = re.sub(r"\s+", " ", "\n".join(lines)).strip()
    if not cleaned:
        raise InvalidInputError("Input text is empty after preprocessing")
    return cleaned[:MAX_CLEAN_CHARS]


async def summarize_document(
    text: str,
    gateway: ProviderGateway,
    retriever: EvidenceRetriever,
) -> DocumentSummary:
    if not text or not text.strip():
        raise InvalidInputError("Input text is required")

    word_count = len(text.split())
    if word_count > MAX_INPUT_WORDS:
        logger.info(f"[SUMMARY] Truncating input from {word_count} to {MAX_INPUT_WORDS} words")
        text = truncate_words(text, MAX_INPUT_WORDS)

    cleaned = clean_legal_document(text)
    logger.info(f"[SUMMARY] Summarizing {min(word_count, MAX_INPUT_WORDS)} words")

    summary = await gateway.invoke_once(SUMMARY_PROMPT.format(document=cleaned))
    similar = await retriever.similar_cases(summary)
    statutes = await extract_statutes(gateway, text)

    logger.info(
        f"[SUMMARY] Done: {len(similar)} similar case(s), {len(statutes)} statute(s)"
    )
    return DocumentSummary(summary=summary, similar_cases=similar, statutes=statutes)
