"""
Evidence models for the retrieval pipeline.
"""

from dataclasses import dataclass, field
from typing import Optional

from .conversation import CaseSource

# Inserted into the system prompt when nothing clears the relevance bar
NO_EVIDENCE_MARKER = "NO SPECIFIC CASE FILES FOUND."


@dataclass
class EvidenceCandidate:
    """A retrieved case excerpt. Lives for one request only."""
    document_id: str
    title: str
    court: str
    source_url: str
    relevance_score: float
    text: str
    metadata: dict = field(default_factory=dict)
    enriched: bool = False

    @classmethod
    def from_search_hit(cls, metadata: dict, score: float) -> "EvidenceCandidate":
        """Build a candidate from similarity-search metadata."""
        return cls(
            document_id=str(metadata.get("case_id", "")),
            title=metadata.get("case_title") or "Unknown Case",
            court=metadata.get("court") or "Unknown",
            # Prefer the mirrored copy, the original host is often slow
            source_url=metadata.get("r2_url") or metadata.get("source_url") or "#",
            relevance_score=float(score),
            text=metadata.get("page_content") or metadata.get("text_snippet") or "",
            metadata=metadata,
        )

    def to_source(self) -> CaseSource:
        year = self.metadata.get("year")
        return CaseSource(
            case_title=self.title,
            source_url=self.source_url,
            case_id=self.document_id or None,
            court=self.metadata.get("court"),
            judge=self.metadata.get("judge"),
            year=int(year) if year not in (None, "") else None,
            score=self.relevance_score,
        )


@dataclass
class RetrievalResult:
    """Output of one retrieval run."""
    query: str
    candidates: list[EvidenceCandidate] = field(default_factory=list)
    sources: list[CaseSource] = field(default_factory=list)

    @property
    def has_evidence(self) -> bool:
        return bool(self.candidates)

    def source_dicts(self) -> list[dict]:
        return [s.to_dict() for s in self.sources]


def dedupe_sources(candidates: list[EvidenceCandidate]) -> list[CaseSource]:
    """Citation list with one entry per title, first occurrence wins."""
    seen: set[str] = set()
    sources: list[CaseSource] = []
    for candidate in candidates:
        if candidate.title in seen:
            continue
        seen.add(candidate.title)
        sources.append(candidate.to_source())
    return sources


def best_text(candidate: EvidenceCandidate, full_text: Optional[str]) -> EvidenceCandidate:
    """Swap in enriched text when the fetch succeeded."""
    if full_text:
        candidate.text = full_text
        candidate.enriched = True
    return candidate
