"""
Data models for the legal assistant.

This package contains:
- conversation: Conversation, Turn and citation models (persisted)
- evidence: Retrieval candidates and results (per request)
"""

from .conversation import CaseSource, Turn, Conversation

from .evidence import (
    NO_EVIDENCE_MARKER,
    EvidenceCandidate,
    RetrievalResult,
    dedupe_sources,
)

__all__ = [
    # Conversation models
    "CaseSource",
    "Turn",
    "Conversation",
    # Evidence models
    "NO_EVIDENCE_MARKER",
    "EvidenceCandidate",
    "RetrievalResult",
    "dedupe_sources",
]
