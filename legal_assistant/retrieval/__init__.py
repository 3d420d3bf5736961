"""
Retrieval components for the legal assistant.

This package contains:
- config: Relevance policy and retrieval configuration
- embedder: Sentence-transformers wrapper
- vector_store: FAISS-backed similarity search over case records
- document_fetcher: Full-text enrichment from the document store
- records: Case record loading and bulk indexing
- retriever: Evidence retrieval pipeline
"""

from .config import (
    SimilarityMetric,
    RelevancePolicy,
    RetrievalConfig,
)

from .document_fetcher import DocumentFetcher

from .vector_store import CaseVectorStore, SimilaritySearch

from .records import read_case_records, records_from_pdfs, index_records

from .retriever import EvidenceRetriever, strip_punctuation

__all__ = [
    # Config
    "SimilarityMetric",
    "RelevancePolicy",
    "RetrievalConfig",
    # Stores
    "CaseVectorStore",
    "SimilaritySearch",
    "DocumentFetcher",
    # Records
    "read_case_records",
    "records_from_pdfs",
    "index_records",
    # Retriever
    "EvidenceRetriever",
    "strip_punctuation",
]
