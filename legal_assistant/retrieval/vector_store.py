"""
Case vector store using FAISS.

Default implementation of the similarity-search service:
    search(query_text, top_k) -> [(metadata, score), ...]

Scores follow the configured metric: cosine/dot similarities (IndexFlatIP)
or squared L2 distances (IndexFlatL2).
"""

import json
import logging
from pathlib import Path
from typing import Optional, Protocol

import faiss
import numpy as np

from .config import SimilarityMetric

logger = logging.getLogger(__name__)


def record_embed_text(record: dict) -> str:
    """Text that represents a case record in the index."""
    parts = [record.get("case_title", "")]
    if record.get("court"):
        parts.append(f"Court: {record['court']}")
    parts.append(record.get("text_snippet", ""))
    return "\n".join(p for p in parts if p)


class Embedder(Protocol):
    embedding_dim: Optional[int]

    def embed_text(self, text: str) -> np.ndarray: ...

    def embed_texts(self, texts: list[str], batch_size: int = 32, show_progress: bool = False) -> np.ndarray: ...


class SimilaritySearch(Protocol):
    """Interface the retriever needs from a vector index."""
    metric: SimilarityMetric

    def search(self, query_text: str, top_k: int) -> list[tuple[dict, float]]: ...


class CaseVectorStore:
    """Flat FAISS index over case records with JSON metadata."""

    INDEX_FILE = "cases.faiss"
    METADATA_FILE = "cases_metadata.json"
    CONFIG_FILE = "config.json"

    def __init__(
        self,
        embedder: Embedder,
        metric: SimilarityMetric = SimilarityMetric.COSINE,
    ):
        if embedder.embedding_dim is None:
            raise ValueError("Embedding dimension not initialized")
        self.embedder = embedder
        self.metric = SimilarityMetric(metric)
        self.embedding_dim = int(embedder.embedding_dim)
        self.metadata: list[dict] = []
        self.index = self._new_index()

    def _new_index(self) -> faiss.Index:
        if self.metric is SimilarityMetric.L2:
            return faiss.IndexFlatL2(self.embedding_dim)
        return faiss.IndexFlatIP(self.embedding_dim)

    def _prepare(self, vectors: np.ndarray) -> np.ndarray:
        vectors = np.asarray(vectors, dtype=np.float32)
        if vectors.ndim == 1:
            vectors = vectors.reshape(1, -1)
        if self.metric is SimilarityMetric.COSINE:
            norms = np.linalg.norm(vectors, axis=1, keepdims=True)
            vectors = vectors / np.where(norms == 0, 1.0, norms)
        return np.ascontiguousarray(vectors, dtype=np.float32)

    def add_records(self, records: list[dict], batch_size: int = 32, show_progress: bool = False) -> int:
        """Embed and index case records. Returns the number added."""
        if not records:
            return 0
        texts = [record_embed_text(r) for r in records]
        embeddings = self.embedder.embed_texts(texts, batch_size=batch_size, show_progress=show_progress)
        self.index.add(self._prepare(embeddings))
        self.metadata.extend(records)
        return len(records)

    def search(self, query_text: str, top_k: int) -> list[tuple[dict, float]]:
        """Nearest neighbours of `query_text`, best first."""
        if self.index.ntotal == 0 or top_k <= 0:
            return []

        k = min(top_k, self.index.ntotal)
        query = self._prepare(self.embedder.embed_text(query_text))
        scores, indices = self.index.search(query, k)

        hits = []
        for score, idx in zip(scores[0], indices[0]):
            if 0 <= idx < len(self.metadata):
                hits.append((dict(self.metadata[idx]), float(score)))
        return hits

    def save(self, directory: str | Path):
        """Save index, metadata and config to disk."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        faiss.write_index(self.index, str(directory / self.INDEX_FILE))

        with open(directory / self.METADATA_FILE, "w", encoding="utf-8") as f:
            json.dump(self.metadata, f, ensure_ascii=False, indent=2)

        with open(directory / self.CONFIG_FILE, "w") as f:
            json.dump({"embedding_dim": self.embedding_dim, "metric": self.metric.value}, f)

        logger.info(f"Case index saved to {directory} ({self.index.ntotal} records)")

    def load(self, directory: str | Path):
        """Load a saved index. The stored metric must match this store's metric."""
        directory = Path(directory)

        with open(directory / self.CONFIG_FILE, "r") as f:
            config = json.load(f)

        stored_metric = SimilarityMetric(config.get("metric", SimilarityMetric.COSINE.value))
        if stored_metric is not self.metric:
            raise ValueError(
                f"Index at {directory} was built for '{stored_metric.value}' "
                f"but '{self.metric.value}' is configured"
            )
        if config["embedding_dim"] != self.embedding_dim:
            raise ValueError(
                f"Index dimension {config['embedding_dim']} does not match "
                f"embedder dimension {self.embedding_dim}"
            )

        self.index = faiss.read_index(str(directory / self.INDEX_FILE))
        with open(directory / self.METADATA_FILE, "r", encoding="utf-8") as f:
            self.metadata = json.load(f)

        logger.info(f"Case index loaded from {directory} ({self.index.ntotal} records)")

    def get_stats(self) -> dict:
        return {
            "cases": self.index.ntotal,
            "embedding_dim": self.embedding_dim,
            "metric": self.metric.value,
        }
