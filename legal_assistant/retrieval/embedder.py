"""
Sentence embedding for case records.
"""

import logging
from typing import Optional

import numpy as np
from sentence_transformers import SentenceTransformer

logger = logging.getLogger(__name__)


class CaseEmbedder:
    """Thin wrapper around a sentence-transformers model."""

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-mpnet-base-v2",
        device: Optional[str] = None
    ):
        """Load the embedding model.

        Args:
            model_name: Name of the sentence transformer model.
                       - "sentence-transformers/all-mpnet-base-v2" (default, good for case law)
                       - "sentence-transformers/all-MiniLM-L6-v2" (fast)
            device: Device to use ('cpu', 'cuda', or None for auto)
        """
        logger.info(f"Loading embedding model: {model_name}...")
        self.model_name = model_name
        self.model = SentenceTransformer(model_name, device=device)
        self.embedding_dim = self.model.get_sentence_embedding_dimension()
        logger.info(f"Model loaded. Embedding dimension: {self.embedding_dim}")

    def embed_text(self, text: str) -> np.ndarray:
        """Generate embedding for a single text."""
        return self.model.encode(text, convert_to_numpy=True)

    def embed_texts(self, texts: list[str], batch_size: int = 32, show_progress: bool = False) -> np.ndarray:
        """Generate embeddings for multiple texts."""
        return self.model.encode(
            texts,
            convert_to_numpy=True,
            batch_size=batch_size,
            show_progress_bar=show_progress
        )

