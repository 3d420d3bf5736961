"""
Server configuration and environment settings.
"""

from pathlib import Path
from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings

from ..retrieval import RetrievalConfig, SimilarityMetric


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server settings
    app_name: str = "Legal Assistant API"
    app_version: str = "1.0.0"
    debug: bool = False

    # CORS settings
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Index and model settings
    index_dir: Path = Path("./data/index")
    embedding_model: str = "sentence-transformers/all-mpnet-base-v2"

    # Retrieval settings
    similarity_metric: SimilarityMetric = SimilarityMetric.COSINE
    relevance_bar: float = 0.6
    recommendation_bar: Optional[float] = None
    top_k: int = 4
    similar_top_k: int = 5
    enrich_top_n: int = 2
    enrich_timeout: float = 10.0
    enrich_max_chars: int = 8000

    # LLM settings - primary pool (Gemini)
    gemini_api_key: str | None = None
    gemini_api_key_2: str | None = None
    gemini_api_key_3: str | None = None
    gemini_api_keys: list[str] = []  # JSON list, e.g. GEMINI_API_KEYS=["k1","k2"]
    gemini_model: str = "gemini-2.5-flash-lite"

    # LLM settings - secondary (OpenAI or an OpenAI-compatible host)
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str | None = None

    # Credential rotation
    credential_failure_limit: int = 3
    credential_cooldown_seconds: float = 60.0

    # Chat settings
    usage_limit: int = 10
    storage_backend: Literal["memory", "json"] = "json"
    data_dir: Path = Path("./data/app")
    stream_words_per_fragment: int = 3
    stream_pacing_delay: float = 0.03

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def gemini_key_pool(self) -> list[str]:
        """All configured Gemini keys, in order, without duplicates."""
        keys = [self.gemini_api_key, self.gemini_api_key_2, self.gemini_api_key_3, *self.gemini_api_keys]
        pool: list[str] = []
        for key in keys:
            if key and key not in pool:
                pool.append(key)
        return pool

    def retrieval_config(self) -> RetrievalConfig:
        return RetrievalConfig(
            top_k=self.top_k,
            metric=self.similarity_metric,
            relevance_bar=self.relevance_bar,
            recommendation_bar=self.recommendation_bar,
            similar_top_k=self.similar_top_k,
            enrich_top_n=self.enrich_top_n,
            enrich_max_chars=self.enrich_max_chars,
            enrich_timeout=self.enrich_timeout,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
