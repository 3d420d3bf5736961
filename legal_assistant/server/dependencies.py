"""
Dependency injection for FastAPI.

Provides singleton gateway, retriever, stores and chat pipeline instances.
Tests replace these through `app.dependency_overrides`.
"""

import logging
from typing import Optional

from fastapi import Header, HTTPException

from ..chat import ChatPipeline, ContextAssembler, TurnPersister
from ..llm import (
    CredentialRotator,
    GeminiBackend,
    OpenAIBackend,
    ProviderGateway,
    ProviderSlot,
)
from ..retrieval import CaseVectorStore, DocumentFetcher, EvidenceRetriever
from ..storage import (
    ConversationStore,
    InMemoryConversationStore,
    InMemoryUsageStore,
    JsonConversationStore,
    JsonUsageStore,
    UsageStore,
)
from .config import Settings, get_settings

logger = logging.getLogger(__name__)

PRIMARY_PROVIDER = "gemini"
SECONDARY_PROVIDER = "openai"

# Global singleton instances
_gateway: Optional[ProviderGateway] = None
_vector_store: Optional[CaseVectorStore] = None
_fetcher: Optional[DocumentFetcher] = None
_retriever: Optional[EvidenceRetriever] = None
_conversation_store: Optional[ConversationStore] = None
_usage_store: Optional[UsageStore] = None
_pipeline: Optional[ChatPipeline] = None
_is_initialized: bool = False


def build_gateway(settings: Settings) -> ProviderGateway:
    """Credential pools and backends from settings."""
    pools = {PRIMARY_PROVIDER: settings.gemini_key_pool()}
    if settings.openai_api_key:
        pools[SECONDARY_PROVIDER] = [settings.openai_api_key]

    rotator = CredentialRotator.from_secrets(
        pools,
        failure_limit=settings.credential_failure_limit,
        cooldown_seconds=settings.credential_cooldown_seconds,
    )
    pacing = {
        "words_per_fragment": settings.stream_words_per_fragment,
        "pacing_delay": settings.stream_pacing_delay,
    }

    primary = ProviderSlot(
        PRIMARY_PROVIDER,
        lambda credential: GeminiBackend(credential.secret, model=settings.gemini_model, **pacing),
    )
    secondary = ProviderSlot(
        SECONDARY_PROVIDER,
        lambda credential: OpenAIBackend(
            credential.secret,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            **pacing,
        ),
    )

    logger.info(
        f"LLM pools: {rotator.pool_size(PRIMARY_PROVIDER)} Gemini key(s), "
        f"{rotator.pool_size(SECONDARY_PROVIDER)} OpenAI key(s)"
    )
    if rotator.pool_size(PRIMARY_PROVIDER) == 0:
        logger.warning("GEMINI_API_KEY not set - chat relies on the fallback provider only")

    return ProviderGateway(rotator, primary, secondary)


def build_stores(settings: Settings) -> tuple[ConversationStore, UsageStore]:
    if settings.storage_backend == "memory":
        return InMemoryConversationStore(), InMemoryUsageStore()
    return JsonConversationStore(settings.data_dir), JsonUsageStore(settings.data_dir)


def _init_vector_store(settings: Settings) -> CaseVectorStore:
    """Load the case index. A missing index leaves an empty store."""
    global _vector_store

    # Import here so the embedding model is only loaded by the server
    from ..retrieval.embedder import CaseEmbedder

    logger.info("Loading case index...")
    logger.info(f"  Index dir: {settings.index_dir}")
    logger.info(f"  Model: {settings.embedding_model}")

    embedder = CaseEmbedder(model_name=settings.embedding_model)
    store = CaseVectorStore(embedder, metric=settings.similarity_metric)

    if (settings.index_dir / CaseVectorStore.CONFIG_FILE).exists():
        store.load(settings.index_dir)
    else:
        logger.warning(f"No case index at {settings.index_dir} - answers will have no case evidence")

    _vector_store = store
    return store


def _init_services():
    """Initialize every singleton (idempotent)."""
    global _gateway, _fetcher, _retriever, _conversation_store, _usage_store, _pipeline, _is_initialized

    if _is_initialized:
        return

    settings = get_settings()

    _gateway = build_gateway(settings)
    store = _init_vector_store(settings)
    _fetcher = DocumentFetcher(timeout=settings.enrich_timeout)
    _retriever = EvidenceRetriever(store, _fetcher, settings.retrieval_config())
    _conversation_store, _usage_store = build_stores(settings)

    _pipeline = ChatPipeline(
        gateway=_gateway,
        retriever=_retriever,
        persister=TurnPersister(_conversation_store),
        usage=_usage_store,
        assembler=ContextAssembler(),
        usage_limit=settings.usage_limit,
    )
    _is_initialized = True

    logger.info("Legal assistant services loaded successfully")


def get_pipeline() -> ChatPipeline:
    if _pipeline is None:
        _init_services()
    assert _pipeline is not None, "Chat pipeline failed to initialize"
    return _pipeline


def get_gateway() -> ProviderGateway:
    if _gateway is None:
        _init_services()
    assert _gateway is not None, "Provider gateway failed to initialize"
    return _gateway


def get_retriever() -> EvidenceRetriever:
    if _retriever is None:
        _init_services()
    assert _retriever is not None, "Retriever failed to initialize"
    return _retriever


def get_conversation_store() -> ConversationStore:
    if _conversation_store is None:
        _init_services()
    assert _conversation_store is not None, "Conversation store failed to initialize"
    return _conversation_store


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity from the X-User-Id header."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=401,
            detail={"error": "unauthorized", "message": "Missing X-User-Id header"},
        )
    return x_user_id.strip()


def is_initialized() -> bool:
    return _is_initialized


def llm_status() -> tuple[bool, bool]:
    """(any provider configured, fallback provider configured)."""
    if _gateway is None:
        return False, False
    return _gateway.is_available(), _gateway.has_secondary


def get_index_stats() -> dict:
    """Statistics from the loaded case index."""
    if _vector_store is None:
        return {"cases": 0}
    return _vector_store.get_stats()


def startup_load():
    """
    Pre-load services on server startup.

    Call this in FastAPI's lifespan so the embedding model and index are
    loaded before handling requests.
    """
    logger.info("Pre-loading legal assistant services on startup...")
    _init_services()
    logger.info("Startup complete")


async def shutdown():
    """Release network clients."""
    if _fetcher is not None:
        await _fetcher.aclose()
