"""
Legal Assistant - streaming case-law RAG with LLM provider failover

Answers legal questions grounded in a case-law index and streams the answer
over server-sent events, rotating API keys and falling back between LLM
providers as they hit rate limits.

Packages:
    - models: Conversation and evidence data models
    - llm: Credential rotation, generation backends, provider gateway
    - retrieval: Case index, relevance policy, full-text enrichment
    - chat: Prompt assembly, SSE framing, persistence, the chat pipeline
    - storage: Conversation and usage stores
    - server: FastAPI application
"""

__version__ = "1.0.0"
__author__ = "Legal Assistant"

# Errors
from .errors import (
    LegalAssistantError,
    InvalidInputError,
    ConversationAccessError,
    QuotaExceededError,
    ConversationNotFoundError,
    ConversationExistsError,
    ProviderError,
    ProviderExhaustedError,
    StreamStateError,
)

# Core models
from .models import (
    CaseSource,
    Turn,
    Conversation,
    EvidenceCandidate,
    RetrievalResult,
    NO_EVIDENCE_MARKER,
)

# LLM access
from .llm import (
    CredentialRotator,
    ProviderGateway,
    ProviderSlot,
    GeminiBackend,
    OpenAIBackend,
)

# Retrieval
from .retrieval import (
    SimilarityMetric,
    RetrievalConfig,
    CaseVectorStore,
    DocumentFetcher,
    EvidenceRetriever,
)

# Chat
from .chat import (
    ChatPipeline,
    ContextAssembler,
    StreamEmitter,
    TurnPersister,
)

# Document analysis
from .summarizer import summarize_document, clean_legal_document
from .statutes import extract_statutes, decode_statutes

__all__ = [
    # Version
    "__version__",
    # Errors
    "LegalAssistantError",
    "InvalidInputError",
    "ConversationAccessError",
    "QuotaExceededError",
    "ConversationNotFoundError",
    "ConversationExistsError",
    "ProviderError",
    "ProviderExhaustedError",
    "StreamStateError",
    # Models
    "CaseSource",
    "Turn",
    "Conversation",
    "EvidenceCandidate",
    "RetrievalResult",
    "NO_EVIDENCE_MARKER",
    # LLM
    "CredentialRotator",
    "ProviderGateway",
    "ProviderSlot",
    "GeminiBackend",
    "OpenAIBackend",
    # Retrieval
    "SimilarityMetric",
    "RetrievalConfig",
    "CaseVectorStore",
    "DocumentFetcher",
    "EvidenceRetriever",
    # Chat
    "ChatPipeline",
    "ContextAssembler",
    "StreamEmitter",
    "TurnPersister",
    # Document analysis
    "summarize_document",
    "clean_legal_document",
    "extract_statutes",
    "decode_statutes",
]
