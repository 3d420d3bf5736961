"""
LLM access for the legal assistant.

This package contains:
- credentials: Credential pool rotation with failure cooldowns
- backends: Gemini and OpenAI-compatible generation backends
- gateway: Provider failover over the backends
"""

from .credentials import Credential, CredentialRotator

from .backends import (
    ChatMessage,
    GenerationBackend,
    GeminiBackend,
    OpenAIBackend,
    is_rate_limited,
    paced_fragments,
)

from .gateway import ProviderGateway, ProviderSlot

__all__ = [
    # Credentials
    "Credential",
    "CredentialRotator",
    # Backends
    "ChatMessage",
    "GenerationBackend",
    "GeminiBackend",
    "OpenAIBackend",
    "is_rate_limited",
    "paced_fragments",
    # Gateway
    "ProviderGateway",
    "ProviderSlot",
]
