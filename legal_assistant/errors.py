"""
Exception hierarchy for the legal assistant.

Validation errors carry the HTTP status the API layer should answer with.
They are raised before a response stream is committed; anything that fails
after commit is reported as a terminal `error` event instead.
"""

from typing import Optional


class LegalAssistantError(Exception):
    """Base class for all application errors."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


# ============================================================================
# Validation errors (pre-stream)
# ============================================================================

class InvalidInputError(LegalAssistantError):
    status_code = 400
    code = "invalid_input"


class ConversationAccessError(LegalAssistantError):
    status_code = 401
    code = "unauthorized"


class QuotaExceededError(LegalAssistantError):
    status_code = 403
    code = "quota_exceeded"


class ConversationNotFoundError(LegalAssistantError):
    status_code = 404
    code = "chat_not_found"


class ConversationExistsError(LegalAssistantError):
    status_code = 409
    code = "chat_exists"


# ============================================================================
# Provider errors
# ============================================================================

class ProviderError(LegalAssistantError):
    """A single generation backend call failed."""

    status_code = 502
    code = "provider_error"

    def __init__(self, provider: str, message: str, rate_limited: bool = False):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.rate_limited = rate_limited


class ProviderExhaustedError(LegalAssistantError):
    """Every configured provider/credential failed."""

    status_code = 503
    code = "providers_exhausted"

    def __init__(self, message: str, last_error: Optional[Exception] = None):
        super().__init__(message)
        self.last_error = last_error


# ============================================================================
# Stream protocol
# ============================================================================

class StreamStateError(LegalAssistantError):
    """An event was emitted out of order."""

    code = "stream_state"
