"""
Chat answering for the legal assistant.

This package contains:
- context: Greeting detection and prompt assembly
- stream: SSE framing and event ordering
- persistence: Conversation turn bookkeeping
- pipeline: End-to-end streamed answer
"""

from .context import (
    GREETING_RESPONSE,
    SYSTEM_PROMPT,
    ContextAssembler,
    format_evidence,
    is_small_talk,
)

from .stream import (
    DEFAULT_ERROR_MESSAGE,
    SSE_HEADERS,
    SSE_MEDIA_TYPE,
    StreamEmitter,
    StreamState,
    format_event,
)

from .persistence import TurnPersister

from .pipeline import ChatPipeline, PreparedTurn

__all__ = [
    # Context
    "GREETING_RESPONSE",
    "SYSTEM_PROMPT",
    "ContextAssembler",
    "format_evidence",
    "is_small_talk",
    # Stream
    "DEFAULT_ERROR_MESSAGE",
    "SSE_HEADERS",
    "SSE_MEDIA_TYPE",
    "StreamEmitter",
    "StreamState",
    "format_event",
    # Persistence
    "TurnPersister",
    # Pipeline
    "ChatPipeline",
    "PreparedTurn",
]
