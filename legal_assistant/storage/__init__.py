"""
Conversation and usage storage.

This package contains:
- base: Store interfaces and chat id validation
- memory: Process-local stores
- json_files: JSON-on-disk stores
"""

from .base import ConversationStore, UsageStore, validate_chat_id

from .memory import InMemoryConversationStore, InMemoryUsageStore

from .json_files import JsonConversationStore, JsonUsageStore

__all__ = [
    "ConversationStore",
    "UsageStore",
    "validate_chat_id",
    "InMemoryConversationStore",
    "InMemoryUsageStore",
    "JsonConversationStore",
    "JsonUsageStore",
]
