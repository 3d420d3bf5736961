"""
Storage interfaces consumed by the chat pipeline.
"""

import re
from typing import Optional, Protocol

from ..errors import InvalidInputError
from ..models import Conversation, Turn

CHAT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def validate_chat_id(conversation_id: str) -> str:
    if not conversation_id or not CHAT_ID_PATTERN.match(conversation_id):
        raise InvalidInputError("Chat id must be 1-128 letters, digits, '-' or '_'")
    return conversation_id


class ConversationStore(Protocol):
    """Conversation persistence boundary."""

    def find_by_conversation_id(self, conversation_id: str) -> Optional[Conversation]: ...

    def create_conversation(self, conversation_id: str, owner_id: str) -> Conversation: ...

    def append_turn(self, conversation: Conversation, turn: Turn) -> None: ...

    def save(self, conversation: Conversation) -> None: ...

    def list_for_owner(self, owner_id: str) -> list[Conversation]: ...

    def delete(self, conversation_id: str) -> Optional[Conversation]: ...


class UsageStore(Protocol):
    """Per-user usage counter (quota collaborator)."""

    def get_usage(self, user_id: str) -> int: ...

    def increment_usage(self, user_id: str) -> int: ...

    def try_consume(self, user_id: str, limit: int) -> bool:
        """Atomically take one use if the user is below `limit`."""
        ...
