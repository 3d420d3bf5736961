"""
In-memory stores. State lives for the process lifetime only.
"""

import threading
from typing import Optional

from ..errors import ConversationExistsError
from ..models import Conversation, Turn


class InMemoryConversationStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._conversations: dict[str, Conversation] = {}

    def find_by_conversation_id(self, conversation_id: str) -> Optional[Conversation]:
        with self._lock:
            return self._conversations.get(conversation_id)

    def create_conversation(self, conversation_id: str, owner_id: str) -> Conversation:
        with self._lock:
            if conversation_id in self._conversations:
                raise ConversationExistsError(f"Chat '{conversation_id}' already exists")
            conversation = Conversation(conversation_id=conversation_id, owner_id=owner_id)
            self._conversations[conversation_id] = conversation
            return conversation

    def append_turn(self, conversation: Conversation, turn: Turn) -> None:
        conversation.turns.append(turn)

    def save(self, conversation: Conversation) -> None:
        with self._lock:
            self._conversations[conversation.conversation_id] = conversation

    def list_for_owner(self, owner_id: str) -> list[Conversation]:
        with self._lock:
            return [c for c in self._conversations.values() if c.owner_id == owner_id]

    def delete(self, conversation_id: str) -> Optional[Conversation]:
        with self._lock:
            return self._conversations.pop(conversation_id, None)


class InMemoryUsageStore:
    def __init__(self, initial: Optional[dict[str, int]] = None):
        self._lock = threading.Lock()
        self._usage: dict[str, int] = dict(initial or {})

    def get_usage(self, user_id: str) -> int:
        with self._lock:
            return self._usage.get(user_id, 0)

    def increment_usage(self, user_id: str) -> int:
        with self._lock:
            self._usage[user_id] = self._usage.get(user_id, 0) + 1
            return self._usage[user_id]

    def try_consume(self, user_id: str, limit: int) -> bool:
        with self._lock:
            used = self._usage.get(user_id, 0)
            if used >= limit:
                return False
            self._usage[user_id] = used + 1
            return True
