"""
Turn Persister.

The user turn is saved before generation starts. The assistant turn is saved
only once the answer has fully streamed, together with the citation list that
was sent to the client.
"""

import logging

from ..errors import ConversationExistsError
from ..models import CaseSource, Conversation, Turn
from ..storage import ConversationStore

logger = logging.getLogger(__name__)


class TurnPersister:
    def __init__(self, store: ConversationStore):
        self.store = store

    def ensure_conversation(self, conversation_id: str, owner_id: str) -> Conversation:
        """Return the conversation, creating it for `owner_id` if absent."""
        existing = self.store.find_by_conversation_id(conversation_id)
        if existing is not None:
            return existing

        try:
            conversation = self.store.create_conversation(conversation_id, owner_id)
        except ConversationExistsError:
            # Created by a concurrent request between lookup and create
            conversation = self.store.find_by_conversation_id(conversation_id)
            if conversation is None:
                raise
            return conversation

        logger.info(f"[CHAT] New chat {conversation_id} for user {owner_id}")
        return conversation

    def append_user_turn(self, conversation: Conversation, text: str) -> Turn:
        turn = Turn.from_user(text)
        self.store.append_turn(conversation, turn)
        self.store.save(conversation)
        return turn

    def finalize_assistant_turn(
        self,
        conversation: Conversation,
        text: str,
        sources: list[CaseSource],
    ) -> Turn:
        turn = Turn.from_assistant(text, sources)
        self.store.append_turn(conversation, turn)
        self.store.save(conversation)
        logger.info(
            f"[CHAT] Saved answer for chat {conversation.conversation_id} "
            f"({len(text)} chars, {len(sources)} source(s))"
        )
        return turn

    def history(self, conversation: Conversation) -> list[Turn]:
        return list(conversation.turns)
