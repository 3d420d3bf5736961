"""
Chat Pipeline - one streamed answer per user message.

Request lifecycle:

    prepare()   validation, nothing written to the client yet
                empty text -> 400, foreign chat -> 401, quota used up -> 403
                usage += 1 when the request is accepted
    stream()    response committed, everything is reported in-band
                user turn saved
                greeting?  sources [] -> canned chunk -> end
                otherwise  retrieve -> sources -> generate -> chunks -> end
                assistant turn saved only when the answer completed

If the client disconnects the task is cancelled and the partial answer is
discarded.
"""

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator

from ..errors import ConversationAccessError, InvalidInputError, QuotaExceededError
from ..llm import ProviderGateway
from ..models import Conversation
from ..retrieval import EvidenceRetriever
from ..storage import UsageStore, validate_chat_id
from .context import GREETING_RESPONSE, ContextAssembler, is_small_talk
from .persistence import TurnPersister
from .stream import StreamEmitter

logger = logging.getLogger(__name__)

DEFAULT_USAGE_LIMIT = 10


@dataclass
class PreparedTurn:
    """A validated chat request, ready to stream."""
    conversation: Conversation
    user_id: str
    text: str


class ChatPipeline:
    """Orchestrates retrieval, generation, streaming and persistence."""

    def __init__(
        self,
        gateway: ProviderGateway,
        retriever: EvidenceRetriever,
        persister: TurnPersister,
        usage: UsageStore,
        assembler: ContextAssembler | None = None,
        usage_limit: int = DEFAULT_USAGE_LIMIT,
    ):
        self.gateway = gateway
        self.retriever = retriever
        self.persister = persister
        self.usage = usage
        self.assembler = assembler or ContextAssembler()
        self.usage_limit = usage_limit

    def prepare(self, conversation_id: str, user_id: str, text: str) -> PreparedTurn:
        """Run every check that must fail with a plain HTTP status."""
        text = (text or "").strip()
        if not text:
            raise InvalidInputError("Message text is required")
        validate_chat_id(conversation_id)

        conversation = self.persister.ensure_conversation(conversation_id, user_id)
        if conversation.owner_id != user_id:
            logger.warning(f"[CHAT] User {user_id} denied access to chat {conversation_id}")
            raise ConversationAccessError("Unauthorized")

        # Check and increment are a single atomic step
        if not self.usage.try_consume(user_id, self.usage_limit):
            logger.info(f"[CHAT] User {user_id} reached the usage limit ({self.usage_limit})")
            raise QuotaExceededError("Free usage limit reached. Please upgrade to continue.")

        return PreparedTurn(conversation=conversation, user_id=user_id, text=text)

    async def stream(self, prepared: PreparedTurn) -> AsyncIterator[str]:
        """Yield SSE frames for a prepared request."""
        emitter = StreamEmitter()
        conversation = prepared.conversation
        chat_id = conversation.conversation_id

        try:
            history = self.persister.history(conversation)
            self.persister.append_user_turn(conversation, prepared.text)

            if is_small_talk(prepared.text):
                logger.info(f"[CHAT] Greeting in chat {chat_id}, skipping retrieval")
                yield emitter.sources([])
                yield emitter.chunk(GREETING_RESPONSE)
                self.persister.finalize_assistant_turn(conversation, GREETING_RESPONSE, [])
                yield emitter.end()
                return

            result = await self.retriever.retrieve(prepared.text)
            yield emitter.sources(result.source_dicts())

            messages = self.assembler.assemble(prepared.text, result.candidates, history)
            parts: list[str] = []
            async with aclosing(self.gateway.generate(messages)) as fragments:
                async for fragment in fragments:
                    parts.append(fragment)
                    yield emitter.chunk(fragment)

            self.persister.finalize_assistant_turn(conversation, "".join(parts), result.sources)
            yield emitter.end()

        except asyncio.CancelledError:
            logger.info(f"[CHAT] Client left chat {chat_id}, partial answer discarded")
            raise
        except Exception as e:
            logger.error(f"[CHAT] Stream failed for chat {chat_id}: {e}")
            if not emitter.finished:
                yield emitter.error()
