"""
Context Assembler.

Builds the grounding prompt for one chat turn:
- system instruction with the retrieved case excerpts (or the no-evidence marker)
- prior conversation turns as role-tagged messages
- the current user message, last

Greetings and very short inputs never reach retrieval; they get a canned reply.
"""

import re
from typing import Optional

from ..llm.backends import ChatMessage
from ..models import NO_EVIDENCE_MARKER, EvidenceCandidate, Turn

GREETINGS = frozenset({
    "hi",
    "hello",
    "hey",
    "greetings",
    "good morning",
    "good evening",
    "thanks",
    "thank you",
})

GREETING_RESPONSE = (
    "Hello! I am your legal assistant. "
    "How can I help you with Indian Commercial Law today?"
)

MIN_QUERY_CHARS = 3

EVIDENCE_SEPARATOR = "\n\n---\n\n"

SYSTEM_PROMPT = """You are an expert Indian Legal Advisor.

RELEVANT CASES FROM DATABASE:
{evidence}

INSTRUCTIONS:
1. The above contains excerpts from relevant legal cases found in our database.
2. Use this information to answer the user's question. Cite the case names provided.
3. If the excerpts are brief, supplement with your knowledge of the case if you recognize it, but prioritize the provided information.
4. If "{marker}" appears above, answer from general knowledge of Indian law and say clearly that no matching case files were found.
5. Keep the answer focused and under roughly 400 words unless the question needs more.
6. Do not describe yourself as an AI language model. Answer the question directly."""


def normalize_query(text: str) -> str:
    return re.sub(r"[?!.]", "", text.lower().strip())


def is_small_talk(text: str) -> bool:
    """True for greetings and inputs too short to search for."""
    normalized = normalize_query(text)
    return normalized in GREETINGS or len(normalized) < MIN_QUERY_CHARS


def format_evidence(candidates: list[EvidenceCandidate]) -> str:
    if not candidates:
        return NO_EVIDENCE_MARKER
    return EVIDENCE_SEPARATOR.join(
        f"CASE: {c.title}\nCOURT: {c.court}\n\n{c.text}" for c in candidates
    )


def history_messages(turns: list[Turn]) -> list[ChatMessage]:
    """Convert stored turns into role-tagged prompt messages."""
    messages = []
    for turn in turns:
        if turn.user_text:
            messages.append(ChatMessage("user", turn.user_text))
        elif turn.assistant_text:
            messages.append(ChatMessage("assistant", turn.assistant_text))
    return messages


class ContextAssembler:
    """Builds the message list sent to the provider gateway."""

    def __init__(self, system_prompt: str = SYSTEM_PROMPT, max_history_turns: Optional[int] = None):
        self.system_prompt = system_prompt
        self.max_history_turns = max_history_turns

    def system_instruction(self, candidates: list[EvidenceCandidate]) -> str:
        return self.system_prompt.format(
            evidence=format_evidence(candidates),
            marker=NO_EVIDENCE_MARKER,
        )

    def assemble(
        self,
        query: str,
        candidates: list[EvidenceCandidate],
        history: list[Turn],
    ) -> list[ChatMessage]:
        if self.max_history_turns is not None:
            history = history[-self.max_history_turns:] if self.max_history_turns else []

        return [
            ChatMessage("system", self.system_instruction(candidates)),
            *history_messages(history),
            ChatMessage("user", query),
        ]
