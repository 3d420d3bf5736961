"""
Request and response schemas for the Legal Assistant API.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..models import CaseSource, Conversation, Turn


# ============================================================================
# Request Schemas
# ============================================================================

class ChatCreateRequest(BaseModel):
    """Request schema for creating a chat."""

    chat_id: str = Field(
        ...,
        description="Client-generated chat identifier",
        min_length=1,
        max_length=128,
        pattern=r"^[A-Za-z0-9_-]+$",
        examples=["3f1c2a9e-4d1b-4b43-9a55-0c7f3e0f8d21"],
    )


class MessageRequest(BaseModel):
    """Request schema for sending a chat message."""

    text: str = Field(
        ...,
        description="The user's legal question",
        max_length=4000,
        examples=["What is Section 302 IPC?"],
    )


class PinRequest(BaseModel):
    pinned: bool = Field(..., description="Whether the chat is pinned")


class SummarizeRequest(BaseModel):
    """Request schema for document summarization."""

    input_text: str = Field(
        ...,
        description="Full text of the legal document",
        examples=["IN THE SUPREME COURT OF INDIA ... JUDGMENT ..."],
    )


# ============================================================================
# Response Schemas
# ============================================================================

class SourceSchema(BaseModel):
    """A cited case."""

    case_title: str
    source_url: str = "#"
    case_id: Optional[str] = None
    court: Optional[str] = None
    judge: Optional[str] = None
    year: Optional[int] = None
    score: Optional[float] = None

    @classmethod
    def from_source(cls, source: CaseSource) -> "SourceSchema":
        return cls(**source.to_dict())


class AssistantMessage(BaseModel):
    text: str
    sources: list[SourceSchema] = Field(default_factory=list)


class TurnSchema(BaseModel):
    """One entry of a chat history. Exactly one of `user` / `ai` is set."""

    timestamp: datetime
    user: Optional[str] = None
    ai: Optional[AssistantMessage] = None

    @classmethod
    def from_turn(cls, turn: Turn) -> "TurnSchema":
        ai = None
        if turn.assistant_text is not None:
            ai = AssistantMessage(
                text=turn.assistant_text,
                sources=[SourceSchema.from_source(s) for s in turn.assistant_sources],
            )
        return cls(timestamp=turn.timestamp, user=turn.user_text, ai=ai)


class ChatResponse(BaseModel):
    """A chat with its full history."""

    chat_id: str = Field(..., description="Chat identifier")
    user: Optional[str] = Field(None, description="Owner user id")
    is_pinned: bool = Field(False, description="Pinned in the chat list")
    chat_history: list[TurnSchema] = Field(default_factory=list)

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ChatResponse":
        return cls(
            chat_id=conversation.conversation_id,
            user=conversation.owner_id,
            is_pinned=conversation.pinned,
            chat_history=[TurnSchema.from_turn(t) for t in conversation.turns],
        )


class SummaryResponse(BaseModel):
    """Response schema for document summarization."""

    summary_text: str = Field(..., description="About 500 word summary")
    paths: list[SourceSchema] = Field(default_factory=list, description="Similar cases")
    legalStatutes: dict[str, str] = Field(
        default_factory=dict,
        description="Statute name -> short explanation",
    )


class HealthResponse(BaseModel):
    """Response schema for health check endpoint."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    index_loaded: bool = Field(..., description="Whether the case index is loaded")
    indexed_cases: int = Field(0, description="Number of indexed cases")
    llm_available: bool = Field(..., description="Whether any LLM credential is configured")
    secondary_available: bool = Field(False, description="Whether the fallback provider is configured")


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Response schema for error responses."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
