"""
API route definitions for the Legal Assistant server.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from ..chat import SSE_HEADERS, SSE_MEDIA_TYPE, ChatPipeline
from ..errors import (
    ConversationAccessError,
    ConversationNotFoundError,
    LegalAssistantError,
)
from ..llm import ProviderGateway
from ..models import Conversation
from ..retrieval import EvidenceRetriever
from ..storage import ConversationStore, validate_chat_id
from ..summarizer import summarize_document
from .config import Settings, get_settings
from .dependencies import (
    get_conversation_store,
    get_current_user_id,
    get_gateway,
    get_index_stats,
    get_pipeline,
    get_retriever,
    is_initialized,
    llm_status,
)
from .schemas import (
    ChatCreateRequest,
    ChatResponse,
    ErrorResponse,
    HealthResponse,
    MessageRequest,
    MessageResponse,
    PinRequest,
    SummarizeRequest,
    SummaryResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

UserId = Annotated[str, Depends(get_current_user_id)]
Store = Annotated[ConversationStore, Depends(get_conversation_store)]


def _http_error(error: LegalAssistantError) -> HTTPException:
    return HTTPException(
        status_code=error.status_code,
        detail={"error": error.code, "message": error.message},
    )


def _owned_conversation(store: ConversationStore, chat_id: str, user_id: str) -> Conversation:
    """Existing chat owned by the caller."""
    validate_chat_id(chat_id)
    conversation = store.find_by_conversation_id(chat_id)
    if conversation is None:
        raise ConversationNotFoundError("Chat not found")
    if conversation.owner_id != user_id:
        raise ConversationAccessError("Unauthorized")
    return conversation


# ============================================================================
# CHAT ENDPOINTS
# ============================================================================

@router.get(
    "/chats",
    response_model=list[ChatResponse],
    summary="List Chats",
    description="All chats owned by the caller, pinned chats first.",
)
async def list_chats(user_id: UserId, store: Store) -> list[ChatResponse]:
    conversations = store.list_for_owner(user_id)
    conversations.sort(key=lambda c: not c.pinned)
    return [ChatResponse.from_conversation(c) for c in conversations]


@router.post(
    "/chats",
    status_code=201,
    response_model=ChatResponse,
    responses={409: {"model": ErrorResponse, "description": "Chat already exists"}},
    summary="Create Chat",
)
async def create_chat(request: ChatCreateRequest, user_id: UserId, store: Store) -> ChatResponse:
    try:
        conversation = store.create_conversation(request.chat_id, user_id)
    except LegalAssistantError as e:
        raise _http_error(e)
    logger.info(f"Created chat {request.chat_id} for user {user_id}")
    return ChatResponse.from_conversation(conversation)


@router.get(
    "/chats/{chat_id}",
    response_model=ChatResponse,
    responses={401: {"model": ErrorResponse, "description": "Chat belongs to another user"}},
    summary="Get Chat",
    description="Chat history. An unknown id returns an empty placeholder chat.",
)
async def get_chat(chat_id: str, user_id: UserId, store: Store) -> ChatResponse:
    try:
        validate_chat_id(chat_id)
        conversation = store.find_by_conversation_id(chat_id)
        if conversation is None:
            return ChatResponse(chat_id=chat_id, chat_history=[])
        if conversation.owner_id != user_id:
            raise ConversationAccessError("Unauthorized")
    except LegalAssistantError as e:
        raise _http_error(e)
    return ChatResponse.from_conversation(conversation)


@router.patch(
    "/chats/{chat_id}/pin",
    response_model=ChatResponse,
    responses={404: {"model": ErrorResponse, "description": "Chat not found"}},
    summary="Pin or Unpin Chat",
)
async def pin_chat(chat_id: str, request: PinRequest, user_id: UserId, store: Store) -> ChatResponse:
    try:
        conversation = _owned_conversation(store, chat_id, user_id)
    except LegalAssistantError as e:
        raise _http_error(e)
    conversation.pinned = request.pinned
    store.save(conversation)
    return ChatResponse.from_conversation(conversation)


@router.delete(
    "/chats/{chat_id}",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse, "description": "Chat not found"}},
    summary="Delete Chat",
)
async def delete_chat(chat_id: str, user_id: UserId, store: Store) -> MessageResponse:
    try:
        _owned_conversation(store, chat_id, user_id)
    except LegalAssistantError as e:
        raise _http_error(e)
    store.delete(chat_id)
    logger.info(f"Deleted chat {chat_id}")
    return MessageResponse(message="Chat deleted successfully")


@router.post(
    "/chats/{chat_id}/messages",
    responses={
        200: {"content": {SSE_MEDIA_TYPE: {}}, "description": "Server-sent event stream"},
        400: {"model": ErrorResponse, "description": "Empty message"},
        401: {"model": ErrorResponse, "description": "Chat belongs to another user"},
        403: {"model": ErrorResponse, "description": "Usage limit reached"},
    },
    summary="Ask a Question (streaming)",
    description="""
Answer a legal question grounded in the case index.

The response is a `text/event-stream` with these events, in order:
- `sources`: the cited cases (JSON list), sent once before any text
- `chunk`: answer text fragments (JSON string)
- `end`: the answer is complete and saved
- `error`: terminal failure after the stream started
""",
)
async def send_message(
    chat_id: str,
    request: MessageRequest,
    user_id: UserId,
    pipeline: Annotated[ChatPipeline, Depends(get_pipeline)],
) -> StreamingResponse:
    try:
        prepared = pipeline.prepare(chat_id, user_id, request.text)
    except LegalAssistantError as e:
        raise _http_error(e)

    logger.info(f"Streaming answer for chat {chat_id}: {request.text[:100]}")
    return StreamingResponse(
        pipeline.stream(prepared),
        media_type=SSE_MEDIA_TYPE,
        headers=SSE_HEADERS,
    )


# ============================================================================
# DOCUMENT ENDPOINTS
# ============================================================================

@router.post(
    "/summarize",
    response_model=SummaryResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Empty document"},
        503: {"model": ErrorResponse, "description": "No LLM provider available"},
    },
    summary="Summarize a Legal Document",
    description="Summary, similar cases from the index, and the statutes the document relies on.",
)
async def summarize(
    request: SummarizeRequest,
    user_id: UserId,
    gateway: Annotated[ProviderGateway, Depends(get_gateway)],
    retriever: Annotated[EvidenceRetriever, Depends(get_retriever)],
) -> SummaryResponse:
    logger.info(f"Summarizing document for user {user_id} ({len(request.input_text)} chars)")
    try:
        result = await summarize_document(request.input_text, gateway, retriever)
    except LegalAssistantError as e:
        logger.error(f"Summarization failed: {e.message}")
        raise _http_error(e)
    except Exception as e:
        logger.exception(f"Error summarizing document: {e}")
        raise HTTPException(
            status_code=500,
            detail={"error": "summarize_error", "message": "Failed to generate summary. Please try again."},
        )
    return SummaryResponse(**result.to_dict())


# ============================================================================
# HEALTH
# ============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check if the service is healthy and the case index is loaded.",
)
async def health_check(
    settings: Annotated[Settings, Depends(get_settings)]
) -> HealthResponse:
    llm_available, secondary_available = llm_status()
    cases = get_index_stats().get("cases", 0)
    return HealthResponse(
        status="healthy" if is_initialized() else "initializing",
        version=settings.app_version,
        index_loaded=cases > 0,
        indexed_cases=cases,
        llm_available=llm_available,
        secondary_available=secondary_available,
    )
