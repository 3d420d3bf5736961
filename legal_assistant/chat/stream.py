"""
Stream Emitter - server-sent event framing for one chat answer.

Frames look like:

    event: <name>
    data: <json>

States:

    IDLE -> SOURCES_SENT -> STREAMING -> ENDED
      \\__________\\______________\\______> ERRORED

IDLE means the response is committed (headers flushed), so from here on
failures can only be reported in-band with an `error` event.
"""

import json
import logging
from enum import Enum
from typing import Any

from ..errors import StreamStateError

logger = logging.getLogger(__name__)

SSE_MEDIA_TYPE = "text/event-stream"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

DEFAULT_ERROR_MESSAGE = "An error occurred."


class StreamState(str, Enum):
    IDLE = "idle"
    SOURCES_SENT = "sources_sent"
    STREAMING = "streaming"
    ENDED = "ended"
    ERRORED = "errored"


def format_event(event: str, data: Any) -> str:
    """Serialize one SSE frame with a JSON payload."""
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


class StreamEmitter:
    """Produces SSE frames and enforces their order."""

    def __init__(self):
        self.state = StreamState.IDLE
        self.chunk_count = 0

    @property
    def finished(self) -> bool:
        return self.state in (StreamState.ENDED, StreamState.ERRORED)

    def sources(self, sources: list[dict]) -> str:
        """The citation list, exactly once, before any answer text."""
        self._require(StreamState.IDLE, "sources")
        self.state = StreamState.SOURCES_SENT
        return format_event("sources", sources)

    def chunk(self, text: str) -> str:
        self._require((StreamState.SOURCES_SENT, StreamState.STREAMING), "chunk")
        self.state = StreamState.STREAMING
        self.chunk_count += 1
        return format_event("chunk", text)

    def end(self) -> str:
        self._require((StreamState.SOURCES_SENT, StreamState.STREAMING), "end")
        self.state = StreamState.ENDED
        logger.info(f"[STREAM] Ended after {self.chunk_count} chunk(s)")
        return format_event("end", {})

    def error(self, message: str = DEFAULT_ERROR_MESSAGE) -> str:
        if self.finished:
            raise StreamStateError(f"Cannot emit 'error' in state {self.state.value}")
        logger.warning(f"[STREAM] Errored in state {self.state.value}")
        self.state = StreamState.ERRORED
        return format_event("error", {"message": message})

    def _require(self, allowed, event: str) -> None:
        if not isinstance(allowed, tuple):
            allowed = (allowed,)
        if self.state not in allowed:
            raise StreamStateError(f"Cannot emit '{event}' in state {self.state.value}")
