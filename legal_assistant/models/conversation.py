"""
Conversation data models.

This module defines the persisted chat structure:
- CaseSource: Citation metadata attached to an assistant turn
- Turn: One user or assistant message unit
- Conversation: Ordered, append-only list of turns owned by one user
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CaseSource:
    """A cited case, frozen at the moment the answer was streamed."""
    case_title: str
    source_url: str = "#"
    case_id: Optional[str] = None
    court: Optional[str] = None
    judge: Optional[str] = None
    year: Optional[int] = None
    score: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "case_id": self.case_id,
            "case_title": self.case_title,
            "source_url": self.source_url,
            "court": self.court,
            "judge": self.judge,
            "year": self.year,
            "score": self.score,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CaseSource":
        return cls(
            case_title=data.get("case_title", "Unknown Case"),
            source_url=data.get("source_url", "#"),
            case_id=data.get("case_id"),
            court=data.get("court"),
            judge=data.get("judge"),
            year=data.get("year"),
            score=data.get("score"),
        )


@dataclass
class Turn:
    """
    One message unit in a conversation.

    Exactly one of `user_text` / `assistant_text` is set. Assistant turns
    also carry the citation list that was sent to the client.
    """
    user_text: Optional[str] = None
    assistant_text: Optional[str] = None
    assistant_sources: list[CaseSource] = field(default_factory=list)
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def is_user(self) -> bool:
        return self.user_text is not None

    @classmethod
    def from_user(cls, text: str) -> "Turn":
        return cls(user_text=text)

    @classmethod
    def from_assistant(cls, text: str, sources: list[CaseSource]) -> "Turn":
        return cls(assistant_text=text, assistant_sources=list(sources))

    def to_dict(self) -> dict:
        data: dict = {"timestamp": self.timestamp.isoformat()}
        if self.user_text is not None:
            data["user"] = self.user_text
        if self.assistant_text is not None:
            data["ai"] = {
                "text": self.assistant_text,
                "sources": [s.to_dict() for s in self.assistant_sources],
            }
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Turn":
        ai = data.get("ai") or {}
        timestamp = data.get("timestamp")
        return cls(
            user_text=data.get("user"),
            assistant_text=ai.get("text"),
            assistant_sources=[CaseSource.from_dict(s) for s in ai.get("sources", [])],
            timestamp=datetime.fromisoformat(timestamp) if timestamp else _utcnow(),
        )


@dataclass
class Conversation:
    """A chat owned by a single user."""
    conversation_id: str
    owner_id: str
    turns: list[Turn] = field(default_factory=list)
    pinned: bool = False

    def to_dict(self) -> dict:
        return {
            "chat_id": self.conversation_id,
            "user": self.owner_id,
            "is_pinned": self.pinned,
            "chat_history": [t.to_dict() for t in self.turns],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Conversation":
        return cls(
            conversation_id=data["chat_id"],
            owner_id=data["user"],
            turns=[Turn.from_dict(t) for t in data.get("chat_history", [])],
            pinned=data.get("is_pinned", False),
        )
