"""
JSON-on-disk stores.

Layout under the data directory:
    chats/<chat_id>.json   one file per conversation
    usage.json             {user_id: count}

Writes go to a temporary file first and are swapped in with os.replace.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Optional

from ..errors import ConversationExistsError
from ..models import Conversation, Turn
from .base import validate_chat_id

logger = logging.getLogger(__name__)


def _write_json(path: Path, data) -> None:
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    os.replace(tmp_path, path)


class JsonConversationStore:
    def __init__(self, data_dir: str | Path):
        self.chats_dir = Path(data_dir) / "chats"
        self.chats_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, conversation_id: str) -> Path:
        return self.chats_dir / f"{validate_chat_id(conversation_id)}.json"

    def _load(self, path: Path) -> Optional[Conversation]:
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return Conversation.from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"[STORE] Failed to load chat file {path}: {e}")
            raise

    def find_by_conversation_id(self, conversation_id: str) -> Optional[Conversation]:
        with self._lock:
            return self._load(self._path(conversation_id))

    def create_conversation(self, conversation_id: str, owner_id: str) -> Conversation:
        path = self._path(conversation_id)
        with self._lock:
            if path.exists():
                raise ConversationExistsError(f"Chat '{conversation_id}' already exists")
            conversation = Conversation(conversation_id=conversation_id, owner_id=owner_id)
            _write_json(path, conversation.to_dict())
            logger.info(f"[STORE] Created chat {conversation_id}")
            return conversation

    def append_turn(self, conversation: Conversation, turn: Turn) -> None:
        conversation.turns.append(turn)

    def save(self, conversation: Conversation) -> None:
        path = self._path(conversation.conversation_id)
        with self._lock:
            _write_json(path, conversation.to_dict())

    def list_for_owner(self, owner_id: str) -> list[Conversation]:
        with self._lock:
            conversations = [self._load(p) for p in sorted(self.chats_dir.glob("*.json"))]
        return [c for c in conversations if c is not None and c.owner_id == owner_id]

    def delete(self, conversation_id: str) -> Optional[Conversation]:
        path = self._path(conversation_id)
        with self._lock:
            conversation = self._load(path)
            if conversation is not None:
                path.unlink()
                logger.info(f"[STORE] Deleted chat {conversation_id}")
            return conversation


class JsonUsageStore:
    def __init__(self, data_dir: str | Path):
        self.path = Path(data_dir) / "usage.json"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, int]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def get_usage(self, user_id: str) -> int:
        with self._lock:
            return int(self._read().get(user_id, 0))

    def increment_usage(self, user_id: str) -> int:
        with self._lock:
            usage = self._read()
            usage[user_id] = int(usage.get(user_id, 0)) + 1
            _write_json(self.path, usage)
            return usage[user_id]

    def try_consume(self, user_id: str, limit: int) -> bool:
        with self._lock:
            usage = self._read()
            used = int(usage.get(user_id, 0))
            if used >= limit:
                return False
            usage[user_id] = used + 1
            _write_json(self.path, usage)
            return True
