"""Conversation store interface and records."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

ANONYMOUS_USER = "default-user"


class StoreError(RuntimeError):
    """Raised when a conversation store operation fails."""


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class MessageRecord:
    text: str
    is_user: bool
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=utcnow)
    agents: List[Dict[str, Any]] = field(default_factory=list)
    results: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "isUser": self.is_user,
            "timestamp": self.timestamp,
            "agents": self.agents,
            "results": self.results,
        }


@dataclass
class ChatRecord:
    id: str
    title: str
    user_id: str
    created_at: str
    updated_at: str
    messages: List[MessageRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "userId": self.user_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "messages": [message.to_dict() for message in self.messages],
        }


@dataclass
class ChatPage:
    chats: List[ChatRecord]
    total: int
    page: int
    limit: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chats": [chat.to_dict() for chat in self.chats],
            "total": self.total,
            "totalPages": -(-self.total // self.limit) if self.limit else 0,
            "currentPage": self.page,
        }


class ConversationStore(Protocol):
    def create(self, title: str, user_id: str = ANONYMOUS_USER) -> str:  # pragma: no cover - interface
        ...

    def append(self, chat_id: str, message: MessageRecord) -> None:  # pragma: no cover - interface
        ...

    def get(self, chat_id: str) -> Optional[ChatRecord]:  # pragma: no cover - interface
        ...

    def list_chats(self, user_id: str = ANONYMOUS_USER, limit: int = 20, page: int = 1) -> ChatPage:  # pragma: no cover
        ...

    def rename(self, chat_id: str, title: str) -> bool:  # pragma: no cover - interface
        ...

    def search(self, query: str, user_id: str = ANONYMOUS_USER) -> List[ChatRecord]:  # pragma: no cover - interface
        ...

    def delete(self, chat_id: str) -> bool:  # pragma: no cover - interface
        ...


def generate_title(first_message: str, limit: int = 50) -> str:
    if not first_message or not first_message.strip():
        return "New Conversation"
    text = first_message.strip()
    return text if len(text) <= limit else f"{text[:limit]}..."
