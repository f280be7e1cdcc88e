"""Process-local conversation store."""

from __future__ import annotations

import threading
import uuid
from typing import Dict, List, Optional

from .base import ANONYMOUS_USER, ChatPage, ChatRecord, MessageRecord, StoreError, utcnow


class InMemoryConversationStore:
    """Keeps chats in a dict; optionally bounded to the most recent ``max_chats``."""

    def __init__(self, max_chats: int | None = None) -> None:
        self.max_chats = max_chats
        self._chats: Dict[str, ChatRecord] = {}
        self._lock = threading.Lock()

    def create(self, title: str, user_id: str = ANONYMOUS_USER) -> str:
        now = utcnow()
        chat = ChatRecord(id=str(uuid.uuid4()), title=title, user_id=user_id, created_at=now, updated_at=now)
        with self._lock:
            self._chats[chat.id] = chat
            if self.max_chats and len(self._chats) > self.max_chats:
                oldest = min(self._chats.values(), key=lambda item: item.updated_at)
                self._chats.pop(oldest.id, None)
        return chat.id

    def append(self, chat_id: str, message: MessageRecord) -> None:
        with self._lock:
            chat = self._chats.get(chat_id)
            if chat is None:
                raise StoreError(f"Chat {chat_id} not found")
            chat.messages.append(message)
            chat.updated_at = utcnow()

    def get(self, chat_id: str) -> Optional[ChatRecord]:
        return self._chats.get(chat_id)

    def rename(self, chat_id: str, title: str) -> bool:
        with self._lock:
            chat = self._chats.get(chat_id)
            if chat is None:
                return False
            chat.title = title
            chat.updated_at = utcnow()
        return True

    def list_chats(self, user_id: str = ANONYMOUS_USER, limit: int = 20, page: int = 1) -> ChatPage:
        with self._lock:
            owned = [chat for chat in self._chats.values() if chat.user_id == user_id]
        owned.sort(key=lambda chat: chat.updated_at, reverse=True)
        offset = (max(page, 1) - 1) * limit
        return ChatPage(chats=owned[offset : offset + limit], total=len(owned), page=page, limit=limit)

    def search(self, query: str, user_id: str = ANONYMOUS_USER) -> List[ChatRecord]:
        needle = query.lower()
        with self._lock:
            owned = [chat for chat in self._chats.values() if chat.user_id == user_id]
        hits = [
            chat
            for chat in owned
            if needle in chat.title.lower() or any(needle in message.text.lower() for message in chat.messages)
        ]
        return sorted(hits, key=lambda chat: chat.updated_at, reverse=True)

    def delete(self, chat_id: str) -> bool:
        with self._lock:
            return self._chats.pop(chat_id, None) is not None
