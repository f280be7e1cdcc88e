"""Conversation persistence."""

from .base import ANONYMOUS_USER, ChatPage, ChatRecord, ConversationStore, MessageRecord, StoreError, generate_title
from .memory import InMemoryConversationStore

__all__ = [
    "ANONYMOUS_USER",
    "ChatPage",
    "ChatRecord",
    "ConversationStore",
    "InMemoryConversationStore",
    "MessageRecord",
    "StoreError",
    "generate_title",
]
