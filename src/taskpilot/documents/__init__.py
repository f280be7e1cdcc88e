"""Knowledge base documents."""

from .index import Document, DocumentIndex, InMemoryDocumentIndex, Snippet

__all__ = ["Document", "DocumentIndex", "InMemoryDocumentIndex", "Snippet"]
