"""In-memory knowledge base with keyword ranking over word chunks."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass
class Chunk:
    text: str
    position: int
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class Document:
    filename: str
    user_id: str
    text: str
    chunks: List[Chunk]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    uploaded_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def size(self) -> int:
        return len(self.text.encode("utf-8"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "filename": self.filename,
            "size": self.size,
            "chunks": len(self.chunks),
            "uploadedAt": self.uploaded_at,
        }


@dataclass
class Snippet:
    document_id: str
    filename: str
    text: str
    score: int

    def to_dict(self, limit: int = 200) -> Dict[str, Any]:
        excerpt = self.text if len(self.text) <= limit else self.text[:limit] + "..."
        return {"documentId": self.document_id, "filename": self.filename, "snippet": excerpt, "relevance": self.score}


class DocumentIndex(Protocol):
    def query(self, text: str, top_k: int | None = None, user_id: str | None = None) -> List[Snippet]:  # pragma: no cover
        """Return ranked snippets for ``text``."""


def chunk_words(text: str, chunk_size: int = 500, overlap: int = 50) -> List[Chunk]:
    words = text.split()
    step = chunk_size - overlap
    return [
        Chunk(text=" ".join(words[start : start + chunk_size]), position=start)
        for start in range(0, len(words), step)
    ]


def score_chunk(query: str, chunk_text: str) -> int:
    lowered_query = query.lower()
    lowered = chunk_text.lower()
    words = [word for word in lowered_query.split() if len(word) > 3]
    score = 0
    if lowered_query and lowered_query in lowered:
        score += 10
    score += 2 * sum(1 for word in words if word in lowered)
    positions = [lowered.find(word) for word in words if word in lowered]
    if len(positions) > 1 and max(positions) - min(positions) < 100:
        score += 3
    return score


class InMemoryDocumentIndex:
    """Stores uploaded text documents per user and ranks their chunks."""

    def __init__(self, chunk_size: int = 500, overlap: int = 50, top_k: int = 5) -> None:
        if overlap >= chunk_size:
            raise ValueError("overlap must be smaller than chunk_size")
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.top_k = top_k
        self._documents: Dict[str, Document] = {}
        self._lock = threading.Lock()

    def add(self, filename: str, text: str, user_id: str) -> Document:
        if not text.strip():
            raise ValueError(f"Document '{filename}' has no text content")
        document = Document(
            filename=filename,
            user_id=user_id,
            text=text,
            chunks=chunk_words(text, self.chunk_size, self.overlap),
        )
        with self._lock:
            self._documents[document.id] = document
        logger.info("Indexed %s (%d chunks) for %s", filename, len(document.chunks), user_id)
        return document

    def get(self, document_id: str) -> Optional[Document]:
        return self._documents.get(document_id)

    def list(self, user_id: str | None = None) -> List[Document]:
        with self._lock:
            documents = list(self._documents.values())
        if user_id is not None:
            documents = [doc for doc in documents if doc.user_id == user_id]
        return sorted(documents, key=lambda doc: doc.uploaded_at, reverse=True)

    def delete(self, document_id: str) -> bool:
        with self._lock:
            return self._documents.pop(document_id, None) is not None

    def query(self, text: str, top_k: int | None = None, user_id: str | None = None) -> List[Snippet]:
        if not text or not text.strip():
            return []
        scored: List[Snippet] = []
        for document in self.list(user_id):
            for chunk in document.chunks:
                score = score_chunk(text, chunk.text)
                if score > 0:
                    scored.append(Snippet(document.id, document.filename, chunk.text, score))
        # stable sort keeps upload/position order among equal scores
        scored.sort(key=lambda snippet: snippet.score, reverse=True)
        return scored[: top_k or self.top_k]
