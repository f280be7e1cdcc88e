"""Postgres persistence for chats and messages."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import psycopg
from psycopg.rows import dict_row

from .base import ANONYMOUS_USER, ChatPage, ChatRecord, MessageRecord, StoreError


def _iso(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _json(value: Any) -> Any:
    if value is None or isinstance(value, (dict, list)):
        return value
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return None


class PostgresConversationStore:
    def __init__(self, db_url: str) -> None:
        self.db_url = db_url
        self._ensure_schema()

    def _connect(self) -> psycopg.Connection:
        try:
            return psycopg.connect(self.db_url, row_factory=dict_row)
        except psycopg.Error as exc:
            raise StoreError(f"Cannot connect to conversation database: {exc}") from exc

    def _ensure_schema(self) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS taskpilot_chats (
                        id TEXT PRIMARY KEY,
                        title TEXT NOT NULL,
                        user_id TEXT NOT NULL,
                        created_at TIMESTAMPTZ NOT NULL,
                        updated_at TIMESTAMPTZ NOT NULL
                    )
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS taskpilot_messages (
                        id TEXT PRIMARY KEY,
                        chat_id TEXT NOT NULL REFERENCES taskpilot_chats(id) ON DELETE CASCADE,
                        seq BIGSERIAL,
                        text TEXT NOT NULL,
                        is_user BOOLEAN NOT NULL,
                        timestamp TIMESTAMPTZ NOT NULL,
                        agents JSONB,
                        results JSONB
                    )
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS taskpilot_messages_chat_id_idx ON taskpilot_messages(chat_id)"
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS taskpilot_chats_updated_idx ON taskpilot_chats(user_id, updated_at DESC)"
                )
                conn.commit()
        except psycopg.Error as exc:
            raise StoreError(f"Cannot prepare conversation schema: {exc}") from exc

    def create(self, title: str, user_id: str = ANONYMOUS_USER) -> str:
        chat_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO taskpilot_chats (id, title, user_id, created_at, updated_at)
                    VALUES (%s, %s, %s, %s, %s)
                    """,
                    (chat_id, title, user_id, now, now),
                )
                conn.commit()
        except psycopg.Error as exc:
            raise StoreError(f"Cannot create chat: {exc}") from exc
        return chat_id

    def append(self, chat_id: str, message: MessageRecord) -> None:
        now = datetime.now(timezone.utc)
        try:
            with self._connect() as conn:
                updated = conn.execute(
                    "UPDATE taskpilot_chats SET updated_at=%s WHERE id=%s",
                    (now, chat_id),
                ).rowcount
                if not updated:
                    raise StoreError(f"Chat {chat_id} not found")
                conn.execute(
                    """
                    INSERT INTO taskpilot_messages (id, chat_id, text, is_user, timestamp, agents, results)
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        message.id,
                        chat_id,
                        message.text,
                        message.is_user,
                        datetime.fromisoformat(message.timestamp),
                        json.dumps(message.agents),
                        json.dumps(message.results) if message.results is not None else None,
                    ),
                )
                conn.commit()
        except psycopg.Error as exc:
            raise StoreError(f"Cannot append message to chat {chat_id}: {exc}") from exc

    def get(self, chat_id: str) -> Optional[ChatRecord]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT id, title, user_id, created_at, updated_at FROM taskpilot_chats WHERE id = %s",
                    (chat_id,),
                ).fetchone()
                if row is None:
                    return None
                return self._hydrate(conn, row)
        except psycopg.Error as exc:
            raise StoreError(f"Cannot read chat {chat_id}: {exc}") from exc

    def rename(self, chat_id: str, title: str) -> bool:
        try:
            with self._connect() as conn:
                updated = conn.execute(
                    "UPDATE taskpilot_chats SET title=%s, updated_at=%s WHERE id=%s",
                    (title, datetime.now(timezone.utc), chat_id),
                ).rowcount
                conn.commit()
        except psycopg.Error as exc:
            raise StoreError(f"Cannot rename chat {chat_id}: {exc}") from exc
        return bool(updated)

    def list_chats(self, user_id: str = ANONYMOUS_USER, limit: int = 20, page: int = 1) -> ChatPage:
        offset = (max(page, 1) - 1) * limit
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT id, title, user_id, created_at, updated_at
                    FROM taskpilot_chats
                    WHERE user_id = %s
                    ORDER BY updated_at DESC
                    LIMIT %s OFFSET %s
                    """,
                    (user_id, limit, offset),
                ).fetchall()
                total = conn.execute(
                    "SELECT COUNT(*) AS count FROM taskpilot_chats WHERE user_id = %s",
                    (user_id,),
                ).fetchone()["count"]
                chats = [self._hydrate(conn, row) for row in rows]
        except psycopg.Error as exc:
            raise StoreError(f"Cannot list chats: {exc}") from exc
        return ChatPage(chats=chats, total=int(total), page=page, limit=limit)

    def search(self, query: str, user_id: str = ANONYMOUS_USER) -> List[ChatRecord]:
        pattern = f"%{query}%"
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT DISTINCT c.id, c.title, c.user_id, c.created_at, c.updated_at
                    FROM taskpilot_chats c
                    LEFT JOIN taskpilot_messages m ON c.id = m.chat_id
                    WHERE c.user_id = %s AND (c.title ILIKE %s OR m.text ILIKE %s)
                    ORDER BY c.updated_at DESC
                    """,
                    (user_id, pattern, pattern),
                ).fetchall()
                return [self._hydrate(conn, row) for row in rows]
        except psycopg.Error as exc:
            raise StoreError(f"Cannot search chats: {exc}") from exc

    def delete(self, chat_id: str) -> bool:
        try:
            with self._connect() as conn:
                deleted = conn.execute("DELETE FROM taskpilot_chats WHERE id = %s", (chat_id,)).rowcount
                conn.commit()
        except psycopg.Error as exc:
            raise StoreError(f"Cannot delete chat {chat_id}: {exc}") from exc
        return bool(deleted)

    def _hydrate(self, conn: psycopg.Connection, row: Dict[str, Any]) -> ChatRecord:
        messages = conn.execute(
            """
            SELECT id, text, is_user, timestamp, agents, results
            FROM taskpilot_messages
            WHERE chat_id = %s
            ORDER BY seq ASC
            """,
            (row["id"],),
        ).fetchall()
        return ChatRecord(
            id=row["id"],
            title=row["title"],
            user_id=row["user_id"],
            created_at=_iso(row["created_at"]),
            updated_at=_iso(row["updated_at"]),
            messages=[
                MessageRecord(
                    id=item["id"],
                    text=item["text"],
                    is_user=bool(item["is_user"]),
                    timestamp=_iso(item["timestamp"]),
                    agents=_json(item["agents"]) or [],
                    results=_json(item["results"]),
                )
                for item in messages
            ],
        )
