"""FastAPI server streaming task lifecycle events over WebSockets."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.requests import HTTPConnection
from starlette.websockets import WebSocketState

from ..agents.roles import ROLE_CATALOG
from ..auth import resolve_user
from ..config import AppConfig
from ..context import AppContext, build_context
from ..events import CANCEL_TASK, SUBMIT_TASK, SUBSCRIBE, TERMINAL_EVENTS, TaskError
from ..persistence.base import StoreError

logger = logging.getLogger(__name__)


class DocumentUpload(BaseModel):
    filename: str
    content: str


class ChatTitle(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)


class DocumentSearch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str
    top_k: int = Field(5, alias="topK", ge=1, le=50)


def _token(connection: HTTPConnection) -> Optional[str]:
    header = connection.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return connection.query_params.get("token") or None


def create_app(config: Optional[AppConfig] = None, context: Optional[AppContext] = None) -> FastAPI:
    ctx = context or build_context((config or AppConfig()).with_env())

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        availability = await asyncio.to_thread(ctx.narrative.check_availability)
        if availability.available:
            logger.info("Narrative backend ready; models: %s", ", ".join(availability.models) or "none")
        else:
            logger.warning("Narrative backend unavailable (%s); fallback text will be used", availability.error)
        yield
        await ctx.runner.shutdown()

    app = FastAPI(title="Taskpilot", lifespan=lifespan)
    app.state.context = ctx

    def current_user(request: Request) -> str:
        return resolve_user(ctx.auth, _token(request))

    @app.exception_handler(StoreError)
    async def store_unavailable(request: Request, exc: StoreError) -> JSONResponse:
        logger.warning("Conversation store failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.get("/api/tasks/health")
    async def health() -> Dict[str, Any]:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/api/tasks/agents")
    async def list_agents() -> List[Dict[str, Any]]:
        return [
            {"id": role.value, "name": info.name, "description": info.description, "capabilities": info.capabilities}
            for role, info in ROLE_CATALOG.items()
        ]

    @app.get("/api/chats")
    async def list_chats(
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        user_id: str = Depends(current_user),
    ) -> Dict[str, Any]:
        result = await asyncio.to_thread(ctx.store.list_chats, user_id, limit, page)
        return result.to_dict()

    @app.get("/api/chats/search")
    async def search_chats(q: str = "", user_id: str = Depends(current_user)) -> Dict[str, Any]:
        if not q.strip():
            raise HTTPException(status_code=400, detail="Search query is required")
        chats = await asyncio.to_thread(ctx.store.search, q.strip(), user_id)
        return {"chats": [chat.to_dict() for chat in chats]}

    @app.get("/api/chats/{chat_id}")
    async def get_chat(chat_id: str, user_id: str = Depends(current_user)) -> Dict[str, Any]:
        chat = await asyncio.to_thread(ctx.store.get, chat_id)
        if chat is None or chat.user_id != user_id:
            raise HTTPException(status_code=404, detail=f"Chat not found: {chat_id}")
        return chat.to_dict()

    @app.put("/api/chats/{chat_id}/title")
    async def rename_chat(chat_id: str, payload: ChatTitle, user_id: str = Depends(current_user)) -> Dict[str, Any]:
        title = payload.title.strip()
        if not title:
            raise HTTPException(status_code=400, detail="Title is required")
        chat = await asyncio.to_thread(ctx.store.get, chat_id)
        if chat is None or chat.user_id != user_id or not await asyncio.to_thread(ctx.store.rename, chat_id, title):
            raise HTTPException(status_code=404, detail=f"Chat not found: {chat_id}")
        renamed = await asyncio.to_thread(ctx.store.get, chat_id)
        return renamed.to_dict()

    @app.delete("/api/chats/{chat_id}")
    async def delete_chat(chat_id: str, user_id: str = Depends(current_user)) -> Dict[str, Any]:
        chat = await asyncio.to_thread(ctx.store.get, chat_id)
        if chat is None or chat.user_id != user_id:
            raise HTTPException(status_code=404, detail=f"Chat not found: {chat_id}")
        await asyncio.to_thread(ctx.store.delete, chat_id)
        return {"deleted": True, "id": chat_id}

    @app.post("/api/documents")
    async def upload_document(payload: DocumentUpload, user_id: str = Depends(current_user)) -> Dict[str, Any]:
        try:
            document = ctx.documents.add(payload.filename, payload.content, user_id)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return document.to_dict()

    @app.get("/api/documents")
    async def list_documents(user_id: str = Depends(current_user)) -> Dict[str, Any]:
        return {"documents": [document.to_dict() for document in ctx.documents.list(user_id)]}

    @app.delete("/api/documents/{document_id}")
    async def delete_document(document_id: str, user_id: str = Depends(current_user)) -> Dict[str, Any]:
        document = ctx.documents.get(document_id)
        if document is None or document.user_id != user_id:
            raise HTTPException(status_code=404, detail=f"Document not found: {document_id}")
        ctx.documents.delete(document_id)
        return {"deleted": True, "id": document_id}

    @app.post("/api/documents/search")
    async def search_documents(payload: DocumentSearch, user_id: str = Depends(current_user)) -> Dict[str, Any]:
        if not payload.query.strip():
            raise HTTPException(status_code=400, detail="Search query is required")
        snippets = ctx.documents.query(payload.query, top_k=payload.top_k, user_id=user_id)
        return {"results": [snippet.to_dict() for snippet in snippets]}

    @app.websocket("/ws")
    async def task_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        user_id = resolve_user(ctx.auth, _token(websocket))
        outbox: asyncio.Queue = asyncio.Queue()
        forwarders: Dict[str, asyncio.Task] = {}

        async def forward(task_id: str) -> None:
            queue = ctx.channel.subscribe(task_id)
            try:
                while True:
                    message = await queue.get()
                    await outbox.put(message)
                    if message.get("event") in TERMINAL_EVENTS:
                        return
            finally:
                ctx.channel.unsubscribe(task_id, queue)
                forwarders.pop(task_id, None)

        def follow(task_id: str) -> None:
            if task_id not in forwarders:
                forwarders[task_id] = asyncio.create_task(forward(task_id))

        async def send_all() -> None:
            try:
                while True:
                    message = await outbox.get()
                    await websocket.send_text(json.dumps(message))
            except (WebSocketDisconnect, RuntimeError):
                logger.debug("Socket closed while sending")

        async def reject(error: str, task_id: Optional[str] = None) -> None:
            await outbox.put(TaskError(task_id=task_id, error=error).to_message())

        sender = asyncio.create_task(send_all())
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    frame = json.loads(raw)
                except json.JSONDecodeError:
                    await reject("Malformed message")
                    continue
                if not isinstance(frame, dict):
                    await reject("Malformed message")
                    continue
                name = frame.get("event")
                data = frame.get("data") or {}
                if not isinstance(data, dict):
                    data = {}

                if name == SUBMIT_TASK:
                    request = data.get("request")
                    if not isinstance(request, str) or not request.strip():
                        await reject("Request is required")
                        continue
                    chat_id = data.get("chatId") if isinstance(data.get("chatId"), str) else None
                    task = await ctx.runner.submit(request, chat_id=chat_id, user_id=user_id)
                    follow(task.id)
                elif name == SUBSCRIBE:
                    task_id = data.get("taskId")
                    if not isinstance(task_id, str) or not ctx.channel.has(task_id):
                        await reject("Unknown task", task_id if isinstance(task_id, str) else None)
                        continue
                    follow(task_id)
                elif name == CANCEL_TASK:
                    task_id = data.get("taskId")
                    if not isinstance(task_id, str) or not await ctx.runner.cancel(task_id):
                        await reject("Task is not running", task_id if isinstance(task_id, str) else None)
                else:
                    logger.debug("Ignoring unknown event %r", name)
        except WebSocketDisconnect:
            logger.debug("Client disconnected")
        finally:
            for forwarder in list(forwarders.values()):
                forwarder.cancel()
            sender.cancel()

    @app.websocket("/ws/tasks/{task_id}")
    async def observe_task(websocket: WebSocket, task_id: str) -> None:
        if not ctx.channel.has(task_id):
            await websocket.close(code=1008)
            return
        queue = ctx.channel.subscribe(task_id)
        await websocket.accept()
        closed = False
        try:
            while True:
                message = await queue.get()
                await websocket.send_text(json.dumps(message))
                if message.get("event") in TERMINAL_EVENTS:
                    break
        except WebSocketDisconnect:
            closed = True
        finally:
            ctx.channel.unsubscribe(task_id, queue)
            if not closed and websocket.client_state != WebSocketState.DISCONNECTED:
                try:
                    await websocket.close()
                except RuntimeError:
                    pass

    return app
