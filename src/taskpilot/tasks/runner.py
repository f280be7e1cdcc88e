"""Runs orchestrated tasks in the background and forwards their events."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from ..agents.orchestrator import TaskOrchestrator
from ..events import TaskCompleted, TaskError
from ..persistence.base import ANONYMOUS_USER, ConversationStore, MessageRecord, StoreError, generate_title
from ..web.channel import EventChannel
from .base import Task

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Task cancelled"


class TaskRunner:
    """Dispatches submitted requests to the orchestrator as asyncio tasks."""

    def __init__(
        self,
        orchestrator: TaskOrchestrator,
        channel: EventChannel,
        store: Optional[ConversationStore] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.channel = channel
        self.store = store
        self._tasks: Dict[str, Task] = {}
        self._handles: Dict[str, asyncio.Task] = {}

    async def submit(
        self,
        request: str,
        *,
        chat_id: Optional[str] = None,
        user_id: str = ANONYMOUS_USER,
    ) -> Task:
        chat_id = await self._record_request(request, chat_id, user_id)
        task = self.orchestrator.start(request, chat_id=chat_id, user_id=user_id)
        self.channel.open(task.id)
        self._tasks[task.id] = task
        self._handles[task.id] = asyncio.create_task(self.run(task))
        return task

    async def run(self, task: Task) -> None:
        try:
            async for event in self.orchestrator.execute(task):
                if isinstance(event, (TaskCompleted, TaskError)):
                    # outcome is final; a late cancel must not record a second reply
                    self._handles.pop(task.id, None)
                # the reply is stored before the terminal event goes out
                if isinstance(event, TaskCompleted):
                    await self._record_reply(
                        task,
                        MessageRecord(
                            text=event.result.get("summary", ""),
                            is_user=False,
                            agents=task.roster,
                            results=event.result,
                        ),
                    )
                elif isinstance(event, TaskError):
                    await self._record_reply(task, MessageRecord(text=f"Error: {event.error}", is_user=False))
                await self.channel.publish(task.id, event.to_message())
        finally:
            self._tasks.pop(task.id, None)
            self._handles.pop(task.id, None)

    async def cancel(self, task_id: str) -> bool:
        handle = self._handles.get(task_id)
        if handle is None or handle.done():
            return False
        del self._handles[task_id]
        task = self._tasks.pop(task_id)
        handle.cancel()
        logger.info("Task %s cancelled", task_id)
        await self._record_reply(task, MessageRecord(text=f"Error: {CANCELLED_MESSAGE}", is_user=False))
        await self.channel.publish(task_id, TaskError(task_id=task_id, error=CANCELLED_MESSAGE).to_message())
        return True

    async def shutdown(self) -> None:
        for task_id in list(self._handles):
            await self.cancel(task_id)

    async def _record_request(self, request: str, chat_id: Optional[str], user_id: str) -> Optional[str]:
        if self.store is None:
            return chat_id
        owned: Optional[str] = None
        try:
            chat = None if chat_id is None else await asyncio.to_thread(self.store.get, chat_id)
            if chat is not None and chat.user_id == user_id:
                owned = chat_id
            else:
                if chat is not None:
                    logger.warning("Chat %s is not owned by %s; starting a new chat", chat_id, user_id)
                owned = await asyncio.to_thread(self.store.create, generate_title(request), user_id)
            await asyncio.to_thread(self.store.append, owned, MessageRecord(text=request, is_user=True))
        except StoreError as exc:
            logger.warning("Failed to persist request for chat %s: %s", owned or chat_id, exc)
        return owned

    async def _record_reply(self, task: Task, message: MessageRecord) -> None:
        if self.store is None or task.chat_id is None:
            return
        try:
            await asyncio.to_thread(self.store.append, task.chat_id, message)
        except StoreError as exc:
            logger.warning("Failed to persist reply for chat %s: %s", task.chat_id, exc)
