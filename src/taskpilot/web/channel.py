"""Per-task event fan-out with history replay for late subscribers."""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..events import TERMINAL_EVENTS


@dataclass
class TaskStream:
    history: List[Dict[str, Any]] = field(default_factory=list)
    subscribers: List[asyncio.Queue] = field(default_factory=list)
    completed: bool = False


class EventChannel:
    """Keeps every open task stream and the last ``retain`` finished ones."""

    def __init__(self, retain: int = 100) -> None:
        self.retain = retain
        self._streams: "OrderedDict[str, TaskStream]" = OrderedDict()

    def open(self, task_id: str) -> TaskStream:
        if task_id not in self._streams:
            self._streams[task_id] = TaskStream()
        return self._streams[task_id]

    def has(self, task_id: str) -> bool:
        return task_id in self._streams

    def history(self, task_id: str) -> List[Dict[str, Any]]:
        stream = self._streams.get(task_id)
        return list(stream.history) if stream else []

    async def publish(self, task_id: str, message: Dict[str, Any]) -> None:
        stream = self.open(task_id)
        if stream.completed:
            return
        stream.history.append(message)
        if message.get("event") in TERMINAL_EVENTS:
            stream.completed = True
        for queue in list(stream.subscribers):
            await queue.put(message)
        if stream.completed:
            stream.subscribers.clear()
            self._prune()

    def subscribe(self, task_id: str) -> asyncio.Queue:
        """Return a queue pre-filled with the task's history.

        Raises ``KeyError`` for unknown tasks.
        """

        stream = self._streams[task_id]
        queue: asyncio.Queue = asyncio.Queue()
        for message in stream.history:
            queue.put_nowait(message)
        if not stream.completed:
            stream.subscribers.append(queue)
        return queue

    def unsubscribe(self, task_id: str, queue: asyncio.Queue) -> None:
        stream = self._streams.get(task_id)
        if stream is not None and queue in stream.subscribers:
            stream.subscribers.remove(queue)

    def _prune(self) -> None:
        finished = [task_id for task_id, stream in self._streams.items() if stream.completed]
        for task_id in finished[: max(len(finished) - self.retain, 0)]:
            self._streams.pop(task_id, None)
