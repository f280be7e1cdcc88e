"""Outbound event records produced by the orchestrator.

Each record is a snapshot: agent dictionaries are copied when the event is
created, so later mutations of the agent do not leak into already-queued
events.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional

TASK_STARTED = "task-started"
AGENT_UPDATED = "agent-updated"
AGENT_PROGRESS = "agent-progress"
TASK_COMPLETED = "task-completed"
TASK_ERROR = "task-error"
SUBMIT_TASK = "submit-task"
SUBSCRIBE = "subscribe"
CANCEL_TASK = "cancel-task"

TERMINAL_EVENTS = frozenset({TASK_COMPLETED, TASK_ERROR})


@dataclass(frozen=True)
class TaskEvent:
    name: ClassVar[str] = ""

    task_id: Optional[str]

    @property
    def terminal(self) -> bool:
        return self.name in TERMINAL_EVENTS

    def payload(self) -> Dict[str, Any]:
        return {"taskId": self.task_id}

    def to_message(self) -> Dict[str, Any]:
        return {"event": self.name, "data": self.payload()}


@dataclass(frozen=True)
class TaskStarted(TaskEvent):
    name: ClassVar[str] = TASK_STARTED

    agents: List[Dict[str, Any]] = field(default_factory=list)
    request: str = ""
    chat_id: Optional[str] = None

    def payload(self) -> Dict[str, Any]:
        return {"taskId": self.task_id, "agents": self.agents, "request": self.request, "chatId": self.chat_id}


@dataclass(frozen=True)
class AgentUpdated(TaskEvent):
    name: ClassVar[str] = AGENT_UPDATED

    agent: Dict[str, Any] = field(default_factory=dict)

    def payload(self) -> Dict[str, Any]:
        return {"taskId": self.task_id, "agent": self.agent}


@dataclass(frozen=True)
class AgentProgress(TaskEvent):
    name: ClassVar[str] = AGENT_PROGRESS

    agent_id: str = ""
    progress: int = 0

    def payload(self) -> Dict[str, Any]:
        return {"taskId": self.task_id, "agentId": self.agent_id, "progress": self.progress}


@dataclass(frozen=True)
class TaskCompleted(TaskEvent):
    name: ClassVar[str] = TASK_COMPLETED

    result: Dict[str, Any] = field(default_factory=dict)

    def payload(self) -> Dict[str, Any]:
        return {"taskId": self.task_id, "result": self.result}


@dataclass(frozen=True)
class TaskError(TaskEvent):
    name: ClassVar[str] = TASK_ERROR

    error: str = ""
    agent_id: Optional[str] = None

    def payload(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"taskId": self.task_id, "error": self.error}
        if self.agent_id is not None:
            data["agentId"] = self.agent_id
        return data
