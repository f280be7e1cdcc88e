"""Drives one task through its agents and yields ordered lifecycle events.

The orchestrator does not talk to any transport. ``execute`` is an async
generator; a runner drains it and forwards each event, which keeps the event
order identical for every consumer:

    task-started
    per agent: agent-updated(running), agent-progress x 11, agent-updated(completed)
    task-completed | task-error
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from ..events import AgentProgress, AgentUpdated, TaskCompleted, TaskError, TaskEvent, TaskStarted
from ..tasks.base import AggregatedReport, Task
from .planner import plan
from .roles import AgentRecord, AgentStatus, Role
from .synthesizer import ResultSynthesizer

logger = logging.getLogger(__name__)

PROGRESS_STEPS = 10

SleepFn = Callable[[float], Awaitable[None]]
PlannerFn = Callable[[str], List[Role]]


class TaskOrchestrator:
    """Owns the lifecycle of tasks; keeps no state between them."""

    def __init__(
        self,
        synthesizer: ResultSynthesizer,
        *,
        step_delay: float = 0.5,
        sleep: SleepFn = asyncio.sleep,
        planner: PlannerFn = plan,
    ) -> None:
        self.synthesizer = synthesizer
        self.step_delay = step_delay
        self._sleep = sleep
        self._plan = planner

    def start(
        self,
        request: str,
        *,
        task_id: str | None = None,
        chat_id: str | None = None,
        user_id: str | None = None,
    ) -> Task:
        roles = self._plan(request)
        if not roles:
            raise RuntimeError("Planner returned no roles")
        task = Task(request=request, agents=[AgentRecord(role=role) for role in roles], chat_id=chat_id, user_id=user_id)
        if task_id is not None:
            task.id = task_id
        logger.info("Task %s planned roles: %s", task.id, ", ".join(role.value for role in roles))
        return task

    async def stream(self, request: str, **kwargs) -> AsyncIterator[TaskEvent]:
        task = self.start(request, **kwargs)
        async for event in self.execute(task):
            yield event

    async def execute(self, task: Task) -> AsyncIterator[TaskEvent]:
        yield TaskStarted(task_id=task.id, agents=task.roster, request=task.request, chat_id=task.chat_id)
        current: Optional[AgentRecord] = None
        try:
            async for event in self.run(task):
                if isinstance(event, AgentUpdated) and event.agent.get("status") == AgentStatus.RUNNING.value:
                    current = self._agent(task, event.agent["id"])
                yield event
            report = self.finish(task)
        except Exception as exc:
            agent_id = None
            if current is not None and current.status is AgentStatus.RUNNING:
                current.status = AgentStatus.ERRORED
                agent_id = current.id
            logger.exception("Task %s failed", task.id)
            yield TaskError(task_id=task.id, error=str(exc) or exc.__class__.__name__, agent_id=agent_id)
            return
        logger.info("Task %s completed with %d agents", task.id, len(task.agents))
        yield TaskCompleted(task_id=task.id, result=report.to_dict())

    async def run(self, task: Task) -> AsyncIterator[TaskEvent]:
        for agent in task.agents:
            agent.status = AgentStatus.RUNNING
            yield AgentUpdated(task_id=task.id, agent=agent.to_dict())

            for step in range(PROGRESS_STEPS + 1):
                agent.advance(step * 100 // PROGRESS_STEPS)
                yield AgentProgress(task_id=task.id, agent_id=agent.id, progress=agent.progress)
                await self._sleep(self.step_delay)

            agent.result = await asyncio.to_thread(
                self.synthesizer.synthesize,
                agent.role,
                task.request,
                task_id=task.id,
                user_id=task.user_id,
            )
            task.results[agent.role] = agent.result
            agent.status = AgentStatus.COMPLETED
            agent.advance(100)
            yield AgentUpdated(task_id=task.id, agent=agent.to_dict())

    def finish(self, task: Task) -> AggregatedReport:
        unfinished = [agent.id for agent in task.agents if agent.status is not AgentStatus.COMPLETED]
        if unfinished:
            raise RuntimeError(f"Cannot finish task {task.id}; agents still open: {', '.join(unfinished)}")
        return AggregatedReport.from_task(task)

    @staticmethod
    def _agent(task: Task, agent_id: str) -> Optional[AgentRecord]:
        for agent in task.agents:
            if agent.id == agent_id:
                return agent
        return None
