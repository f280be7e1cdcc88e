import asyncio

import pytest

from taskpilot.agents.orchestrator import PROGRESS_STEPS, TaskOrchestrator
from taskpilot.agents.results import MessageResult
from taskpilot.agents.roles import AgentStatus, Role
from taskpilot.events import AgentProgress, AgentUpdated, TaskCompleted, TaskError, TaskStarted
from taskpilot.tasks.base import DEFAULT_SUMMARY

from conftest import collect, no_sleep


class ExplodingSynthesizer:
    def __init__(self, fail_on):
        self.fail_on = fail_on

    def synthesize(self, role, request, *, task_id=None, user_id=None):
        if role is self.fail_on:
            raise RuntimeError("boom")
        return MessageResult(message="ok")


def names(events):
    return [event.name for event in events]


def test_event_sequence_for_two_agents(orchestrator):
    events = asyncio.run(collect(orchestrator.stream("Summarize the quarterly results")))

    per_agent = ["agent-updated"] + ["agent-progress"] * (PROGRESS_STEPS + 1) + ["agent-updated"]
    assert names(events) == ["task-started"] + per_agent * 2 + ["task-completed"]

    started = events[0]
    assert isinstance(started, TaskStarted)
    assert [agent["role"] for agent in started.agents] == ["summarizer", "financial-analyst"]
    assert all(agent["status"] == "pending" for agent in started.agents)
    assert started.request == "Summarize the quarterly results"


def test_progress_runs_zero_to_hundred_per_agent(orchestrator):
    events = asyncio.run(collect(orchestrator.stream("Summarize the quarterly results")))

    by_agent = {}
    for event in events:
        if isinstance(event, AgentProgress):
            by_agent.setdefault(event.agent_id, []).append(event.progress)
    assert list(by_agent.values()) == [list(range(0, 101, 10))] * 2


def test_agent_snapshots_are_not_mutated_later(orchestrator):
    events = asyncio.run(collect(orchestrator.stream("Summarize the quarterly results")))

    updates = [event for event in events if isinstance(event, AgentUpdated)]
    assert [update.agent["status"] for update in updates] == ["running", "completed"] * 2
    assert updates[0].agent["result"] is None
    assert updates[1].agent["progress"] == 100
    assert updates[1].agent["result"]["confidence"] == 0.90


def test_completed_report_merges_role_results(orchestrator):
    events = asyncio.run(collect(orchestrator.stream("Summarize the quarterly results")))

    completed = events[-1]
    assert isinstance(completed, TaskCompleted)
    report = completed.result
    assert report["summary"].startswith("Based on the available data for Acme Analytics")
    assert report["keyInsights"][0] == "Strong revenue growth observed across quarters"
    assert report["chartData"] is None
    assert report["detailedReport"] is None
    assert [agent["status"] for agent in report["agents"]] == ["completed", "completed"]
    assert [agent["confidence"] for agent in report["agents"]] == [0.90, 0.88]


def test_report_request_without_chart_or_detail(orchestrator):
    events = asyncio.run(collect(orchestrator.stream("Create a report on sales performance by region")))

    report = events[-1].result
    assert [agent["role"] for agent in report["agents"]] == ["data-collector"]
    assert report["summary"] == DEFAULT_SUMMARY
    assert report["keyInsights"] == []
    assert report["chartData"] is None
    assert report["detailedReport"] is None


def test_chart_and_report_payloads_are_attached(orchestrator):
    events = asyncio.run(collect(orchestrator.stream("Chart the quarterly numbers")))

    report = events[-1].result
    assert report["chartData"]["chartType"] == "line"
    assert report["detailedReport"] is None


def test_failure_truncates_sequence_and_names_agent():
    orchestrator = TaskOrchestrator(ExplodingSynthesizer(Role.FINANCIAL_ANALYST), step_delay=0, sleep=no_sleep)
    task = orchestrator.start("Summarize the quarterly results")

    events = asyncio.run(collect(orchestrator.execute(task)))

    assert "task-completed" not in names(events)
    error = events[-1]
    assert isinstance(error, TaskError)
    assert error.error == "boom"
    assert error.agent_id == task.agents[1].id
    assert error.to_message()["data"]["agentId"] == task.agents[1].id
    assert task.agents[0].status is AgentStatus.COMPLETED
    assert task.agents[1].status is AgentStatus.ERRORED
    assert names(events).count("agent-progress") == 2 * (PROGRESS_STEPS + 1)


def test_sleep_receives_configured_delay():
    delays = []

    async def record(delay):
        delays.append(delay)

    orchestrator = TaskOrchestrator(ExplodingSynthesizer(None), step_delay=0.25, sleep=record)
    asyncio.run(collect(orchestrator.stream("hello")))

    assert delays == [0.25] * (PROGRESS_STEPS + 1) * 2


def test_finish_refuses_open_agents(orchestrator):
    task = orchestrator.start("Summarize")

    with pytest.raises(RuntimeError):
        orchestrator.finish(task)


def test_start_honours_given_ids(orchestrator):
    task = orchestrator.start("Summarize", task_id="task-1", chat_id="chat-1", user_id="alice")

    assert (task.id, task.chat_id, task.user_id) == ("task-1", "chat-1", "alice")
    assert [agent.role for agent in task.agents] == [Role.SUMMARIZER]
