import asyncio
import threading

from taskpilot.agents.orchestrator import TaskOrchestrator
from taskpilot.agents.synthesizer import ResultSynthesizer
from taskpilot.events import TERMINAL_EVENTS
from taskpilot.llm import NarrativeGenerator, OfflineProvider
from taskpilot.persistence import InMemoryConversationStore, StoreError
from taskpilot.tasks.runner import CANCELLED_MESSAGE, TaskRunner
from taskpilot.web.channel import EventChannel


class FailingStore(InMemoryConversationStore):
    def append(self, chat_id, message):
        raise StoreError("disk full")


async def drain(channel, task_id):
    queue = channel.subscribe(task_id)
    events = []
    while True:
        item = await queue.get()
        events.append(item)
        if item["event"] in TERMINAL_EVENTS:
            return events


async def settle():
    pending = asyncio.all_tasks() - {asyncio.current_task()}
    await asyncio.gather(*pending, return_exceptions=True)


def test_submit_streams_events_and_records_conversation(orchestrator):
    store = InMemoryConversationStore()
    channel = EventChannel()

    async def scenario():
        runner = TaskRunner(orchestrator, channel, store)
        task = await runner.submit("Summarize the quarterly results", user_id="alice")
        events = await drain(channel, task.id)
        await settle()
        return task, events

    task, events = asyncio.run(scenario())

    assert events[0]["event"] == "task-started"
    assert events[-1]["event"] == "task-completed"
    assert all(item["data"]["taskId"] == task.id for item in events)

    chat = store.get(task.chat_id)
    assert chat.user_id == "alice"
    assert chat.title == "Summarize the quarterly results"
    assert [message.is_user for message in chat.messages] == [True, False]
    reply = chat.messages[1]
    assert reply.text == events[-1]["data"]["result"]["summary"]
    assert reply.results["chartData"] is None
    assert len(reply.agents) == 2


def test_existing_chat_is_reused(orchestrator):
    store = InMemoryConversationStore()
    chat_id = store.create("Earlier chat", "alice")

    async def scenario():
        runner = TaskRunner(orchestrator, EventChannel(), store)
        task = await runner.submit("Summarize", chat_id=chat_id, user_id="alice")
        await settle()
        return task

    task = asyncio.run(scenario())

    assert task.chat_id == chat_id
    assert len(store.get(chat_id).messages) == 2


def test_store_failures_do_not_block_events(orchestrator):
    channel = EventChannel()

    async def scenario():
        runner = TaskRunner(orchestrator, channel, FailingStore())
        task = await runner.submit("Summarize")
        return await drain(channel, task.id)

    events = asyncio.run(scenario())
    assert events[-1]["event"] == "task-completed"


def test_failed_task_records_error_reply():
    class Exploding:
        def synthesize(self, role, request, **kwargs):
            raise RuntimeError("dataset unavailable")

    store = InMemoryConversationStore()
    channel = EventChannel()
    orchestrator = TaskOrchestrator(Exploding(), step_delay=0)

    async def scenario():
        runner = TaskRunner(orchestrator, channel, store)
        task = await runner.submit("Summarize")
        events = await drain(channel, task.id)
        await settle()
        return task, events

    task, events = asyncio.run(scenario())

    assert events[-1]["event"] == "task-error"
    assert events[-1]["data"]["error"] == "dataset unavailable"
    assert store.get(task.chat_id).messages[-1].text == "Error: dataset unavailable"


def test_cancel_publishes_task_error(data_provider):
    store = InMemoryConversationStore()
    channel = EventChannel()
    synthesizer = ResultSynthesizer(data_provider, NarrativeGenerator(OfflineProvider()))
    slow = TaskOrchestrator(synthesizer, step_delay=5)

    async def scenario():
        runner = TaskRunner(slow, channel, store)
        task = await runner.submit("Summarize")
        await asyncio.sleep(0.01)
        cancelled = await runner.cancel(task.id)
        again = await runner.cancel(task.id)
        await settle()
        return task, cancelled, again

    task, cancelled, again = asyncio.run(scenario())

    assert cancelled is True
    assert again is False
    history = channel.history(task.id)
    assert history[0]["event"] == "task-started"
    assert history[-1] == {"event": "task-error", "data": {"taskId": task.id, "error": CANCELLED_MESSAGE}}
    assert store.get(task.chat_id).messages[-1].text == f"Error: {CANCELLED_MESSAGE}"


def test_runner_without_store_keeps_chat_id_empty(orchestrator):
    channel = EventChannel()

    async def scenario():
        runner = TaskRunner(orchestrator, channel)
        task = await runner.submit("Summarize")
        await drain(channel, task.id)
        return task

    assert asyncio.run(scenario()).chat_id is None


def test_foreign_chat_id_starts_a_new_chat(orchestrator):
    store = InMemoryConversationStore()
    alice_chat = store.create("Alice's chat", "alice")

    async def scenario():
        runner = TaskRunner(orchestrator, EventChannel(), store)
        task = await runner.submit("Summarize", chat_id=alice_chat, user_id="mallory")
        await settle()
        return task

    task = asyncio.run(scenario())

    assert task.chat_id != alice_chat
    assert store.get(alice_chat).messages == []
    own = store.get(task.chat_id)
    assert own.user_id == "mallory"
    assert [message.is_user for message in own.messages] == [True, False]


def test_cancel_after_outcome_is_a_no_op(orchestrator):
    saving = threading.Event()
    release = threading.Event()

    class SlowReplyStore(InMemoryConversationStore):
        def append(self, chat_id, message):
            if not message.is_user:
                saving.set()
                release.wait(timeout=5)
            super().append(chat_id, message)

    store = SlowReplyStore()
    channel = EventChannel()

    async def scenario():
        runner = TaskRunner(orchestrator, channel, store)
        task = await runner.submit("Summarize")
        await asyncio.to_thread(saving.wait, 5)
        cancelled = await runner.cancel(task.id)
        release.set()
        await settle()
        return task, cancelled

    task, cancelled = asyncio.run(scenario())

    assert cancelled is False
    replies = [message for message in store.get(task.chat_id).messages if not message.is_user]
    assert len(replies) == 1
    assert not replies[0].text.startswith("Error:")
    assert channel.history(task.id)[-1]["event"] == "task-completed"
