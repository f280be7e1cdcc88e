"""Application wiring built once at startup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .agents.orchestrator import TaskOrchestrator
from .agents.synthesizer import ResultSynthesizer
from .auth import AuthProvider, StaticTokenAuthProvider
from .config import AppConfig, instantiate_from_path
from .data import DataProvider, load_dataset
from .documents import InMemoryDocumentIndex
from .llm import LLMProvider, NarrativeGenerator
from .persistence import ConversationStore, InMemoryConversationStore
from .tasks.runner import TaskRunner
from .web.channel import EventChannel

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    config: AppConfig
    data: DataProvider
    provider: LLMProvider
    narrative: NarrativeGenerator
    documents: InMemoryDocumentIndex
    orchestrator: TaskOrchestrator
    store: ConversationStore
    auth: Optional[AuthProvider]
    channel: EventChannel
    runner: TaskRunner


def build_store(db_url: Optional[str]) -> ConversationStore:
    if not db_url:
        return InMemoryConversationStore()
    from .persistence.postgres import PostgresConversationStore

    logger.info("Using Postgres conversation store")
    return PostgresConversationStore(db_url)


def build_context(config: AppConfig, *, provider: Optional[LLMProvider] = None) -> AppContext:
    dataset = load_dataset(config.data_path)
    data = DataProvider(dataset)
    if provider is None:
        provider = instantiate_from_path(config.generator.provider, **config.generator.params)
    narrative = NarrativeGenerator(provider, context_budget=config.generator.context_budget)
    documents = InMemoryDocumentIndex(
        chunk_size=config.documents.chunk_size,
        overlap=config.documents.overlap,
        top_k=config.documents.top_k,
    )
    orchestrator = TaskOrchestrator(
        ResultSynthesizer(data, narrative, documents),
        step_delay=config.progress.step_delay,
    )
    store = build_store(config.storage.db_url)
    auth = StaticTokenAuthProvider(config.auth.tokens) if config.auth.tokens else None
    channel = EventChannel()
    logger.info("Loaded data for %s from %s", data.company_name, config.data_path)
    return AppContext(
        config=config,
        data=data,
        provider=provider,
        narrative=narrative,
        documents=documents,
        orchestrator=orchestrator,
        store=store,
        auth=auth,
        channel=channel,
        runner=TaskRunner(orchestrator, channel, store),
    )
