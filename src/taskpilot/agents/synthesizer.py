"""Merges structured payloads with generated narrative text per role."""

from __future__ import annotations

import logging
from typing import List, Optional

from ..data.topics import DataProvider, structured_view
from ..documents.index import DocumentIndex, Snippet
from ..llm.narrative import NarrativeContext, NarrativeGenerator
from ..llm.provider import GeneratorUnavailable
from .results import RoleResult
from .roles import Role

logger = logging.getLogger(__name__)


class ResultSynthesizer:
    """Builds one RoleResult for a role and request.

    Generator failures degrade the result to the structured payload alone;
    they never reach the orchestrator.
    """

    def __init__(
        self,
        data: DataProvider,
        narrative: NarrativeGenerator,
        documents: Optional[DocumentIndex] = None,
    ) -> None:
        self.data = data
        self.narrative = narrative
        self.documents = documents

    def synthesize(
        self,
        role: Role,
        request: str,
        *,
        task_id: str | None = None,
        user_id: str | None = None,
    ) -> RoleResult:
        topic, structured = self.data.payload_for(request, role)
        logger.debug("Synthesizing %s on topic %s", role.value, topic.value)
        context = NarrativeContext(
            dataset=self.data.dataset,
            structured=structured_view(structured),
            documents=self._snippets(request, user_id),
        )
        try:
            text = self.narrative.generate(request, context, role.value, task_id=task_id)
        except (GeneratorUnavailable, OSError) as exc:
            logger.warning("Narrative unavailable for %s (%s); returning structured data only", role.value, exc)
            return structured
        return structured.with_narrative(text)

    def _snippets(self, request: str, user_id: str | None) -> List[Snippet]:
        if self.documents is None:
            return []
        return list(self.documents.query(request, user_id=user_id))
