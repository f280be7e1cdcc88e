"""Task dataclasses used by the orchestrator."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..agents.results import RoleResult
from ..agents.roles import AgentRecord, Role

DEFAULT_SUMMARY = "Analysis completed successfully"


@dataclass
class Task:
    """One user request being processed."""

    request: str
    agents: List[AgentRecord]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    results: Dict[Role, RoleResult] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    chat_id: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def roster(self) -> List[Dict[str, Any]]:
        return [agent.to_dict() for agent in self.agents]


@dataclass(frozen=True)
class AggregatedReport:
    """Final merged output of a task."""

    summary: str
    key_insights: Tuple[str, ...]
    chart_data: Optional[Dict[str, Any]]
    detailed_report: Optional[Dict[str, Any]]
    agents: Tuple[Dict[str, Any], ...]
    completed_at: str

    @classmethod
    def from_task(cls, task: Task) -> "AggregatedReport":
        results = task.results
        summary = getattr(results.get(Role.SUMMARIZER), "summary", None) or DEFAULT_SUMMARY
        insights = getattr(results.get(Role.FINANCIAL_ANALYST), "insights", None) or []
        chart = results.get(Role.CHART_GENERATOR)
        report = results.get(Role.REPORT_GENERATOR)
        return cls(
            summary=summary,
            key_insights=tuple(insights),
            chart_data=chart.to_dict() if chart is not None else None,
            detailed_report=report.to_dict() if report is not None else None,
            agents=tuple(
                {
                    "id": agent.id,
                    "role": agent.role.value,
                    "status": agent.status.value,
                    "confidence": agent.confidence,
                }
                for agent in task.agents
            ),
            completed_at=datetime.now(timezone.utc).isoformat(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "keyInsights": list(self.key_insights),
            "chartData": self.chart_data,
            "detailedReport": self.detailed_report,
            "agents": [dict(agent) for agent in self.agents],
            "completedAt": self.completed_at,
        }
