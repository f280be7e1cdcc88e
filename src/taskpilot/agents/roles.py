"""Agent roles, statuses and the mutable per-task agent record."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .results import RoleResult


class Role(str, Enum):
    DATA_COLLECTOR = "data-collector"
    FINANCIAL_ANALYST = "financial-analyst"
    DATA_ANALYST = "data-analyst"
    SUMMARIZER = "summarizer"
    CHART_GENERATOR = "chart-generator"
    REPORT_GENERATOR = "report-generator"
    GENERAL_ANALYST = "general-analyst"


class AgentStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERRORED = "errored"


@dataclass(frozen=True)
class RoleInfo:
    name: str
    description: str
    capabilities: List[str]


ROLE_CATALOG: Dict[Role, RoleInfo] = {
    Role.DATA_COLLECTOR: RoleInfo(
        "Data Collector",
        "Gathers and processes raw data from various sources",
        ["data extraction", "data cleaning", "source validation"],
    ),
    Role.FINANCIAL_ANALYST: RoleInfo(
        "Financial Analyst",
        "Analyzes financial data and identifies trends",
        ["trend analysis", "financial modeling", "risk assessment"],
    ),
    Role.DATA_ANALYST: RoleInfo(
        "Data Analyst",
        "Performs statistical analysis and identifies patterns",
        ["statistical analysis", "pattern recognition", "data visualization"],
    ),
    Role.SUMMARIZER: RoleInfo(
        "Summarizer",
        "Creates concise summaries of complex information",
        ["text summarization", "key point extraction", "content synthesis"],
    ),
    Role.CHART_GENERATOR: RoleInfo(
        "Chart Generator",
        "Creates visualizations and charts from data",
        ["chart creation", "data visualization", "graph design"],
    ),
    Role.REPORT_GENERATOR: RoleInfo(
        "Report Generator",
        "Generates structured reports and documentation",
        ["report writing", "document formatting", "content organization"],
    ),
    Role.GENERAL_ANALYST: RoleInfo(
        "General Analyst",
        "Handles general analysis tasks",
        ["comprehensive analysis", "research", "recommendations"],
    ),
}


@dataclass
class AgentRecord:
    """One planned unit of work inside a task.

    Only the orchestrator driving the owning task mutates a record. ``advance``
    refuses to move progress backwards so observers always see a
    non-decreasing series.
    """

    role: Role
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: AgentStatus = AgentStatus.PENDING
    progress: int = 0
    result: Optional["RoleResult"] = None

    def advance(self, progress: int) -> None:
        if progress < self.progress:
            raise ValueError(f"Progress for agent {self.id} cannot go from {self.progress} to {progress}")
        self.progress = min(progress, 100)

    @property
    def confidence(self) -> float:
        return self.result.confidence if self.result is not None else 0.80

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "status": self.status.value,
            "progress": self.progress,
            "result": self.result.to_dict() if self.result is not None else None,
        }
