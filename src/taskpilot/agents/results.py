"""Role-specific result variants.

Every variant declares its own fields, the field that receives narrative text
and the confidence used when the payload does not state one. ``confidence`` is
normalised in ``__post_init__`` so all variants obey the same [0, 1] rule.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass
class RoleResult:
    """Base variant. Use a subclass; ``MessageResult`` is the role-agnostic one."""

    narrative_field: ClassVar[str] = "analysis"
    default_confidence: ClassVar[float] = 0.80

    confidence: Optional[float] = None

    def __post_init__(self) -> None:
        value = self.default_confidence if self.confidence is None else float(self.confidence)
        self.confidence = min(max(value, 0.0), 1.0)

    def with_narrative(self, text: str) -> "RoleResult":
        if not text:
            return self
        return dataclasses.replace(self, **{self.narrative_field: text})

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        for item in dataclasses.fields(self):
            value = getattr(self, item.name)
            if value is None:
                continue
            payload[_camel(item.name)] = value
        return payload


@dataclass
class DataCollectorResult(RoleResult):
    data_points: int = 0
    sources: List[str] = field(default_factory=list)
    time_range: str = ""
    analysis: Optional[str] = None


@dataclass
class FinancialAnalystResult(RoleResult):
    default_confidence: ClassVar[float] = 0.88

    trends: Dict[str, str] = field(default_factory=dict)
    insights: List[str] = field(default_factory=list)
    analysis: Optional[str] = None


@dataclass
class DataAnalystResult(RoleResult):
    default_confidence: ClassVar[float] = 0.92

    metrics: Dict[str, Any] = field(default_factory=dict)
    patterns: List[str] = field(default_factory=list)
    analysis: Optional[str] = None


@dataclass
class SummarizerResult(RoleResult):
    narrative_field: ClassVar[str] = "summary"
    default_confidence: ClassVar[float] = 0.90

    summary: str = ""
    key_points: List[str] = field(default_factory=list)


@dataclass
class ChartGeneratorResult(RoleResult):
    narrative_field: ClassVar[str] = "description"

    chart_type: str = "bar"
    data: List[Dict[str, Any]] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)
    description: Optional[str] = None


@dataclass
class ReportGeneratorResult(RoleResult):
    narrative_field: ClassVar[str] = "ollama_analysis"

    sections: List[Dict[str, str]] = field(default_factory=list)
    format: str = "structured_report"
    ollama_analysis: Optional[str] = None


@dataclass
class GeneralAnalystResult(RoleResult):
    analysis: str = ""
    recommendations: List[str] = field(default_factory=list)


@dataclass
class MessageResult(RoleResult):
    message: str = "Analysis completed"
    analysis: Optional[str] = None


def default_result(message: str = "Analysis completed") -> MessageResult:
    return MessageResult(message=message, confidence=0.80)
