"""Role-aware prompt building and fallback handling around an LLM provider."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

from ..data.dataset import StructuredDataSet
from ..data.metrics import row_share_pct
from ..documents.index import Snippet
from .provider import Availability, GeneratorUnavailable, LLMProvider, PromptContext

logger = logging.getLogger(__name__)

FALLBACK_NOTE = "Note: the narrative generator is not available. Using structured data analysis."

ROLE_INSTRUCTIONS: Dict[str, str] = {
    "summarizer": (
        "Your role: Create concise, accurate summaries based on the provided data AND uploaded documents. "
        "Focus on key insights and main points from all available sources."
    ),
    "financial-analyst": (
        "Your role: Analyze financial data, identify trends, calculate growth rates, and provide financial "
        "insights. Also check uploaded documents for relevant financial policies or reports. When analyzing "
        "trends, describe them in a way that would be suitable for visualization."
    ),
    "data-analyst": (
        "Your role: Perform statistical analysis, identify patterns, and provide data-driven insights using "
        "both structured data and uploaded documents. Present findings in a way that highlights numerical "
        "comparisons and trends."
    ),
    "chart-generator": (
        "Your role: Recommend specific charts to visualize the data. Describe:\n"
        "1. What type of chart (line, bar, pie, scatter, area) would best show the data\n"
        "2. What data points should be on X and Y axes\n"
        "3. What insights the chart would reveal\n"
        "4. What trends or patterns are visible\n"
        "Always suggest at least one chart visualization based on the available data."
    ),
    "report-generator": (
        "Your role: Generate structured reports with sections, analysis, and recommendations using all "
        "available data and documents."
    ),
}
DEFAULT_INSTRUCTION = "Your role: Provide comprehensive analysis and insights based on all available data and documents."

GROUNDING = (
    "Always base your responses on the actual data provided from BOTH structured data and uploaded documents. "
    "Be specific with numbers and percentages. If data is not available for a specific question, clearly state "
    "that. When citing information from uploaded documents, mention the source document name."
)


@dataclass
class NarrativeContext:
    """Everything the prompt may embed besides the request itself."""

    dataset: StructuredDataSet
    structured: Mapping[str, Any] = field(default_factory=dict)
    documents: Sequence[Snippet] = ()


def clean_response(text: str) -> str:
    """Strip markdown emphasis and header markers and collapse blank runs."""

    text = text.replace("*", "")
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"^#{1,6}\s+", "", text, flags=re.MULTILINE)
    return text.strip()


def _value(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return 0.0


def _amount(value: Any) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return f"${value:,}"
    return "$0"


class NarrativeGenerator:
    """Produces narrative text for one role, falling back to canned text."""

    def __init__(self, provider: LLMProvider, *, context_budget: int = 2000) -> None:
        self.provider = provider
        self.context_budget = context_budget

    def generate(self, request: str, context: NarrativeContext, role: str, *, task_id: str | None = None) -> str:
        prompt = self.build_prompt(request, context, role)
        logger.info("Generating narrative for %s (%d prompt chars)", role, len(prompt))
        try:
            raw = self.provider.generate(prompt, PromptContext(role=role, task_id=task_id))
        except (GeneratorUnavailable, OSError) as exc:
            logger.warning("Narrative backend failed for %s (%s); using fallback", role, exc)
            return self.fallback(role, context.dataset)
        cleaned = clean_response(raw or "")
        if not cleaned:
            logger.warning("Narrative backend returned no text for %s; using fallback", role)
            return self.fallback(role, context.dataset)
        return cleaned

    def check_availability(self) -> Availability:
        return self.provider.check_availability()

    def build_prompt(self, request: str, context: NarrativeContext, role: str) -> str:
        system = self.build_system_prompt(role, context)
        return (
            f"{system}\n\nUser Question: {request}\n\n"
            "Provide a concise, data-driven response. Use plain text formatting without asterisks or markdown. "
            "Focus on numbers, insights, and key findings."
        )

    def build_system_prompt(self, role: str, context: NarrativeContext) -> str:
        data = context.dataset
        info = data.company_info
        name = info.get("name") or "the company"
        lines: List[str] = [
            f"You are an AI assistant helping with {name} company data analysis.",
            "",
            "Company Information:",
            f"- Company Name: {name}",
            f"- Founded: {info.get('founded', 'N/A')}",
            f"- Mission: {info.get('mission', 'N/A')}",
            f"- Employees: {info.get('employees', 'N/A')}",
            f"- Headquarters: {info.get('headquarters', 'N/A')}",
            f"- Departments: {', '.join(str(item) for item in info.get('departments') or ())}",
        ]
        if data.financials:
            lines += ["", "Financial Data:"]
            for row in data.financials:
                lines.append(
                    f"- {row.get('quarter')}: Revenue: {_amount(row.get('revenue'))}, "
                    f"Profit: {_amount(row.get('profit'))}, Expenses: {_amount(row.get('expenses'))}"
                )
        if data.customer_satisfaction:
            lines += ["", "Customer Satisfaction Data:"]
            for row in data.customer_satisfaction:
                share = row_share_pct(row, "satisfied", "surveyed")
                rate = "n/a" if share is None else f"{share:.1f}%"
                lines.append(
                    f"- {row.get('month')}: {row.get('surveyed')} surveyed, {row.get('satisfied')} satisfied ({rate}), "
                    f"{row.get('neutral')} neutral, {row.get('dissatisfied')} dissatisfied"
                )
        if data.sales_by_region:
            lines += ["", "Sales by Region:"]
            lines += [f"- {row.get('region')}: {_amount(row.get('sales'))}" for row in data.sales_by_region]
        if data.user_engagement:
            lines += ["", "User Engagement Metrics:"]
            for row in data.user_engagement:
                if row.get("metric") == "feature_usage":
                    lines.append(f"- Feature Usage: {json.dumps(dict(row.get('details') or {}))}")
                else:
                    lines.append(f"- {row.get('metric')}: {row.get('last_month_average')}")
        if context.structured:
            lines += ["", "Structured Analysis:", json.dumps(context.structured, default=str)]
        excerpts = self._document_excerpts(context.documents)
        if excerpts:
            lines += ["", "Additional Knowledge from Uploaded Documents:", excerpts]
        lines += ["", ROLE_INSTRUCTIONS.get(role, DEFAULT_INSTRUCTION), "", GROUNDING]
        return "\n".join(lines)

    def _document_excerpts(self, snippets: Sequence[Snippet]) -> str:
        if not snippets:
            return ""
        names = sorted({snippet.filename for snippet in snippets})
        body = "\n\n".join(f"[{snippet.filename}]\n{snippet.text}" for snippet in snippets)
        if len(body) > self.context_budget:
            body = body[: self.context_budget] + "... (truncated)"
        return f"Available documents: {', '.join(names)}\n\n{body}"

    def fallback(self, role: str, dataset: StructuredDataSet) -> str:
        """Deterministic role-specific text used when the backend cannot answer."""

        name = dataset.company_info.get("name") or "the company"
        if role == "summarizer":
            text = (
                f"Based on the available data for {name}, the company operates across "
                f"{len(dataset.company_info.get('departments') or ())} departments with "
                f"{dataset.company_info.get('employees', 'an undisclosed number of')} employees."
            )
        elif role == "financial-analyst":
            rows = dataset.financials
            total = sum(_value(row.get("revenue")) for row in rows)
            average_profit = sum(_value(row.get("profit")) for row in rows) / (len(rows) or 1)
            text = (
                f"Financial Analysis: Total revenue across all quarters: ${total:,.0f}. "
                f"Average quarterly profit: ${average_profit:,.0f}."
            )
        elif role == "data-collector":
            text = (
                f"Data Collection Complete: Gathered data from {name} including financial records, customer "
                "satisfaction surveys, sales by region, and user engagement metrics."
            )
        elif role == "data-analyst":
            text = "Data Analysis Complete: Processed and analyzed all available datasets for patterns and trends."
        elif role == "chart-generator":
            text = (
                "Chart Generation Complete: Prepared visual representations of the selected data with labelled "
                "axes and legends."
            )
        elif role == "report-generator":
            text = (
                "Report Generation Complete: Compiled an analysis report with an executive summary, detailed "
                "analysis and recommendations."
            )
        elif role == "general-analyst":
            text = f"General Analysis Complete: Reviewed {name} operations across the available metrics."
        else:
            text = f"Analysis complete for {name}."
        return f"{text}\n\n{FALLBACK_NOTE}"
