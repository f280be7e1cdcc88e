"""Topic classification and per-role structured payloads.

The provider classifies a request with its own keyword families (it does not
share the planner's rules, so the two may disagree) and derives a payload for
each role from the matching partition. A topic whose partition is empty or
numerically unusable falls through to ``general`` and finally to the
hard-coded ``default`` payloads; nothing here raises to the caller.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple

from ..agents.results import (
    ChartGeneratorResult,
    DataAnalystResult,
    DataCollectorResult,
    FinancialAnalystResult,
    GeneralAnalystResult,
    ReportGeneratorResult,
    RoleResult,
    SummarizerResult,
    default_result,
)
from ..agents.roles import Role
from .dataset import StructuredDataSet, thaw
from .metrics import (
    InsufficientData,
    count,
    growth_pct,
    money,
    ratio_pct,
    revenue_pattern,
    row_share_pct,
    satisfaction_rate,
    top_entry,
    volatility_bucket,
)

logger = logging.getLogger(__name__)


class Topic(str, Enum):
    FINANCIAL = "financial"
    CUSTOMER = "customer"
    SALES = "sales"
    ENGAGEMENT = "engagement"
    GENERAL = "general"
    DEFAULT = "default"


TOPIC_KEYWORDS: Tuple[Tuple[Topic, Tuple[str, ...], str], ...] = (
    (Topic.FINANCIAL, ("financial", "quarter", "revenue", "profit", "trend"), "financials"),
    (Topic.CUSTOMER, ("customer", "satisfaction", "survey"), "customer_satisfaction"),
    (Topic.SALES, ("sales", "region"), "sales_by_region"),
    (Topic.ENGAGEMENT, ("engagement", "user", "active"), "user_engagement"),
)

MISSING_ROLE_MESSAGES: Dict[Topic, str] = {
    Topic.FINANCIAL: "Analysis completed",
    Topic.CUSTOMER: "Customer satisfaction analysis completed",
    Topic.SALES: "Sales analysis completed",
    Topic.ENGAGEMENT: "Engagement analysis completed",
    Topic.GENERAL: "Company information available",
    Topic.DEFAULT: "Analysis completed",
}

Payloads = Dict[Role, RoleResult]


def _pct(value: float) -> str:
    return f"{value:+.1f}%"


def _label(quarter: Any) -> str:
    text = str(quarter or "")
    return text.split()[0] if text.strip() else text


def _month_rate(row: Mapping[str, Any]) -> float:
    return row_share_pct(row, "satisfied", "surveyed") or 0.0


class DataProvider:
    """Serves structured payloads from one immutable dataset."""

    def __init__(self, dataset: StructuredDataSet) -> None:
        self.dataset = dataset
        self._builders: Dict[Topic, Callable[[], Payloads]] = {
            Topic.FINANCIAL: self._financial,
            Topic.CUSTOMER: self._customer,
            Topic.SALES: self._sales,
            Topic.ENGAGEMENT: self._engagement,
            Topic.GENERAL: self._general,
            Topic.DEFAULT: self._default,
        }

    @property
    def company_name(self) -> str:
        return str(self.dataset.company_info.get("name") or "the company")

    def select_topic(self, request: str) -> Topic:
        lowered = (request or "").lower()
        for topic, keywords, partition in TOPIC_KEYWORDS:
            if any(word in lowered for word in keywords) and self.dataset.partition(partition):
                return topic
        if self.dataset.company_info:
            return Topic.GENERAL
        return Topic.DEFAULT

    def topic_payload(self, topic: Topic, role: Role) -> RoleResult:
        chain: List[Topic] = [topic]
        for fallback in (Topic.GENERAL, Topic.DEFAULT):
            if fallback not in chain:
                chain.append(fallback)
        for candidate in chain:
            try:
                payloads = self._builders[candidate]()
            except (InsufficientData, KeyError, TypeError, ValueError) as exc:
                logger.debug("Topic %s unusable (%s); falling back", candidate.value, exc)
                continue
            result = payloads.get(role)
            if result is None:
                return default_result(MISSING_ROLE_MESSAGES[candidate])
            return result
        return default_result()

    def payload_for(self, request: str, role: Role) -> Tuple[Topic, RoleResult]:
        topic = self.select_topic(request)
        return topic, self.topic_payload(topic, role)

    def serialize(self) -> Dict[str, Any]:
        return self.dataset.to_dict()

    # -- topic builders -------------------------------------------------

    def _financial(self) -> Payloads:
        rows = self.dataset.financials
        if not rows:
            raise InsufficientData("no financial quarters")
        revenue_growth = growth_pct(rows, "revenue")
        profit_growth = growth_pct(rows, "profit")
        expense_growth = growth_pct(rows, "expenses")
        revenues = [float(row["revenue"]) for row in rows]
        profits = [float(row.get("profit") or 0) for row in rows]
        total_revenue = sum(revenues)
        total_profit = sum(profits)
        first, last = rows[0].get("quarter"), rows[-1].get("quarter")
        avg_growth = round(revenue_growth / len(rows) * 0.75, 1)
        growing = revenue_growth > 0

        return {
            Role.DATA_COLLECTOR: DataCollectorResult(
                data_points=len(rows) * 3,
                sources=[f"{row.get('quarter')} Financial Report" for row in rows],
                time_range=f"{first} to {last}",
                confidence=0.95,
            ),
            Role.FINANCIAL_ANALYST: FinancialAnalystResult(
                trends={
                    "revenue": _pct(revenue_growth),
                    "expenses": _pct(expense_growth),
                    "profit": _pct(profit_growth),
                },
                insights=self._financial_insights(rows, revenue_growth, profit_growth),
                confidence=0.88,
            ),
            Role.DATA_ANALYST: DataAnalystResult(
                metrics={
                    "totalRevenue": f"${total_revenue / 1000:.1f}k",
                    "totalProfit": f"${total_profit / 1000:.1f}k",
                    "avgQuarterlyGrowth": f"{avg_growth}%",
                    "volatility": volatility_bucket(revenues),
                },
                patterns=[revenue_pattern(revenues)],
                confidence=0.92,
            ),
            Role.SUMMARIZER: SummarizerResult(
                summary=(
                    f"Financial performance from {first} to {last} shows "
                    f"{'growth' if growing else 'decline'} with revenue "
                    f"{'increasing' if growing else 'decreasing'} by {abs(revenue_growth)}% and profits "
                    f"{'growing' if profit_growth > 0 else 'declining'} by {abs(profit_growth)}%. "
                    f"The company has "
                    f"{'successfully managed costs' if expense_growth < revenue_growth else 'experienced cost increases'}"
                    f" while {'expanding' if growing else 'maintaining'} market position."
                ),
                key_points=[
                    f"Revenue {'growth' if growing else 'change'} of {abs(revenue_growth)}%",
                    f"Profit {'growth' if profit_growth > 0 else 'change'} of {abs(profit_growth)}%",
                    f"Data covers {len(rows)} quarters from {first} to {last}",
                ],
                confidence=0.90,
            ),
            Role.CHART_GENERATOR: ChartGeneratorResult(
                chart_type="line",
                data=[
                    {"quarter": _label(row.get("quarter")), "revenue": row.get("revenue"), "profit": row.get("profit")}
                    for row in rows
                ],
                insights=[f"Peak revenue: {money(max(revenues))}", f"Peak profit: {money(max(profits))}"],
            ),
            Role.REPORT_GENERATOR: ReportGeneratorResult(
                sections=[
                    {
                        "title": "Executive Summary",
                        "content": (
                            f"Analysis of financial data from {first} to {last} reveals "
                            f"{'strong' if growing else 'challenging'} performance with revenue "
                            f"{'growth' if growing else 'decline'} of {abs(revenue_growth)}%."
                        ),
                    },
                    {
                        "title": "Detailed Analysis",
                        "content": (
                            f"Quarter-over-quarter analysis shows revenue ranging from {money(min(revenues))} "
                            f"to {money(max(revenues))}, with profit margins "
                            f"{'expanding' if profit_growth > revenue_growth else 'contracting'}."
                        ),
                    },
                    {
                        "title": "Recommendations",
                        "content": (
                            "Continue current growth strategy and focus on maintaining cost efficiency."
                            if growing
                            else "Review cost structure and identify opportunities for revenue growth."
                        ),
                    },
                ],
            ),
            Role.GENERAL_ANALYST: GeneralAnalystResult(
                analysis=(
                    f"Financial analysis based on {len(rows)} quarters of data shows "
                    f"{'positive' if growing else 'negative'} trends."
                ),
                recommendations=self._recommendations(revenue_growth, profit_growth),
                confidence=0.75,
            ),
        }

    @staticmethod
    def _financial_insights(rows: Sequence[Mapping[str, Any]], revenue_growth: float, profit_growth: float) -> List[str]:
        insights: List[str] = []
        if revenue_growth > 10:
            insights.append("Strong revenue growth observed across quarters")
        if profit_growth > revenue_growth:
            insights.append("Profit growth outpacing revenue, indicating improved efficiency")
        margins = [ratio_pct(float(row.get("profit") or 0), float(row["revenue"])) for row in rows]
        insights.append(f"Average profit margin: {sum(margins) / len(margins):.1f}%")
        return insights

    @staticmethod
    def _recommendations(revenue_growth: float, profit_growth: float) -> List[str]:
        items = ["Continue current growth strategy" if revenue_growth > 0 else "Review revenue generation strategies"]
        if profit_growth < revenue_growth:
            items.append("Focus on improving profit margins")
        items.append("Monitor quarterly trends closely")
        return items

    def _customer(self) -> Payloads:
        rows = self.dataset.customer_satisfaction
        if not rows:
            raise InsufficientData("no satisfaction surveys")
        rate = satisfaction_rate(rows)
        total_surveyed = sum(int(row.get("surveyed") or 0) for row in rows)
        per_month = total_surveyed / len(rows)
        peak = rows[0]
        for row in rows[1:]:
            if _month_rate(row) > _month_rate(peak):
                peak = row

        return {
            Role.DATA_COLLECTOR: DataCollectorResult(
                data_points=len(rows),
                sources=[f"{row.get('month')} Survey" for row in rows],
                time_range=f"{rows[0].get('month')} to {rows[-1].get('month')}",
                confidence=0.95,
            ),
            Role.SUMMARIZER: SummarizerResult(
                summary=(
                    f"Customer satisfaction analysis shows {rate}% satisfaction rate across {len(rows)} months. "
                    f"Average {per_month:g} customers surveyed per month."
                ),
                key_points=[
                    f"Overall satisfaction rate: {rate}%",
                    f"Total customers surveyed: {total_surveyed}",
                    f"Data covers {len(rows)} months",
                ],
                confidence=0.90,
            ),
            Role.DATA_ANALYST: DataAnalystResult(
                metrics={
                    "satisfactionRate": f"{rate}%",
                    "totalSurveyed": total_surveyed,
                    "averagePerMonth": round(per_month),
                },
                patterns=[f"{row.get('month')}: {_month_rate(row)}% satisfied" for row in rows],
                confidence=0.92,
            ),
            Role.CHART_GENERATOR: ChartGeneratorResult(
                chart_type="bar",
                data=[
                    {
                        "month": row.get("month"),
                        "satisfied": row.get("satisfied"),
                        "neutral": row.get("neutral"),
                        "dissatisfied": row.get("dissatisfied"),
                    }
                    for row in rows
                ],
                insights=[f"Average satisfaction: {rate}%", f"Peak satisfaction month: {peak.get('month') or 'N/A'}"],
            ),
        }

    def _sales(self) -> Payloads:
        rows = self.dataset.sales_by_region
        if not rows:
            raise InsufficientData("no regional sales")
        total = sum(float(row.get("sales") or 0) for row in rows)
        if total == 0:
            raise InsufficientData("regional sales sum to zero")
        top = top_entry(rows, "sales") or {}
        top_name = top.get("region") or "N/A"

        return {
            Role.DATA_COLLECTOR: DataCollectorResult(
                data_points=len(rows),
                sources=[f"{row.get('region')} Sales Data" for row in rows],
                time_range="Current period",
                confidence=0.95,
            ),
            Role.SUMMARIZER: SummarizerResult(
                summary=(
                    f"Sales performance across {len(rows)} regions shows total sales of {money(total)}. "
                    f"Top performing region is {top_name} with {money(float(top.get('sales') or 0))} in sales."
                ),
                key_points=[
                    f"Total sales: {money(total)}",
                    f"Top region: {top_name}",
                    f"Regions analyzed: {len(rows)}",
                ],
                confidence=0.90,
            ),
            Role.DATA_ANALYST: DataAnalystResult(
                metrics={
                    "totalSales": money(total),
                    "averagePerRegion": money(round(total / len(rows))),
                    "topRegion": top_name,
                },
                patterns=[
                    f"{row.get('region')}: {money(float(row.get('sales') or 0))} "
                    f"({ratio_pct(float(row.get('sales') or 0), total)}%)"
                    for row in rows
                ],
                confidence=0.92,
            ),
            Role.CHART_GENERATOR: ChartGeneratorResult(
                chart_type="bar",
                data=[{"region": row.get("region"), "sales": row.get("sales")} for row in rows],
                insights=[f"Total sales: {money(total)}", f"Top region: {top_name}"],
            ),
        }

    def _engagement(self) -> Payloads:
        rows = self.dataset.user_engagement
        if not rows:
            raise InsufficientData("no engagement metrics")
        by_metric = {row.get("metric"): row for row in rows}

        def average(metric: str) -> float:
            return float((by_metric.get(metric) or {}).get("last_month_average") or 0)

        dau = average("daily_active_users")
        wau = average("weekly_active_users")
        mau = average("monthly_active_users")
        session = average("average_session_time_minutes")
        features = dict((by_metric.get("feature_usage") or {}).get("details") or {})
        # a zero MAU means there is no engagement data to speak of
        dau_ratio = ratio_pct(dau, mau)
        wau_ratio = ratio_pct(wau, mau)
        most_used = "N/A"
        if features:
            most_used = max(features.items(), key=lambda item: float(item[1]))[0]
        usage = ", ".join(f"{name}: {value}%" for name, value in features.items())

        return {
            Role.DATA_COLLECTOR: DataCollectorResult(
                data_points=len(rows),
                sources=[str(row.get("metric")) for row in rows],
                time_range="Last month average",
                confidence=0.95,
            ),
            Role.SUMMARIZER: SummarizerResult(
                summary=(
                    f"User engagement metrics show {count(mau)} monthly active users, {count(wau)} weekly active "
                    f"users, and {count(dau)} daily active users. Average session time is {session:g} minutes. "
                    f"Feature usage: {usage or 'not reported'}."
                ),
                key_points=[
                    f"Monthly Active Users: {count(mau)}",
                    f"Weekly Active Users: {count(wau)}",
                    f"Daily Active Users: {count(dau)}",
                    f"Average Session: {session:g} minutes",
                ],
                confidence=0.90,
            ),
            Role.DATA_ANALYST: DataAnalystResult(
                metrics={
                    "dailyActiveUsers": count(dau),
                    "weeklyActiveUsers": count(wau),
                    "monthlyActiveUsers": count(mau),
                    "avgSessionTime": f"{session:g} minutes",
                },
                patterns=[
                    f"DAU/MAU ratio: {dau_ratio}%",
                    f"WAU/MAU ratio: {wau_ratio}%",
                    f"Most used feature: {most_used}",
                ],
                confidence=0.92,
            ),
            Role.CHART_GENERATOR: ChartGeneratorResult(
                chart_type="bar",
                data=[
                    {"metric": "Daily Active Users", "value": dau},
                    {"metric": "Weekly Active Users", "value": wau},
                    {"metric": "Monthly Active Users", "value": mau},
                ],
                insights=[f"Total MAU: {count(mau)}", f"Engagement rate: {dau_ratio}%"],
            ),
        }

    def _general(self) -> Payloads:
        info = self.dataset.company_info
        if not info:
            raise InsufficientData("no company information")
        name = self.company_name
        departments = ", ".join(str(item) for item in info.get("departments") or ())
        overview = (
            f"Company: {name}, Founded: {info.get('founded', 'N/A')}, Mission: {info.get('mission', 'N/A')}, "
            f"Employees: {info.get('employees', 'N/A')}, Headquarters: {info.get('headquarters', 'N/A')}, "
            f"Departments: {departments}"
        )
        data = self.dataset
        return {
            Role.DATA_COLLECTOR: DataCollectorResult(
                data_points=5,
                sources=["Company Information", "Financial Data", "Customer Satisfaction", "Sales Data", "User Engagement"],
                time_range="Current company data",
                confidence=0.95,
            ),
            Role.SUMMARIZER: SummarizerResult(
                summary=(
                    f"{name} is a company founded in {info.get('founded', 'N/A')} with "
                    f"{info.get('employees', 'N/A')} employees based in {info.get('headquarters', 'N/A')}. "
                    f"{info.get('mission') or ''}"
                ).strip(),
                key_points=[
                    f"Company: {name}",
                    f"Founded: {info.get('founded', 'N/A')}",
                    f"Employees: {info.get('employees', 'N/A')}",
                    f"Headquarters: {info.get('headquarters', 'N/A')}",
                ],
                confidence=0.90,
            ),
            Role.REPORT_GENERATOR: ReportGeneratorResult(
                sections=[
                    {"title": "Company Overview", "content": overview},
                    {
                        "title": "Available Data",
                        "content": (
                            f"Financial data: {len(data.financials)} quarters, Customer satisfaction: "
                            f"{len(data.customer_satisfaction)} months, Sales regions: {len(data.sales_by_region)}, "
                            f"Engagement metrics: {len(data.user_engagement)}"
                        ),
                    },
                ],
            ),
            Role.GENERAL_ANALYST: GeneralAnalystResult(
                analysis=(
                    f"Analysis based on {name} company data. Company information and various data sources "
                    "available for analysis."
                ),
                recommendations=[
                    "Review company information",
                    "Analyze financial trends",
                    "Examine customer satisfaction",
                    "Review sales performance",
                ],
                confidence=0.75,
            ),
        }

    @staticmethod
    def _default() -> Payloads:
        return {
            Role.DATA_COLLECTOR: DataCollectorResult(
                data_points=150,
                sources=["Q1 Financial Report", "Q2 Financial Report", "Q3 Financial Report"],
                time_range="Last 3 quarters",
                confidence=0.95,
            ),
            Role.FINANCIAL_ANALYST: FinancialAnalystResult(
                trends={"revenue": "+15.2%", "expenses": "+8.7%", "profit": "+23.4%"},
                insights=["Revenue growth accelerated", "Cost management improved", "Profit margins expanded"],
                confidence=0.88,
            ),
            Role.SUMMARIZER: SummarizerResult(
                summary="Analysis completed successfully based on available data.",
                key_points=["Data processed", "Insights generated", "Report ready"],
                confidence=0.90,
            ),
            Role.CHART_GENERATOR: ChartGeneratorResult(
                chart_type="line",
                data=[
                    {"quarter": "Q1", "revenue": 10000, "profit": 2000},
                    {"quarter": "Q2", "revenue": 12000, "profit": 2500},
                    {"quarter": "Q3", "revenue": 11000, "profit": 2100},
                ],
                insights=["Data visualization created", "Trends identified"],
            ),
        }


def structured_view(result: RoleResult) -> Dict[str, Any]:
    """JSON-friendly dict of a payload, used when embedding it in prompts."""

    return thaw(result.to_dict())
