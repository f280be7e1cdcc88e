import asyncio

import pytest

from taskpilot.agents.orchestrator import TaskOrchestrator
from taskpilot.agents.synthesizer import ResultSynthesizer
from taskpilot.data import DataProvider, StructuredDataSet
from taskpilot.llm import NarrativeGenerator, OfflineProvider

SAMPLE_DATA = {
    "company_info": {
        "name": "Acme Analytics",
        "founded": 2019,
        "mission": "Make numbers readable.",
        "employees": 42,
        "headquarters": "Berlin",
        "departments": ["Engineering", "Sales"],
    },
    "financials": [
        {"quarter": "Q1 2024", "revenue": 100, "profit": 10, "expenses": 50},
        {"quarter": "Q2 2024", "revenue": 150, "profit": 20, "expenses": 60},
    ],
    "customer_satisfaction": [
        {"month": "January", "surveyed": 100, "satisfied": 80, "neutral": 15, "dissatisfied": 5},
        {"month": "February", "surveyed": 100, "satisfied": 85, "neutral": 10, "dissatisfied": 5},
    ],
    "sales_by_region": [
        {"region": "North", "sales": 500},
        {"region": "South", "sales": 500},
        {"region": "East", "sales": 200},
    ],
    "user_engagement": [
        {"metric": "daily_active_users", "last_month_average": 300},
        {"metric": "weekly_active_users", "last_month_average": 700},
        {"metric": "monthly_active_users", "last_month_average": 1000},
        {"metric": "average_session_time_minutes", "last_month_average": 12},
        {"metric": "feature_usage", "details": {"dashboards": 60, "alerts": 25}},
    ],
}


async def no_sleep(delay: float) -> None:
    await asyncio.sleep(0)


async def collect(stream):
    return [event async for event in stream]


@pytest.fixture
def dataset() -> StructuredDataSet:
    return StructuredDataSet.from_mapping(SAMPLE_DATA)


@pytest.fixture
def data_provider(dataset) -> DataProvider:
    return DataProvider(dataset)


@pytest.fixture
def orchestrator(data_provider) -> TaskOrchestrator:
    synthesizer = ResultSynthesizer(data_provider, NarrativeGenerator(OfflineProvider()))
    return TaskOrchestrator(synthesizer, step_delay=0, sleep=no_sleep)
