import json

import pytest

from taskpilot.agents.results import FinancialAnalystResult, MessageResult, SummarizerResult
from taskpilot.agents.roles import Role
from taskpilot.data import DataProvider, StructuredDataSet, Topic, load_dataset
from taskpilot.data.topics import structured_view

from conftest import SAMPLE_DATA


def test_topic_selection_follows_keywords(data_provider):
    assert data_provider.select_topic("Quarterly revenue please") is Topic.FINANCIAL
    assert data_provider.select_topic("customer satisfaction survey") is Topic.CUSTOMER
    assert data_provider.select_topic("sales by region") is Topic.SALES
    assert data_provider.select_topic("user engagement") is Topic.ENGAGEMENT
    assert data_provider.select_topic("Tell me about the company") is Topic.GENERAL


def test_topic_with_empty_partition_falls_to_general():
    provider = DataProvider(StructuredDataSet.from_mapping({"company_info": SAMPLE_DATA["company_info"]}))
    assert provider.select_topic("revenue") is Topic.GENERAL


def test_empty_dataset_uses_default_topic():
    provider = DataProvider(StructuredDataSet.empty())

    topic, result = provider.payload_for("revenue", Role.FINANCIAL_ANALYST)

    assert topic is Topic.DEFAULT
    assert isinstance(result, FinancialAnalystResult)
    assert result.trends["revenue"] == "+15.2%"
    assert provider.topic_payload(Topic.DEFAULT, Role.DATA_ANALYST).message == "Analysis completed"


def test_financial_payloads(data_provider):
    analyst = data_provider.topic_payload(Topic.FINANCIAL, Role.FINANCIAL_ANALYST)
    assert analyst.trends == {"revenue": "+50.0%", "expenses": "+20.0%", "profit": "+100.0%"}
    assert analyst.insights[0] == "Strong revenue growth observed across quarters"
    assert analyst.insights[1] == "Profit growth outpacing revenue, indicating improved efficiency"
    assert analyst.insights[2].startswith("Average profit margin:")
    assert analyst.confidence == 0.88

    metrics = data_provider.topic_payload(Topic.FINANCIAL, Role.DATA_ANALYST)
    assert metrics.metrics["avgQuarterlyGrowth"] == "18.8%"
    assert metrics.metrics["volatility"] == "High"
    assert metrics.patterns == ["Consistent upward trend in revenue"]

    collector = data_provider.topic_payload(Topic.FINANCIAL, Role.DATA_COLLECTOR)
    assert collector.data_points == 6
    assert collector.time_range == "Q1 2024 to Q2 2024"

    chart = data_provider.topic_payload(Topic.FINANCIAL, Role.CHART_GENERATOR)
    assert chart.chart_type == "line"
    assert [point["quarter"] for point in chart.data] == ["Q1", "Q2"]


def test_customer_payloads(data_provider):
    summary = data_provider.topic_payload(Topic.CUSTOMER, Role.SUMMARIZER)
    assert isinstance(summary, SummarizerResult)
    assert "82.5% satisfaction rate" in summary.summary

    metrics = data_provider.topic_payload(Topic.CUSTOMER, Role.DATA_ANALYST).metrics
    assert metrics == {"satisfactionRate": "82.5%", "totalSurveyed": 200, "averagePerMonth": 100}

    chart = data_provider.topic_payload(Topic.CUSTOMER, Role.CHART_GENERATOR)
    assert "Peak satisfaction month: February" in chart.insights


def test_missing_role_gets_topic_message(data_provider):
    result = data_provider.topic_payload(Topic.CUSTOMER, Role.FINANCIAL_ANALYST)

    assert isinstance(result, MessageResult)
    assert result.message == "Customer satisfaction analysis completed"
    assert result.confidence == 0.80


def test_sales_top_region_prefers_first_tie(data_provider):
    metrics = data_provider.topic_payload(Topic.SALES, Role.DATA_ANALYST).metrics

    assert metrics["topRegion"] == "North"
    assert metrics["totalSales"] == "$1,200"
    assert metrics["averagePerRegion"] == "$400"


def test_engagement_ratios(data_provider):
    patterns = data_provider.topic_payload(Topic.ENGAGEMENT, Role.DATA_ANALYST).patterns

    assert patterns == ["DAU/MAU ratio: 30.0%", "WAU/MAU ratio: 70.0%", "Most used feature: dashboards"]


def test_zero_monthly_users_falls_through_to_general():
    data = dict(SAMPLE_DATA)
    data["user_engagement"] = [
        {"metric": "daily_active_users", "last_month_average": 0},
        {"metric": "monthly_active_users", "last_month_average": 0},
    ]
    provider = DataProvider(StructuredDataSet.from_mapping(data))

    topic, result = provider.payload_for("user engagement", Role.DATA_ANALYST)
    assert topic is Topic.ENGAGEMENT
    assert isinstance(result, MessageResult)
    assert result.message == "Company information available"

    summary = provider.topic_payload(Topic.ENGAGEMENT, Role.SUMMARIZER)
    assert summary.summary.startswith("Acme Analytics is a company founded in 2019")


def test_dataset_is_read_only(dataset):
    with pytest.raises(TypeError):
        dataset.financials[0]["revenue"] = 1
    assert dataset.to_dict()["financials"][0]["revenue"] == 100


def test_dataset_rejects_malformed_partitions():
    with pytest.raises(ValueError):
        StructuredDataSet.from_mapping({"financials": {"quarter": "Q1"}})


def test_load_dataset_degrades_to_empty(tmp_path):
    assert load_dataset(tmp_path / "missing.json") == StructuredDataSet.empty()

    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    assert load_dataset(broken).financials == ()

    good = tmp_path / "data.json"
    good.write_text(json.dumps(SAMPLE_DATA))
    assert load_dataset(good).company_info["name"] == "Acme Analytics"


def test_structured_view_is_plain_json(data_provider):
    view = structured_view(data_provider.topic_payload(Topic.FINANCIAL, Role.CHART_GENERATOR))

    assert json.loads(json.dumps(view))["chartType"] == "line"
