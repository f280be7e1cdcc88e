import pytest

from taskpilot.data.metrics import (
    InsufficientData,
    growth_pct,
    money,
    ratio_pct,
    revenue_pattern,
    row_share_pct,
    satisfaction_rate,
    top_entry,
    volatility_bucket,
)

QUARTERS = [
    {"quarter": "Q1", "revenue": 100, "profit": 10, "expenses": 50},
    {"quarter": "Q2", "revenue": 150, "profit": 20, "expenses": 60},
]


def test_growth_between_first_and_last_entry():
    assert growth_pct(QUARTERS, "revenue") == 50.0
    assert growth_pct(QUARTERS, "profit") == 100.0
    assert growth_pct(QUARTERS, "expenses") == 20.0


def test_growth_rejects_empty_or_zero_base():
    with pytest.raises(InsufficientData):
        growth_pct([], "revenue")
    with pytest.raises(InsufficientData):
        growth_pct([{"revenue": 0}, {"revenue": 10}], "revenue")
    with pytest.raises(InsufficientData):
        growth_pct([{"revenue": "n/a"}], "revenue")


def test_satisfaction_rate_sums_before_dividing():
    rows = [{"satisfied": 80, "surveyed": 100}, {"satisfied": 85, "surveyed": 100}]
    assert satisfaction_rate(rows) == 82.5


def test_ratio_with_zero_denominator():
    with pytest.raises(InsufficientData):
        ratio_pct(5, 0)


@pytest.mark.parametrize(
    "values, bucket",
    [
        ([100, 100, 100], "Low"),
        ([100, 120], "Low"),
        ([100, 130], "Medium"),
        ([100, 150], "High"),
    ],
)
def test_volatility_buckets(values, bucket):
    assert volatility_bucket(values) == bucket


def test_top_entry_prefers_first_on_ties():
    rows = [{"region": "North", "sales": 500}, {"region": "South", "sales": 500}, {"region": "East", "sales": 20}]
    assert top_entry(rows, "sales")["region"] == "North"
    assert top_entry([], "sales") is None


def test_revenue_patterns():
    assert revenue_pattern([1, 2, 2, 3]) == "Consistent upward trend in revenue"
    assert revenue_pattern([3, 2, 1]) == "Declining revenue pattern detected"
    assert revenue_pattern([1, 3, 2]) == "Volatile revenue pattern with fluctuations"


def test_money_formatting():
    assert money(1500) == "$1,500"
    assert money(12.5) == "$12.50"


def test_row_share_pct_skips_unusable_fields():
    assert row_share_pct({"satisfied": 80, "surveyed": 100}, "satisfied", "surveyed") == 80.0
    assert row_share_pct({"satisfied": None, "surveyed": 100}, "satisfied", "surveyed") is None
    assert row_share_pct({"satisfied": 80, "surveyed": "100"}, "satisfied", "surveyed") is None
    assert row_share_pct({"satisfied": 80, "surveyed": 0}, "satisfied", "surveyed") is None
