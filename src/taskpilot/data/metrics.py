"""Numeric aggregates derived from the structured partitions."""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional, Sequence


class InsufficientData(ValueError):
    """The partition cannot support the requested aggregate (empty or zero divisor)."""


def _number(row: Mapping[str, Any], key: str) -> float:
    value = row.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InsufficientData(f"'{key}' is missing or not numeric")
    return float(value)


def growth_pct(series: Sequence[Mapping[str, Any]], key: str) -> float:
    """(last - first) / first * 100 over an ordered series, 1 decimal."""

    if not series:
        raise InsufficientData("empty series")
    first = _number(series[0], key)
    last = _number(series[-1], key)
    if first == 0:
        raise InsufficientData(f"first {key} is zero")
    return round((last - first) / first * 100, 1)


def ratio_pct(numerator: float, denominator: float) -> float:
    if denominator == 0:
        raise InsufficientData("zero denominator")
    return round(numerator / denominator * 100, 1)


def row_share_pct(row: Mapping[str, Any], part: str, whole: str) -> Optional[float]:
    """row[part] / row[whole] * 100, or None when either field is unusable."""

    try:
        return ratio_pct(_number(row, part), _number(row, whole))
    except InsufficientData:
        return None


def volatility_bucket(values: Sequence[float]) -> str:
    """Coefficient of variation bucket: < 10 Low, < 20 Medium, else High."""

    if not values:
        raise InsufficientData("empty series")
    mean = sum(values) / len(values)
    if mean == 0:
        raise InsufficientData("zero mean")
    variance = sum((value - mean) ** 2 for value in values) / len(values)
    coefficient = math.sqrt(variance) / mean * 100
    if coefficient < 10:
        return "Low"
    if coefficient < 20:
        return "Medium"
    return "High"


def satisfaction_rate(rows: Sequence[Mapping[str, Any]]) -> float:
    satisfied = sum(float(row.get("satisfied") or 0) for row in rows)
    surveyed = sum(float(row.get("surveyed") or 0) for row in rows)
    return ratio_pct(satisfied, surveyed)


def top_entry(rows: Sequence[Mapping[str, Any]], key: str) -> Optional[Mapping[str, Any]]:
    """Row with the largest ``key``; the first one wins ties."""

    best: Optional[Mapping[str, Any]] = None
    for row in rows:
        if best is None or float(row.get(key) or 0) > float(best.get(key) or 0):
            best = row
    return best


def revenue_pattern(values: Sequence[float]) -> str:
    pairs = list(zip(values, values[1:]))
    if all(later >= earlier for earlier, later in pairs):
        return "Consistent upward trend in revenue"
    if all(later <= earlier for earlier, later in pairs):
        return "Declining revenue pattern detected"
    return "Volatile revenue pattern with fluctuations"


def money(value: float) -> str:
    """Dollar amount with thousands separators, no trailing .0 on whole numbers."""

    if float(value).is_integer():
        return f"${int(value):,}"
    return f"${value:,.2f}"


def count(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,}"
