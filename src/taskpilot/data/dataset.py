"""Loading of the process-wide structured business dataset."""

from __future__ import annotations

import json
import logging
import pathlib
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Tuple

logger = logging.getLogger(__name__)

PARTITIONS = ("company_info", "financials", "customer_satisfaction", "sales_by_region", "user_engagement")


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Return plain dict/list copies of frozen data (for JSON serialisation)."""

    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return value


@dataclass(frozen=True)
class StructuredDataSet:
    """Read-only view over the five business partitions."""

    company_info: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    financials: Tuple[Mapping[str, Any], ...] = ()
    customer_satisfaction: Tuple[Mapping[str, Any], ...] = ()
    sales_by_region: Tuple[Mapping[str, Any], ...] = ()
    user_engagement: Tuple[Mapping[str, Any], ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "StructuredDataSet":
        company = data.get("company_info") or {}
        if not isinstance(company, Mapping):
            raise ValueError("company_info must be an object")
        series = {}
        for name in PARTITIONS[1:]:
            rows = data.get(name) or []
            if not isinstance(rows, list) or not all(isinstance(row, Mapping) for row in rows):
                raise ValueError(f"{name} must be a list of objects")
            series[name] = _freeze(rows)
        return cls(company_info=_freeze(company), **series)

    @classmethod
    def empty(cls) -> "StructuredDataSet":
        return cls()

    def partition(self, name: str) -> Any:
        if name not in PARTITIONS:
            raise KeyError(name)
        return getattr(self, name)

    def to_dict(self) -> dict:
        return {name: thaw(getattr(self, name)) for name in PARTITIONS}


def load_dataset(path: str | pathlib.Path) -> StructuredDataSet:
    """Load the dataset once at startup; unreadable sources yield an empty dataset."""

    p = pathlib.Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
        if not isinstance(raw, Mapping):
            raise ValueError("dataset root must be an object")
        dataset = StructuredDataSet.from_mapping(raw)
    except (OSError, ValueError) as exc:
        logger.warning("Could not load structured data from %s (%s); using empty dataset", p, exc)
        return StructuredDataSet.empty()
    logger.info(
        "Loaded structured data from %s: %d quarters, %d survey months, %d regions, %d engagement metrics",
        p,
        len(dataset.financials),
        len(dataset.customer_satisfaction),
        len(dataset.sales_by_region),
        len(dataset.user_engagement),
    )
    return dataset
