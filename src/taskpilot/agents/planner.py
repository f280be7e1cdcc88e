"""Maps a free-text request to the ordered roles that will work on it."""

from __future__ import annotations

from typing import List, Tuple

from .roles import Role

KEYWORD_FAMILIES: Tuple[Tuple[Tuple[str, ...], Tuple[Role, ...]], ...] = (
    (("summarize", "summary"), (Role.SUMMARIZER,)),
    (("chart", "graph", "visualize"), (Role.DATA_ANALYST, Role.CHART_GENERATOR)),
    (("financial", "quarter", "trend"), (Role.FINANCIAL_ANALYST,)),
    (("data", "report"), (Role.DATA_COLLECTOR,)),
)

DEFAULT_ROLES: Tuple[Role, ...] = (Role.GENERAL_ANALYST, Role.REPORT_GENERATOR)


def plan(request: str) -> List[Role]:
    """Return the roles for ``request`` in priority order, never empty."""

    lowered = (request or "").lower()
    roles: List[Role] = []
    for keywords, family in KEYWORD_FAMILIES:
        if any(word in lowered for word in keywords):
            for role in family:
                if role not in roles:
                    roles.append(role)
    return roles or list(DEFAULT_ROLES)
