from taskpilot.agents.planner import plan
from taskpilot.agents.roles import Role


def test_financial_keywords_route_to_financial_analyst():
    assert plan("Analyze quarterly revenue trends") == [Role.FINANCIAL_ANALYST]


def test_families_keep_priority_order():
    roles = plan("Summarize and chart the financial data")

    assert roles == [
        Role.SUMMARIZER,
        Role.DATA_ANALYST,
        Role.CHART_GENERATOR,
        Role.FINANCIAL_ANALYST,
        Role.DATA_COLLECTOR,
    ]


def test_report_request_only_collects_data():
    assert plan("Create a report on sales performance by region") == [Role.DATA_COLLECTOR]


def test_unmatched_request_uses_default_roles():
    assert plan("How is the team doing?") == [Role.GENERAL_ANALYST, Role.REPORT_GENERATOR]
    assert plan("") == [Role.GENERAL_ANALYST, Role.REPORT_GENERATOR]


def test_plan_is_case_insensitive_and_duplicate_free():
    roles = plan("SUMMARY, then summarize the Graph and visualize the chart")

    assert roles == [Role.SUMMARIZER, Role.DATA_ANALYST, Role.CHART_GENERATOR]
    assert len(roles) == len(set(roles))


def test_plan_is_deterministic():
    request = "Visualize customer data trends"
    assert plan(request) == plan(request)
