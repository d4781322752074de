import json
from datetime import date, timedelta
from typing import Any

import pytest
import requests
from conftest import FakeRecords, ScriptedCompletionClient, final, requested, tool_call

from chat_agent.infrastructure.data_models import ServiceError, ToolContext, ToolFailure, ToolSuccess
from chat_agent.infrastructure.records_client import RecordsError
from chat_agent.services.round_controller import RoundController
from chat_agent.services.tool_registry import ToolDeps, ToolDispatcher, ToolRegistry
from chat_agent.tools import marketing
from chat_agent.tools.marketing import build_marketing_tools, extract_page_summary, load_marketing_profile
from chat_agent.tools.operations import build_operations_tools, clamp_limit
from chat_agent.tools.web_search import NO_RESULTS, search_web, web_search_tool


def _dispatcher(tools: list[Any]) -> ToolDispatcher:
    return ToolDispatcher(ToolRegistry(tools))


async def _run(dispatcher: ToolDispatcher, name: str, args: dict[str, Any], context: ToolContext) -> Any:
    result = await dispatcher.dispatch(tool_call(name, json.dumps(args)), context)
    try:
        return json.loads(result.content)
    except json.JSONDecodeError:
        return result.content


# -----------------------------
# web_search
# -----------------------------
async def test_web_search_uses_a_search_enabled_side_call() -> None:
    client = ScriptedCompletionClient([final("Rates were cut by 25bp.")])

    outcome = await search_web(client, "interest rates")

    assert outcome == ToolSuccess("Rates were cut by 25bp.")
    call = client.calls[0]
    assert call["tools"] is None
    assert call["search"] is True
    assert call["messages"][0].content.endswith("about: interest rates")


async def test_web_search_failure_and_empty_results() -> None:
    failing = ScriptedCompletionClient([ServiceError("AI service error: 500", 500)])
    empty = ScriptedCompletionClient([final("  ")])

    assert await search_web(failing, "x") == ToolFailure("Web search failed: AI service error: 500")
    assert await search_web(empty, "x") == ToolSuccess(NO_RESULTS)


async def test_web_search_defaults_to_the_user_question(context: ToolContext) -> None:
    client = ScriptedCompletionClient([final("summary")])
    dispatcher = _dispatcher([web_search_tool(client)])

    result = await dispatcher.dispatch(tool_call("web_search", '{"query": ""}'), context)

    assert result.content == "summary"
    assert client.calls[0]["messages"][0].content.endswith(context.user_text)


async def test_web_search_result_feeds_the_main_loop(log: Any, context: ToolContext) -> None:
    client = ScriptedCompletionClient([
        requested(tool_call("web_search", '{"query": "acme news"}', "s1")),
        final("Acme's side-call summary"),
        final("Acme raised a new round."),
    ])
    controller = RoundController(client, _dispatcher([web_search_tool(client)]))

    result = await controller.run(log, context)

    assert result.text == "Acme raised a new round."
    assert [c["search"] for c in client.calls] == [False, True, False]
    tool_msg = log.messages[2]
    assert tool_msg.tool_call_id == "s1"
    assert tool_msg.content == "Acme's side-call summary"


# -----------------------------
# operations
# -----------------------------
def test_clamp_limit() -> None:
    assert clamp_limit(None) == 20
    assert clamp_limit(0) == 20
    assert clamp_limit(5) == 5
    assert clamp_limit(500) == 50
    assert clamp_limit(True) == 20


def test_operations_catalogue() -> None:
    tools = build_operations_tools(ToolDeps(FakeRecords(), ScriptedCompletionClient([])))  # type: ignore[arg-type]

    assert [t.name for t in tools] == [
        "get_briefings",
        "get_briefing_stats",
        "get_briefing_dates",
        "get_news",
        "search_companies",
        "get_company_details",
        "get_company_stats",
        "search_leads",
        "get_lead_metrics",
        "web_search",
    ]


async def test_briefing_stats_count_by_status(context: ToolContext) -> None:
    records = FakeRecords({
        "briefings": [{"status": "pending"}, {"status": "pending"}, {"status": "sent"}, {"status": "odd"}]
    })
    dispatcher = _dispatcher(build_operations_tools(ToolDeps(records, ScriptedCompletionClient([]))))  # type: ignore[arg-type]

    stats = await _run(dispatcher, "get_briefing_stats", {}, context)

    assert stats == {
        "date": date.today().isoformat(),
        "total": 4,
        "pending": 2,
        "reviewed": 0,
        "sent": 1,
        "skipped": 0,
    }
    table, query = records.selects[0]
    assert table == "briefings"
    assert query["filters"] == {"briefing_date": f"eq.{date.today().isoformat()}"}


async def test_search_companies_builds_filters(context: ToolContext) -> None:
    records = FakeRecords({"companies": [{"id": "c1", "name": "Acme"}]})
    dispatcher = _dispatcher(build_operations_tools(ToolDeps(records, ScriptedCompletionClient([]))))  # type: ignore[arg-type]

    found = await _run(dispatcher, "search_companies", {"search": "acme", "city": "Cape Town", "limit": 99}, context)

    assert found == {"total": 1, "count": 1, "companies": [{"id": "c1", "name": "Acme"}]}
    _, query = records.selects[0]
    assert query["filters"]["or"] == "(name.ilike.*acme*,email.ilike.*acme*,phone.ilike.*acme*)"
    assert query["filters"]["city"] == "ilike.*Cape Town*"
    assert query["limit"] == 50


async def test_missing_company_is_an_error_payload(context: ToolContext) -> None:
    dispatcher = _dispatcher(build_operations_tools(ToolDeps(FakeRecords(), ScriptedCompletionClient([]))))  # type: ignore[arg-type]

    result = await _run(dispatcher, "get_company_details", {"company_id": "nope"}, context)

    assert result == {"error": "Failed to execute get_company_details: Company not found: nope"}


def _operations(records: FakeRecords) -> ToolDispatcher:
    return _dispatcher(build_operations_tools(ToolDeps(records, ScriptedCompletionClient([]))))  # type: ignore[arg-type]


async def test_lead_metrics_group_by_source(context: ToolContext) -> None:
    records = FakeRecords({
        "leads": [{"source": "website"}, {"source": "website"}, {"source": None}],
        "blog_posts": [{"id": "p1"}, {"id": "p2"}],
    })

    metrics = await _run(_operations(records), "get_lead_metrics", {}, context)

    assert metrics == {
        "total_leads": 3,
        "leads_last_7_days": 3,
        "blog_posts": 2,
        "leads_by_source": [{"source": "website", "count": 2}, {"source": "unknown", "count": 1}],
    }
    week_ago = (date.today() - timedelta(days=7)).isoformat()
    recent_query = {"filters": {"created_at": f"gte.{week_ago}"}, "columns": "id", "limit": 1, "count": True}
    assert ("leads", recent_query) in records.selects


async def test_lead_total_survives_the_row_cap(context: ToolContext) -> None:
    leads = [{"source": "website"}] * 5 + [{"source": "referral"}] * 3
    records = FakeRecords({"leads": leads}, max_rows=4)

    metrics = await _run(_operations(records), "get_lead_metrics", {}, context)

    assert metrics["total_leads"] == 8
    assert metrics["breakdown_rows"] == 4


async def test_briefing_dates_are_distinct_and_recent(context: ToolContext) -> None:
    days = [f"2025-03-{d:02d}" for d in range(20, 0, -1)]
    records = FakeRecords({"briefings": [{"briefing_date": d} for d in days for _ in range(2)]})

    result = await _run(_operations(records), "get_briefing_dates", {}, context)

    assert result == {"dates": days[:14], "total": 14}
    _, query = records.selects[0]
    assert query["order"] == "briefing_date.desc"


async def test_news_digest_for_a_day(context: ToolContext) -> None:
    digest = {"topics": ["fintech", "retail"], "content": "Two stories."}
    with_digest = _operations(FakeRecords({"news_digests": [digest]}))

    available = await _run(with_digest, "get_news", {"date": "2025-03-01"}, context)
    missing = await _run(_operations(FakeRecords()), "get_news", {}, context)

    assert available == {"date": "2025-03-01", "available": True, **digest}
    assert missing == {"date": date.today().isoformat(), "available": False}


async def test_company_stats(context: ToolContext) -> None:
    companies = [
        {"source": "yep", "province": "Gauteng"},
        {"source": "yep", "province": "Western Cape"},
        {"source": None, "province": "Gauteng"},
    ]
    records = FakeRecords({"companies": companies})

    stats = await _run(_operations(records), "get_company_stats", {}, context)

    assert stats["total"] == 3
    assert stats["by_source"] == {"yep": 2, "unknown": 1}
    assert stats["by_province"] == {"Gauteng": 2, "Western Cape": 1}
    assert set(stats["coverage"]) == {"with_phone", "with_email", "with_website", "with_gps"}
    coverage_filters = [q["filters"] for t, q in records.selects if q.get("limit") == 1]
    assert {"phone": "not.is.null"} in coverage_filters
    assert "breakdown_rows" not in stats


# -----------------------------
# marketing
# -----------------------------
def test_extract_page_summary() -> None:
    html = (
        "<html><head><title> Acme Bakery </title>"
        '<meta name="description" content="Fresh bread daily"></head>'
        "<body><h1>Welcome <b>home</b></h1><h1>Bread</h1><h1>Cakes</h1><h1>Extra</h1></body></html>"
    )

    summary = extract_page_summary(html)

    assert summary["title"] == "Acme Bakery"
    assert summary["description"] == "Fresh bread daily"
    assert summary["h1_tags"] == ["Welcome home", "Bread", "Cakes"]
    assert summary["html_length"] == len(html)


async def test_marketing_queries_are_tenant_scoped(context: ToolContext) -> None:
    records = FakeRecords({"campaigns": [{"id": "k1", "name": "Spring", "status": "active"}]})
    dispatcher = _dispatcher(build_marketing_tools(ToolDeps(records, ScriptedCompletionClient([]))))  # type: ignore[arg-type]

    result = await _run(dispatcher, "get_campaigns", {"status": "active"}, context)

    assert result["count"] == 1
    _, query = records.selects[0]
    assert query["filters"] == {"tenant_id": "eq.tenant-1", "status": "eq.active"}


async def test_platform_status_covers_every_platform(context: ToolContext) -> None:
    records = FakeRecords({"platform_connections": [{"platform": "meta", "status": "connected", "account_name": "Acme"}]})
    dispatcher = _dispatcher(build_marketing_tools(ToolDeps(records, ScriptedCompletionClient([]))))  # type: ignore[arg-type]

    result = await _run(dispatcher, "get_platform_status", {}, context)

    statuses = {p["platform"]: p["status"] for p in result["platforms"]}
    assert statuses == {
        "meta": "connected",
        "google": "disconnected",
        "linkedin": "disconnected",
        "tiktok": "disconnected",
        "x": "disconnected",
    }


async def test_create_campaign_draft_inserts_for_tenant(context: ToolContext) -> None:
    records = FakeRecords()
    dispatcher = _dispatcher(build_marketing_tools(ToolDeps(records, ScriptedCompletionClient([]))))  # type: ignore[arg-type]

    result = await _run(dispatcher, "create_campaign_draft", {"name": "Launch", "platform": "google"}, context)

    assert result["success"] is True
    table, row = records.inserts[0]
    assert table == "campaigns"
    assert row["tenant_id"] == "tenant-1"
    assert row["status"] == "draft"
    assert row["objective"] == "awareness"


async def test_create_campaign_draft_rejects_unknown_platform(context: ToolContext) -> None:
    records = FakeRecords()
    dispatcher = _dispatcher(build_marketing_tools(ToolDeps(records, ScriptedCompletionClient([]))))  # type: ignore[arg-type]

    result = await _run(dispatcher, "create_campaign_draft", {"name": "Launch", "platform": "myspace"}, context)

    assert "Invalid arguments" in result["error"]
    assert records.inserts == []


async def test_analyze_website_reports_fetch_errors(context: ToolContext, monkeypatch: pytest.MonkeyPatch) -> None:
    def refuse(url: str) -> str:
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(marketing, "_fetch_page", refuse)
    dispatcher = _dispatcher(build_marketing_tools(ToolDeps(FakeRecords(), ScriptedCompletionClient([]))))  # type: ignore[arg-type]

    result = await _run(dispatcher, "analyze_website", {"url": "https://acme.test"}, context)

    assert result == {"error": "Could not fetch: connection refused"}


async def test_marketing_profile_is_best_effort() -> None:
    class PartlyBroken(FakeRecords):
        async def aselect(self, table: str, **kwargs: Any) -> tuple[list[dict[str, Any]], int | None]:
            if table == "competitors":
                raise RecordsError("down")
            return await super().aselect(table, **kwargs)

    records = PartlyBroken({
        "tenants": [{"name": "Acme", "website_url": "https://acme.test", "settings": {"industry": "retail"}}],
        "marketing_audits": [
            {"status": "running"},
            {"status": "complete", "report": {"ad_readiness_score": 72}},
        ],
        "platform_connections": [{"status": "connected"}, {"status": "expired"}],
        "campaigns": [{"status": "active"}, {"status": "draft"}],
    })

    profile = await load_marketing_profile(records, "tenant-1")  # type: ignore[arg-type]

    assert profile == {
        "company_name": "Acme",
        "website": "https://acme.test",
        "industry": "retail",
        "has_audit": True,
        "audit_score": 72,
        "connected_platforms": 1,
        "active_campaigns": 1,
        "competitor_count": 0,
    }
