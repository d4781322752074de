"""
Tool catalogue for the operations (command-centre) assistant.

Lookups over briefings, companies and leads, plus web search.
"""

import asyncio
from collections import Counter
from datetime import date, timedelta
from typing import Any

from chat_agent.infrastructure.data_models import ToolContext
from chat_agent.infrastructure.records_client import RecordsClient
from chat_agent.services.tool_registry import Tool, ToolDeps, ToolError, tool_from_schema
from chat_agent.tools.schemas import OPERATIONS
from chat_agent.tools.web_search import web_search_tool

DEFAULT_LIMIT = 20
MAX_LIMIT = 50
BRIEFING_STATUSES = ("pending", "reviewed", "sent", "skipped")
BRIEFING_DATES_LIMIT = 14
DATE_SCAN_LIMIT = 1000
RECENT_LEAD_DAYS = 7
COVERAGE_COLUMNS = ("phone", "email", "website", "latitude")
COVERAGE_KEYS = ("with_phone", "with_email", "with_website", "with_gps")


def clamp_limit(value: Any, default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    """Result limit: `default` when unset or non-positive, never above `maximum`."""
    if not isinstance(value, int | float) or isinstance(value, bool) or value <= 0:
        return default
    return min(int(value), maximum)


def _ilike(term: str) -> str:
    # PostgREST wildcard; strip characters that would break the filter syntax
    cleaned = "".join(ch for ch in term if ch not in "(),*").strip()
    return f"*{cleaned}*"


def _search_filter(term: str | None, columns: tuple[str, ...]) -> dict[str, str]:
    if not term or not term.strip():
        return {}
    pattern = _ilike(term)
    return {"or": "(" + ",".join(f"{col}.ilike.{pattern}" for col in columns) + ")"}


def _today() -> str:
    return date.today().isoformat()


def build_operations_tools(deps: ToolDeps) -> list[Tool]:
    records: RecordsClient = deps.records

    async def get_briefings(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        day = args.get("date") or _today()
        filters = {"briefing_date": f"eq.{day}"}
        if args.get("status"):
            filters["status"] = f"eq.{args['status']}"
        rows, total = await records.aselect(
            "briefings", filters=filters, order="priority.asc", count=True
        )
        return {
            "date": day,
            "total": total if total is not None else len(rows),
            "briefings": [
                {
                    "id": b.get("id"),
                    "company_name": b.get("company_name"),
                    "company_id": b.get("company_id"),
                    "opportunity_type": b.get("opportunity_type"),
                    "opportunity_summary": b.get("opportunity_summary"),
                    "priority": b.get("priority"),
                    "status": b.get("status"),
                    "email_subject": b.get("email_draft_subject"),
                    "has_email": bool(b.get("email_draft_body")),
                    "has_call_script": bool(b.get("call_script")),
                    "created_at": b.get("created_at"),
                }
                for b in rows
            ],
        }

    async def get_briefing_stats(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        day = args.get("date") or _today()
        rows, _ = await records.aselect(
            "briefings", filters={"briefing_date": f"eq.{day}"}, columns="status"
        )
        counts = Counter(str(r.get("status")) for r in rows)
        return {
            "date": day,
            "total": len(rows),
            **{status: counts.get(status, 0) for status in BRIEFING_STATUSES},
        }

    async def search_companies(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        filters = _search_filter(args.get("search"), ("name", "email", "phone"))
        if args.get("city"):
            filters["city"] = f"ilike.{_ilike(args['city'])}"
        if args.get("province"):
            filters["province"] = f"ilike.{_ilike(args['province'])}"
        rows, total = await records.aselect(
            "companies",
            filters=filters,
            columns="id,name,category,city,province,phone,email,website",
            order="name.asc",
            limit=clamp_limit(args.get("limit")),
            count=True,
        )
        return {"total": total if total is not None else len(rows), "count": len(rows), "companies": rows}

    async def get_company_details(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        company_id = str(args["company_id"]).strip()
        rows, _ = await records.aselect("companies", filters={"id": f"eq.{company_id}"}, limit=1)
        if not rows:
            raise ToolError(f"Company not found: {company_id}")
        return rows[0]

    async def search_leads(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        filters = _search_filter(args.get("search"), ("name", "email", "phone"))
        if args.get("source"):
            filters["source"] = f"eq.{args['source']}"
        rows, total = await records.aselect(
            "leads",
            filters=filters,
            columns="id,name,email,phone,source,status,created_at",
            order="created_at.desc",
            limit=clamp_limit(args.get("limit")),
            count=True,
        )
        return {"total": total if total is not None else len(rows), "leads": rows}

    async def count(table: str, filters: dict[str, str] | None = None) -> int:
        rows, total = await records.aselect(table, filters=filters, columns="id", limit=1, count=True)
        return total if total is not None else len(rows)

    async def get_briefing_dates(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        rows, _ = await records.aselect(
            "briefings", columns="briefing_date", order="briefing_date.desc", limit=DATE_SCAN_LIMIT
        )
        # No DISTINCT over the records API; dedupe the ordered scan instead
        dates = list(dict.fromkeys(str(r["briefing_date"]) for r in rows if r.get("briefing_date")))
        dates = dates[:BRIEFING_DATES_LIMIT]
        return {"dates": dates, "total": len(dates)}

    async def get_news(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        day = args.get("date") or _today()
        rows, _ = await records.aselect(
            "news_digests", filters={"digest_date": f"eq.{day}"}, columns="topics,content", limit=1
        )
        if not rows:
            return {"date": day, "available": False}
        return {
            "date": day,
            "available": True,
            "topics": rows[0].get("topics"),
            "content": rows[0].get("content"),
        }

    async def get_company_stats(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        (rows, total), coverage = await asyncio.gather(
            records.aselect("companies", columns="source,province", count=True),
            asyncio.gather(*(count("companies", {column: "not.is.null"}) for column in COVERAGE_COLUMNS)),
        )
        total = total if total is not None else len(rows)
        stats: dict[str, Any] = {
            "total": total,
            "by_source": dict(Counter(str(r.get("source") or "unknown") for r in rows).most_common()),
            "by_province": dict(Counter(str(r.get("province") or "unknown") for r in rows).most_common()),
            "coverage": dict(zip(COVERAGE_KEYS, coverage, strict=True)),
        }
        if len(rows) < total:
            stats["breakdown_rows"] = len(rows)
        return stats

    async def get_lead_metrics(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        week_ago = (date.today() - timedelta(days=RECENT_LEAD_DAYS)).isoformat()
        (rows, total), recent, blog_posts = await asyncio.gather(
            records.aselect("leads", columns="source", count=True),
            count("leads", {"created_at": f"gte.{week_ago}"}),
            count("blog_posts"),
        )
        total = total if total is not None else len(rows)
        by_source = Counter(str(r.get("source") or "unknown") for r in rows)
        metrics: dict[str, Any] = {
            "total_leads": total,
            "leads_last_7_days": recent,
            "blog_posts": blog_posts,
            "leads_by_source": [
                {"source": source, "count": n} for source, n in by_source.most_common()
            ],
        }
        # The API caps rows per response; the source breakdown then covers a prefix only
        if len(rows) < total:
            metrics["breakdown_rows"] = len(rows)
        return metrics

    handlers = {
        "get_briefings": get_briefings,
        "get_briefing_stats": get_briefing_stats,
        "get_briefing_dates": get_briefing_dates,
        "get_news": get_news,
        "search_companies": search_companies,
        "get_company_details": get_company_details,
        "get_company_stats": get_company_stats,
        "search_leads": search_leads,
        "get_lead_metrics": get_lead_metrics,
    }
    tools = [tool_from_schema(OPERATIONS[name], handler) for name, handler in handlers.items()]
    tools.append(web_search_tool(deps.completion, timeout=deps.search_timeout))
    return tools
