"""
Tool catalogue for the marketing assistant.

Every lookup is scoped to the caller's tenant via the ToolContext.
"""

import asyncio
import logging
import re
from typing import Any

import requests

from chat_agent.infrastructure.data_models import ToolContext, ToolFailure
from chat_agent.infrastructure.records_client import RecordsClient, RecordsError
from chat_agent.services.tool_registry import Tool, ToolDeps, tool_from_schema
from chat_agent.tools.schemas import MARKETING

logger = logging.getLogger(__name__)

PLATFORMS = ("meta", "google", "linkedin", "tiktok", "x")
FETCH_TIMEOUT = 10.0
USER_AGENT = "Mozilla/5.0 (compatible; ChatAgentBot/1.0)"

_TITLE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_DESCRIPTION = re.compile(
    r"<meta[^>]*name=[\"']description[\"'][^>]*content=[\"']([^\"']*)", re.IGNORECASE
)
_H1 = re.compile(r"<h1[^>]*>(.*?)</h1>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]+>")


def extract_page_summary(html: str) -> dict[str, Any]:
    """Title, meta description and the first three h1 headings of a page."""
    title = _TITLE.search(html)
    description = _DESCRIPTION.search(html)
    headings = [_TAG.sub("", m).strip() for m in _H1.findall(html)][:3]
    return {
        "title": title.group(1).strip() or None if title else None,
        "description": description.group(1).strip() or None if description else None,
        "h1_tags": headings,
        "html_length": len(html),
    }


def _fetch_page(url: str) -> str:
    resp = requests.get(
        url,
        headers={"User-Agent": USER_AGENT, "Accept": "text/html"},
        timeout=FETCH_TIMEOUT,
    )
    return resp.text


def _latest_complete_audit(audits: list[dict[str, Any]]) -> dict[str, Any] | None:
    return next((a for a in audits if a.get("status") == "complete" and a.get("report")), None)


async def load_marketing_profile(records: RecordsClient, tenant_id: str) -> dict[str, Any]:
    """
    Summarise the tenant for the marketing system prompt.

    Best-effort: any lookup that fails contributes its default instead.
    """
    scoped = {"tenant_id": f"eq.{tenant_id}"}

    async def rows(table: str, **kwargs: Any) -> list[dict[str, Any]]:
        try:
            found, _ = await records.aselect(table, **kwargs)
            return found
        except RecordsError as e:
            logger.warning(f"Profile lookup on {table} failed: {e}")
            return []

    tenants, audits, connections, campaigns, competitors = await asyncio.gather(
        rows("tenants", filters={"id": f"eq.{tenant_id}"}, limit=1),
        rows("marketing_audits", filters=scoped, order="created_at.desc"),
        rows("platform_connections", filters=scoped),
        rows("campaigns", filters=scoped),
        rows("competitors", filters=scoped),
    )

    tenant = tenants[0] if tenants else {}
    settings = tenant.get("settings") if isinstance(tenant.get("settings"), dict) else {}
    audit = _latest_complete_audit(audits)
    return {
        "company_name": tenant.get("name") or "Unknown",
        "website": tenant.get("website_url"),
        "industry": settings.get("industry"),
        "has_audit": audit is not None,
        "audit_score": (audit or {}).get("report", {}).get("ad_readiness_score"),
        "connected_platforms": sum(1 for c in connections if c.get("status") == "connected"),
        "active_campaigns": sum(1 for c in campaigns if c.get("status") == "active"),
        "competitor_count": len(competitors),
    }


def build_marketing_tools(deps: ToolDeps) -> list[Tool]:
    records: RecordsClient = deps.records

    def scoped(context: ToolContext) -> dict[str, str]:
        return {"tenant_id": f"eq.{context.tenant_id}"}

    async def get_audit_report(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        audits, _ = await records.aselect(
            "marketing_audits", filters=scoped(context), order="created_at.desc"
        )
        audit = _latest_complete_audit(audits)
        if audit is None:
            return {"message": "No completed audit found. Suggest running a website audit first."}
        report = audit["report"]
        return {
            "url": audit.get("url"),
            "score": report.get("ad_readiness_score"),
            "brand_summary": report.get("brand_summary"),
            "market_positioning": report.get("market_positioning"),
            "recommendations": report.get("recommendations"),
            "sections": [
                {
                    "title": s.get("title"),
                    "score": s.get("score") or 0,
                    "summary": (s.get("content") or "")[:200],
                }
                for s in report.get("sections") or []
            ],
        }

    async def get_campaigns(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        filters = scoped(context)
        if args.get("status"):
            filters["status"] = f"eq.{args['status']}"
        rows, _ = await records.aselect(
            "campaigns",
            filters=filters,
            columns="id,name,platform,status,objective,budget,start_date,end_date",
            order="created_at.desc",
        )
        return {"count": len(rows), "campaigns": rows}

    async def get_competitors(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        rows, _ = await records.aselect("competitors", filters=scoped(context))
        competitors = []
        for c in rows:
            analysis = c.get("ad_analysis")
            competitors.append({
                "id": c.get("id"),
                "name": c.get("name"),
                "website": c.get("website"),
                "analyzed": bool(analysis),
                "analysis_summary": {
                    "brand_positioning": analysis.get("brand_positioning"),
                    "strengths": analysis.get("strengths"),
                    "weaknesses": analysis.get("weaknesses"),
                }
                if isinstance(analysis, dict)
                else None,
                "last_analyzed_at": c.get("last_analyzed_at"),
            })
        return {"count": len(competitors), "competitors": competitors}

    async def get_platform_status(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        rows, _ = await records.aselect("platform_connections", filters=scoped(context))
        by_platform = {r.get("platform"): r for r in rows}
        return {
            "platforms": [
                {
                    "platform": p,
                    "status": (by_platform.get(p) or {}).get("status") or "disconnected",
                    "account_name": (by_platform.get(p) or {}).get("account_name"),
                }
                for p in PLATFORMS
            ]
        }

    async def create_campaign_draft(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        campaign = await records.ainsert(
            "campaigns",
            {
                "tenant_id": context.tenant_id,
                "name": args.get("name") or "Untitled Campaign",
                "platform": args.get("platform") or "meta",
                "objective": args.get("objective") or "awareness",
                "status": "draft",
                "budget": args.get("budget") or 0,
            },
        )
        logger.info(f"Created campaign draft {campaign.get('id')} for tenant {context.tenant_id}")
        return {
            "success": True,
            "campaign_id": campaign.get("id"),
            "name": campaign.get("name"),
            "message": f"Campaign \"{campaign.get('name')}\" created as draft.",
        }

    async def generate_ad_copy(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        platform = args.get("platform") or "meta"
        goal = args.get("goal") or "general promotion"
        tone = args.get("tone") or "professional"
        profile = context.profile
        return {
            "platform": platform,
            "goal": goal,
            "tone": tone,
            "instruction": (
                f'Generate {platform} ad copy for: "{goal}" in a {tone} tone. Include headline '
                "(max 40 chars), primary text (max 125 chars for Meta, 90 for Google), description, "
                f"and 3 CTA options. Consider the brand: {profile.get('company_name', 'Unknown')}, "
                f"industry: {profile.get('industry') or 'not specified'}."
            ),
        }

    async def get_marketing_tips(args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        topic = args.get("topic") or "general"
        profile = context.profile
        score = profile.get("audit_score")
        return {
            "topic": topic,
            "context": profile,
            "instruction": (
                f"Provide 5-7 specific, actionable {topic} marketing tips for a "
                f"{profile.get('industry') or 'business'} company named "
                f"\"{profile.get('company_name', 'Unknown')}\". Consider their audit score of "
                f"{score if score is not None else 'unknown'}/100, "
                f"{profile.get('connected_platforms', 0)} connected platforms, and "
                f"{profile.get('active_campaigns', 0)} active campaigns."
            ),
        }

    async def analyze_website(args: dict[str, Any], context: ToolContext) -> Any:
        url = str(args.get("url") or "").strip()
        if not url:
            return ToolFailure("URL is required")
        try:
            html = await asyncio.to_thread(_fetch_page, url)
        except requests.RequestException as e:
            return ToolFailure(f"Could not fetch: {e}")
        return {
            "url": url,
            **extract_page_summary(html),
            "instruction": (
                "Analyze this website's marketing positioning, strengths, and areas for "
                "improvement based on the extracted data."
            ),
        }

    handlers = {
        "get_audit_report": get_audit_report,
        "get_campaigns": get_campaigns,
        "get_competitors": get_competitors,
        "get_platform_status": get_platform_status,
        "create_campaign_draft": create_campaign_draft,
        "generate_ad_copy": generate_ad_copy,
        "get_marketing_tips": get_marketing_tips,
        "analyze_website": analyze_website,
    }
    return [tool_from_schema(MARKETING[name], handler) for name, handler in handlers.items()]
