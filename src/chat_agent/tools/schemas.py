WEB_SEARCH = {
    "name": "web_search",
    "description": (
        "Search the internet for real-time information about business news, industry trends, "
        "company research, or any other topic. Use this when the user asks about current "
        "events, news, or information not in the database."
    ),
    "input_schema": {
        "type": "object",
        "required": ["query"],
        "properties": {
            "query": {"type": "string", "description": "The search query."},
        },
    },
}

OPERATIONS = {
    "get_briefings": {
        "name": "get_briefings",
        "description": (
            "Get outreach briefings for a specific date. Returns company names, opportunity "
            "types, email subjects and statuses (pending/reviewed/sent/skipped)."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "date": {
                    "type": "string",
                    "description": "Date in YYYY-MM-DD format. Defaults to today.",
                },
                "status": {
                    "type": "string",
                    "enum": ["pending", "reviewed", "sent", "skipped"],
                    "description": "Optional status filter.",
                },
            },
        },
    },
    "get_briefing_stats": {
        "name": "get_briefing_stats",
        "description": (
            "Get summary statistics for briefings on a given date: total, pending, reviewed, "
            "sent and skipped counts."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "date": {"type": "string", "description": "Date in YYYY-MM-DD format."},
            },
        },
    },
    "get_briefing_dates": {
        "name": "get_briefing_dates",
        "description": "List dates that have briefing data available. Returns up to 14 most recent dates.",
        "input_schema": {"type": "object", "properties": {}},
    },
    "get_news": {
        "name": "get_news",
        "description": (
            "Get the AI-generated news digest for a specific date. Returns curated tech, "
            "business, fintech and B2B news topics with the digest text."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "date": {"type": "string", "description": "Date in YYYY-MM-DD format. Defaults to today."},
            },
        },
    },
    "search_companies": {
        "name": "search_companies",
        "description": "Search the company database by name, email, phone, city, or province.",
        "input_schema": {
            "type": "object",
            "properties": {
                "search": {"type": "string", "description": "Free-text search term."},
                "city": {"type": "string", "description": "Filter by city."},
                "province": {"type": "string", "description": "Filter by province."},
                "limit": {"type": "integer", "description": "Max results (default 20, max 50)."},
            },
        },
    },
    "get_company_details": {
        "name": "get_company_details",
        "description": (
            "Get full details for a specific company by its ID. Use this when you already "
            "have a company ID and need more information."
        ),
        "input_schema": {
            "type": "object",
            "required": ["company_id"],
            "properties": {
                "company_id": {"type": "string", "description": "The company ID."},
            },
        },
    },
    "get_company_stats": {
        "name": "get_company_stats",
        "description": (
            "Get aggregate company database statistics: total count, counts by source and by "
            "province, and how many companies have a phone, email, website or GPS location."
        ),
        "input_schema": {"type": "object", "properties": {}},
    },
    "search_leads": {
        "name": "search_leads",
        "description": (
            "Search leads by name, email, or phone. Returns lead details with source, status, "
            "and creation date."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "search": {"type": "string", "description": "Free-text search term."},
                "source": {
                    "type": "string",
                    "description": "Filter by lead source (e.g. 'website', 'referral').",
                },
                "limit": {"type": "integer", "description": "Max results (default 20, max 50)."},
            },
        },
    },
    "get_lead_metrics": {
        "name": "get_lead_metrics",
        "description": (
            "Get lead and blog metrics: total leads, leads by source breakdown, leads created "
            "in the last 7 days and the blog post count."
        ),
        "input_schema": {"type": "object", "properties": {}},
    },
    "web_search": WEB_SEARCH,
}

MARKETING = {
    "get_audit_report": {
        "name": "get_audit_report",
        "description": (
            "Get the latest website audit report for the tenant. Returns brand summary, market "
            "positioning, ad readiness score, section analyses and recommendations."
        ),
        "input_schema": {"type": "object", "properties": {}},
    },
    "get_campaigns": {
        "name": "get_campaigns",
        "description": (
            "List the tenant's marketing campaigns. Returns campaign names, platforms, status, "
            "budget, and date range."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "status": {
                    "type": "string",
                    "enum": ["draft", "scheduled", "active", "paused", "completed"],
                    "description": "Optional filter by status.",
                },
            },
        },
    },
    "get_competitors": {
        "name": "get_competitors",
        "description": (
            "List tracked competitors and their analysis: names, websites, brand positioning, "
            "strengths and weaknesses."
        ),
        "input_schema": {"type": "object", "properties": {}},
    },
    "get_platform_status": {
        "name": "get_platform_status",
        "description": (
            "Get the connection status of all ad platforms (Meta, Google, LinkedIn, TikTok, X)."
        ),
        "input_schema": {"type": "object", "properties": {}},
    },
    "create_campaign_draft": {
        "name": "create_campaign_draft",
        "description": (
            "Create a new campaign draft with the given details. Use when the user wants to "
            "start a new campaign and has confirmed the details."
        ),
        "input_schema": {
            "type": "object",
            "required": ["name", "platform"],
            "properties": {
                "name": {"type": "string", "description": "Campaign name."},
                "platform": {
                    "type": "string",
                    "enum": ["meta", "google", "linkedin", "tiktok", "x"],
                    "description": "Target platform.",
                },
                "objective": {
                    "type": "string",
                    "description": "awareness, traffic, engagement, leads, or conversions.",
                },
                "budget": {"type": "number", "description": "Daily budget."},
            },
        },
    },
    "generate_ad_copy": {
        "name": "generate_ad_copy",
        "description": (
            "Get the brief for writing ad copy for a platform and goal. Use when the user asks "
            "to write or draft ad copy, then craft the copy yourself."
        ),
        "input_schema": {
            "type": "object",
            "required": ["platform", "goal"],
            "properties": {
                "platform": {"type": "string", "description": "meta, google, linkedin, tiktok, or x."},
                "goal": {"type": "string", "description": "Campaign goal or offer to promote."},
                "tone": {"type": "string", "description": "Desired tone. Default: professional."},
            },
        },
    },
    "get_marketing_tips": {
        "name": "get_marketing_tips",
        "description": (
            "Get context for marketing tips based on the tenant's industry, audit score and "
            "campaigns. Use when the user asks for advice or suggestions."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "topic": {
                    "type": "string",
                    "description": "seo, social_media, paid_ads, email, content, branding, conversion.",
                },
            },
        },
    },
    "analyze_website": {
        "name": "analyze_website",
        "description": (
            "Fetch any website URL and extract its title, description and headings for a "
            "marketing analysis."
        ),
        "input_schema": {
            "type": "object",
            "required": ["url"],
            "properties": {
                "url": {"type": "string", "description": "The full URL to analyze."},
            },
        },
    },
}
