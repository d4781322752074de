"""
The web_search tool.

Rather than querying a search API itself, the tool re-invokes the completion
service with search augmentation enabled and no tools, and hands the answer
text back as the tool result. The round controller sees an ordinary tool.
"""

from typing import Any

from chat_agent.infrastructure.data_models import (
    CompletionClient,
    FinalAnswer,
    Message,
    ServiceError,
    ToolContext,
    ToolFailure,
    ToolOutcome,
    ToolRequested,
    ToolSuccess,
)
from chat_agent.services.tool_registry import Tool, tool_from_schema
from chat_agent.tools.schemas import WEB_SEARCH

SEARCH_PROMPT = "Search the web and provide a concise summary about: {query}"
NO_RESULTS = "No results."


async def search_web(completion: CompletionClient, query: str) -> ToolOutcome:
    """Run one search-augmented completion call for `query`."""
    prompt = Message(role="user", content=SEARCH_PROMPT.format(query=query))
    outcome = await completion.complete([prompt], None, search=True)

    match outcome:
        case FinalAnswer(text=text) | ToolRequested(text=text):
            return ToolSuccess(text if text.strip() else NO_RESULTS)
        case ServiceError(reason=reason):
            return ToolFailure(f"Web search failed: {reason}")
    return ToolFailure("Web search failed")


def web_search_tool(completion: CompletionClient, timeout: float | None = None) -> Tool:
    async def handler(args: dict[str, Any], context: ToolContext) -> ToolOutcome:
        # Fall back to the user's own question when the model sends no query
        query = str(args.get("query") or "").strip() or context.user_text
        if not query:
            return ToolFailure("A search query is required")
        return await search_web(completion, query)

    return tool_from_schema(WEB_SEARCH, handler, timeout=timeout)
