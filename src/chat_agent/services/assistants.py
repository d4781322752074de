"""
Assistant definitions.

An assistant is a system prompt plus a tool catalogue; both run on the same
round controller.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from chat_agent.infrastructure.records_client import RecordsClient
from chat_agent.services.tool_registry import Tool, ToolDeps, ToolRegistry
from chat_agent.tools.marketing import build_marketing_tools, load_marketing_profile
from chat_agent.tools.operations import build_operations_tools

ProfileLoader = Callable[[RecordsClient, str], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class Assistant:
    name: str
    prompt_name: str
    tool_factory: Callable[[ToolDeps], list[Tool]]
    profile_loader: ProfileLoader | None = None

    def build_registry(self, deps: ToolDeps) -> ToolRegistry:
        return ToolRegistry(self.tool_factory(deps))


ASSISTANTS: dict[str, Assistant] = {
    "operations": Assistant(
        name="operations",
        prompt_name="operations",
        tool_factory=build_operations_tools,
    ),
    "marketing": Assistant(
        name="marketing",
        prompt_name="marketing",
        tool_factory=build_marketing_tools,
        profile_loader=load_marketing_profile,
    ),
}
