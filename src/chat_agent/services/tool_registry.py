from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from chat_agent.infrastructure.data_models import (
    ToolCall,
    ToolContext,
    ToolFailure,
    ToolOutcome,
    ToolResult,
    ToolSuccess,
)

if TYPE_CHECKING:
    from chat_agent.infrastructure.data_models import CompletionClient
    from chat_agent.infrastructure.records_client import RecordsClient

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any], ToolContext], Awaitable[Any]]

# Function names accepted by OpenAI-compatible tool calling
_TOOL_NAME = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class ToolError(Exception):
    """Raised by a handler to report a failure with a user-presentable message."""


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    parameters: dict[str, Any]
    handler: ToolHandler
    timeout: float | None = None  # None uses the dispatcher default


@dataclass(frozen=True)
class ToolDeps:
    """Collaborators handed to tool catalogue factories."""

    records: RecordsClient
    completion: CompletionClient
    search_timeout: float = 60.0


def tool_from_schema(schema: dict[str, Any], handler: ToolHandler, timeout: float | None = None) -> Tool:
    return Tool(
        name=schema["name"],
        description=schema.get("description", ""),
        parameters=schema.get("input_schema", {"type": "object", "properties": {}}),
        handler=handler,
        timeout=timeout,
    )


_JSON_TYPES: dict[str, Callable[[Any], bool]] = {
    "string": lambda v: isinstance(v, str),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "number": lambda v: isinstance(v, int | float) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "object": lambda v: isinstance(v, dict),
    "array": lambda v: isinstance(v, list),
    "null": lambda v: v is None,
}


def _has_json_type(value: Any, declared: Any) -> bool:
    # `declared` is a type name or a list of names; unknown names never match
    for name in declared if isinstance(declared, list) else [declared]:
        check = _JSON_TYPES.get(name) if isinstance(name, str) else None
        if check is not None and check(value):
            return True
    return False


def validate_args_against_schema(args: dict[str, Any], schema: dict[str, Any]) -> None:
    """
    Check model-supplied arguments against the JSON Schema subset tools declare.

    Covers `required`, `additionalProperties: false`, `enum` and `type`.

    Raises:
        ValueError: Naming the first offending argument.
    """
    properties = schema.get("properties")
    properties = properties if isinstance(properties, dict) else {}
    required = schema.get("required")
    required = required if isinstance(required, list) else []

    missing = [name for name in required if name not in args]
    if missing:
        raise ValueError(f"Missing required argument: {missing[0]}")

    if schema.get("additionalProperties") is False:
        extra = [name for name in args if name not in properties]
        if extra:
            raise ValueError(f"Unknown argument(s) not allowed: {', '.join(extra)}")

    for name, value in args.items():
        rule = properties.get(name)
        if not isinstance(rule, dict):
            continue
        allowed = rule.get("enum")
        if isinstance(allowed, list) and value not in allowed:
            raise ValueError(f"Argument '{name}' must be one of {allowed}")
        if "type" in rule and not _has_json_type(value, rule["type"]):
            raise ValueError(f"Argument '{name}' has wrong type; expected {rule['type']}")


class ToolRegistry:
    """Name -> Tool mapping plus the catalogue sent to the completion service."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if not _TOOL_NAME.match(tool.name):
            raise ValueError(f"Invalid tool name: {tool.name!r}")
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def catalogue(self) -> list[dict[str, Any]]:
        """
        Build the tool catalogue in chat-completions format.

        Example item:
          {
            "type": "function",
            "function": {
              "name": "search_companies",
              "description": "...",
              "parameters": { ... JSON Schema ... }
            }
          }
        """
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in self._tools.values()
        ]


def serialize_outcome(outcome: ToolOutcome) -> str:
    """Render a tool outcome as tool-message content. Text payloads pass through."""
    match outcome:
        case ToolSuccess(payload=str() as text):
            return text
        case ToolSuccess(payload=payload):
            return json.dumps(payload, default=str, ensure_ascii=False)
        case ToolFailure(reason=reason):
            return json.dumps({"error": reason}, ensure_ascii=False)


class ToolDispatcher:
    """
    Executes requested tool calls against a registry.

    Every call yields exactly one ToolResult: unknown tools, invalid arguments,
    handler exceptions and timeouts all become `{"error": ...}` payloads.
    """

    def __init__(self, registry: ToolRegistry, *, timeout: float = 15.0, parallel: bool = True) -> None:
        self.registry = registry
        self.timeout = timeout
        self.parallel = parallel

    async def execute(self, call: ToolCall, context: ToolContext) -> ToolOutcome:
        tool = self.registry.get(call.name)
        if tool is None:
            logger.warning(f"Unknown tool requested: {call.name}")
            return ToolFailure(f"Unknown tool: {call.name}")

        try:
            validate_args_against_schema(call.arguments, tool.parameters)
        except ValueError as e:
            logger.warning(f"Invalid arguments for {call.name}: {e}")
            return ToolFailure(f"Invalid arguments for {call.name}: {e}")

        timeout = tool.timeout if tool.timeout is not None else self.timeout
        logger.info(f"Tool call: {call.name} {call.arguments}")
        try:
            result = await asyncio.wait_for(tool.handler(call.arguments, context), timeout=timeout)
        except TimeoutError:
            logger.error(f"Tool {call.name} timed out after {timeout}s")
            return ToolFailure(f"Tool {call.name} timed out after {timeout:g}s")
        except Exception as e:
            logger.error(f"Tool {call.name} failed: {type(e).__name__}: {e}")
            return ToolFailure(f"Failed to execute {call.name}: {str(e) or type(e).__name__}")

        if isinstance(result, ToolSuccess | ToolFailure):
            return result
        return ToolSuccess(result)

    async def dispatch(self, call: ToolCall, context: ToolContext) -> ToolResult:
        outcome = await self.execute(call, context)
        return ToolResult(tool_call_id=call.id, content=serialize_outcome(outcome))

    async def dispatch_all(self, calls: Sequence[ToolCall], context: ToolContext) -> list[ToolResult]:
        """Dispatch a round's calls; results come back in call order."""
        if self.parallel and len(calls) > 1:
            return list(await asyncio.gather(*(self.dispatch(call, context) for call in calls)))
        return [await self.dispatch(call, context) for call in calls]
