"""
Shared data models.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, cast

Role = Literal["system", "user", "assistant", "tool"]

_ROLES = ("system", "user", "assistant", "tool")


def parse_arguments(raw: str | None) -> dict[str, Any]:
    """
    Parse a tool call's JSON argument string.

    Malformed JSON, or JSON that is not an object, degrades to an empty dict.
    """
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return {}
    return cast(dict[str, Any], parsed) if isinstance(parsed, dict) else {}


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    raw_arguments: str = "{}"

    @classmethod
    def from_raw(cls, id: str, name: str, raw_arguments: str | None) -> ToolCall:
        # Some providers omit call ids; results still need something to link to
        return cls(
            id=id or f"call_{uuid.uuid4().hex[:24]}",
            name=name,
            arguments=parse_arguments(raw_arguments),
            raw_arguments=raw_arguments or "{}",
        )

    def to_dict(self) -> dict[str, Any]:
        """OpenAI chat-completions representation of the call."""
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.raw_arguments},
        }


@dataclass(frozen=True)
class Message:
    role: Role  # "system" | "user" | "assistant" | "tool"
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None

    def __post_init__(self) -> None:
        if self.role not in _ROLES:
            raise ValueError(f"Unknown message role: {self.role}")
        if self.tool_calls and self.role != "assistant":
            raise ValueError("Only assistant messages may carry tool_calls")
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("Tool messages require a tool_call_id")
        if self.role != "tool" and self.tool_call_id is not None:
            raise ValueError("Only tool messages may carry a tool_call_id")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the chat-completions wire format (also the stored format)."""
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        tool_calls = tuple(
            ToolCall.from_raw(
                id=str(item.get("id", "")),
                name=str(item.get("function", {}).get("name", "")),
                raw_arguments=item.get("function", {}).get("arguments"),
            )
            for item in data.get("tool_calls") or []
        )
        return cls(
            role=data["role"],
            content=data.get("content") or "",
            tool_calls=tool_calls,
            tool_call_id=data.get("tool_call_id"),
        )


@dataclass(frozen=True)
class ToolResult:
    tool_call_id: str
    content: str

    def to_message(self) -> Message:
        return Message(role="tool", content=self.content, tool_call_id=self.tool_call_id)


@dataclass(frozen=True)
class ToolContext:
    """Read-only context handed to every tool handler."""

    tenant_id: str
    user_id: str
    session_id: str
    user_text: str = ""
    profile: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SessionKey:
    """Identifies one conversation session within a tenant/user scope."""

    tenant_id: str
    user_id: str
    session_id: str


@dataclass(frozen=True)
class SessionInfo:
    id: str
    tenant_id: str
    user_id: str
    title: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "title": self.title,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


# -----------------------------
# Tool outcomes
# -----------------------------
@dataclass(frozen=True)
class ToolSuccess:
    payload: Any


@dataclass(frozen=True)
class ToolFailure:
    reason: str


ToolOutcome = ToolSuccess | ToolFailure


# -----------------------------
# Completion outcomes
# -----------------------------
@dataclass(frozen=True)
class FinalAnswer:
    text: str


@dataclass(frozen=True)
class ToolRequested:
    calls: tuple[ToolCall, ...]
    text: str = ""


@dataclass(frozen=True)
class ServiceError:
    reason: str
    status_code: int | None = None


CompletionOutcome = FinalAnswer | ToolRequested | ServiceError


# -----------------------------
# Fatal errors
# -----------------------------
class CompletionServiceError(RuntimeError):
    """The completion service failed and the turn cannot continue."""

    def __init__(self, reason: str, status_code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class MessageStoreError(RuntimeError):
    """The message store is unavailable."""


class CompletionClient(Protocol):
    """One request/response exchange with the completion service."""

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        *,
        search: bool = False,
    ) -> CompletionOutcome: ...
