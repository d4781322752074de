from typing import Any

import pytest

from chat_agent.infrastructure.data_models import (
    CompletionOutcome,
    FinalAnswer,
    Message,
    SessionKey,
    ToolCall,
    ToolContext,
    ToolRequested,
)
from chat_agent.services.message_log import InMemoryMessageStore, MessageLog


class ScriptedCompletionClient:
    """Completion client that replays a fixed list of outcomes and records every call."""

    def __init__(self, outcomes: list[CompletionOutcome]) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        *,
        search: bool = False,
    ) -> CompletionOutcome:
        self.calls.append({"messages": list(messages), "tools": tools, "search": search})
        if not self.outcomes:
            raise AssertionError("Completion client called more times than scripted")
        return self.outcomes.pop(0)


class FakeRecords:
    """
    In-process stand-in for the records API, keyed by table name.

    Filters are recorded but not applied. `max_rows` mimics the API's per-response
    row cap: rows are truncated while the exact count still reports every row.
    """

    def __init__(
        self, tables: dict[str, list[dict[str, Any]]] | None = None, max_rows: int | None = None
    ) -> None:
        self.tables = tables or {}
        self.max_rows = max_rows
        self.selects: list[tuple[str, dict[str, Any]]] = []
        self.inserts: list[tuple[str, dict[str, Any]]] = []

    async def aselect(self, table: str, **kwargs: Any) -> tuple[list[dict[str, Any]], int | None]:
        self.selects.append((table, kwargs))
        rows = list(self.tables.get(table, []))
        total = len(rows)
        for cap in (kwargs.get("limit"), self.max_rows):
            if cap is not None:
                rows = rows[:cap]
        return rows, (total if kwargs.get("count") else None)

    async def ainsert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        created = {"id": f"{table}-{len(self.inserts) + 1}", **row}
        self.inserts.append((table, row))
        self.tables.setdefault(table, []).append(created)
        return created


def tool_call(name: str, arguments: str = "{}", call_id: str | None = None) -> ToolCall:
    return ToolCall.from_raw(call_id or f"call_{name}", name, arguments)


def requested(*calls: ToolCall, text: str = "") -> ToolRequested:
    return ToolRequested(calls=tuple(calls), text=text)


def final(text: str) -> FinalAnswer:
    return FinalAnswer(text=text)


@pytest.fixture
def store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def session_key() -> SessionKey:
    return SessionKey("tenant-1", "user-1", "session-1")


@pytest.fixture
def context(session_key: SessionKey) -> ToolContext:
    return ToolContext(
        tenant_id=session_key.tenant_id,
        user_id=session_key.user_id,
        session_id=session_key.session_id,
        user_text="What happened today?",
    )


@pytest.fixture
async def log(store: InMemoryMessageStore, session_key: SessionKey) -> MessageLog:
    message_log = await MessageLog.load(store, session_key)
    await message_log.append(Message(role="user", content="What happened today?"))
    return message_log
