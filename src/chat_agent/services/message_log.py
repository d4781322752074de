from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Protocol

from chat_agent.infrastructure.data_models import Message, SessionInfo, SessionKey


class MessageStore(Protocol):
    """Persistence boundary for conversation logs and session metadata."""

    async def append(self, key: SessionKey, *messages: Message) -> None: ...
    async def list(self, key: SessionKey) -> list[Message]: ...
    async def create_session(self, key: SessionKey, title: str | None = None) -> SessionInfo: ...
    async def get_session(self, key: SessionKey) -> SessionInfo | None: ...
    async def list_sessions(self, tenant_id: str, user_id: str) -> list[SessionInfo]: ...
    async def set_title(self, key: SessionKey, title: str) -> None: ...
    async def delete_session(self, key: SessionKey) -> bool: ...


class InMemoryMessageStore:
    """
    Process-local MessageStore for development and tests.

    A lock per session serializes writers on the same session; different
    sessions never contend.
    """

    def __init__(self) -> None:
        self._messages: dict[SessionKey, list[Message]] = defaultdict(list)
        self._sessions: dict[SessionKey, SessionInfo] = {}
        self._locks: dict[SessionKey, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _touch(self, key: SessionKey, title: str | None = None) -> SessionInfo:
        now = datetime.now(UTC).isoformat()
        current = self._sessions.get(key)
        info = SessionInfo(
            id=key.session_id,
            tenant_id=key.tenant_id,
            user_id=key.user_id,
            title=title if title is not None else (current.title if current else None),
            created_at=current.created_at if current else now,
            updated_at=now,
        )
        self._sessions[key] = info
        return info

    async def append(self, key: SessionKey, *messages: Message) -> None:
        if not messages:
            return
        async with self._locks[key]:
            self._messages[key].extend(messages)
            self._touch(key)

    async def list(self, key: SessionKey) -> list[Message]:
        async with self._locks[key]:
            return list(self._messages.get(key, ()))

    async def create_session(self, key: SessionKey, title: str | None = None) -> SessionInfo:
        async with self._locks[key]:
            return self._touch(key, title or None)

    async def get_session(self, key: SessionKey) -> SessionInfo | None:
        return self._sessions.get(key)

    async def list_sessions(self, tenant_id: str, user_id: str) -> list[SessionInfo]:
        sessions = [
            info
            for key, info in self._sessions.items()
            if key.tenant_id == tenant_id and key.user_id == user_id
        ]
        return sorted(sessions, key=lambda s: s.updated_at or "", reverse=True)

    async def set_title(self, key: SessionKey, title: str) -> None:
        async with self._locks[key]:
            self._touch(key, title)

    async def delete_session(self, key: SessionKey) -> bool:
        async with self._locks[key]:
            existed = key in self._sessions
            self._sessions.pop(key, None)
            self._messages.pop(key, None)
        self._locks.pop(key, None)
        return existed


def _check_batch(pending: Sequence[str], messages: Iterable[Message]) -> list[str]:
    """
    Track tool calls awaiting results across a batch of messages.

    Returns the ids still pending after the batch.

    Raises:
        ValueError: If a tool result does not answer the next pending call, or
            a new message arrives while calls are still unanswered.
    """
    waiting = list(pending)
    for message in messages:
        if message.role == "tool":
            if not waiting or waiting[0] != message.tool_call_id:
                raise ValueError(f"Unexpected tool result for call {message.tool_call_id}")
            waiting.pop(0)
            continue
        if waiting:
            raise ValueError(f"Tool calls left unanswered: {', '.join(waiting)}")
        if message.tool_calls:
            waiting = [call.id for call in message.tool_calls]
    return waiting


class MessageLog:
    """
    Append-only view of one session's conversation for a single invocation.

    Entries are written through to the store before they become visible here.
    An assistant message carrying tool calls must arrive in the same append as
    one tool result per call, in call order.
    """

    def __init__(self, store: MessageStore, key: SessionKey, history: Sequence[Message] = ()) -> None:
        self.store = store
        self.key = key
        self._messages: list[Message] = list(history)

    @classmethod
    async def load(cls, store: MessageStore, key: SessionKey) -> MessageLog:
        return cls(store, key, await store.list(key))

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    async def append(self, *messages: Message) -> None:
        if _check_batch((), messages):
            raise ValueError("Tool calls must be appended together with their results")
        await self.store.append(self.key, *messages)
        self._messages.extend(messages)

    def completion_messages(self, system_prompt: str | None = None) -> list[Message]:
        """Messages to send to the completion service, system prompt first."""
        prefix = [Message(role="system", content=system_prompt)] if system_prompt else []
        return prefix + self._messages

    def user_turn_count(self) -> int:
        return sum(1 for m in self._messages if m.role == "user")
