from __future__ import annotations

import json
import time
from datetime import UTC, datetime
from typing import Any

from redis import RedisError
from redis.asyncio import Redis

from chat_agent.infrastructure.data_models import (
    Message,
    MessageStoreError,
    SessionInfo,
    SessionKey,
)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class RedisManager:
    """
    Redis-backed message log and session metadata store.

    Each session owns one Redis list of JSON-encoded messages (append-only),
    one hash of metadata (title, timestamps) and an entry in a per-tenant/user
    sorted set indexing sessions by last update.

    This class is designed for dependency injection: callers provide a configured
    async Redis client (e.g. via Redis.from_url) and optional key namespace.

    Args:
        redis_client (Redis): A configured redis.asyncio client instance.
        namespace (str): Key namespace/prefix for generated keys.
        session_ttl (int | None): Optional TTL in seconds applied to session keys
            on every write. None keeps sessions until deleted.

    Note:
        - Any Redis failure is raised as MessageStoreError; a store outage is
          fatal to the invocation that hit it.
    """

    def __init__(
        self,
        redis_client: Redis,
        *,
        namespace: str = "chat:agent",
        session_ttl: int | None = None,
    ) -> None:
        self._redis: Redis = redis_client
        self._namespace: str = namespace.rstrip(":")
        self._session_ttl: int | None = session_ttl

    # -----------------------------
    # Key helpers
    # -----------------------------
    def _scope(self, tenant_id: str, user_id: str) -> str:
        return f"{self._namespace}:{tenant_id}:{user_id}"

    def messages_key(self, key: SessionKey) -> str:
        return f"{self._scope(key.tenant_id, key.user_id)}:session:{key.session_id}:messages"

    def session_key(self, key: SessionKey) -> str:
        return f"{self._scope(key.tenant_id, key.user_id)}:session:{key.session_id}"

    def index_key(self, tenant_id: str, user_id: str) -> str:
        return f"{self._scope(tenant_id, user_id)}:sessions"

    # -----------------------------
    # Message log
    # -----------------------------
    async def append(self, key: SessionKey, *messages: Message) -> None:
        """
        Append messages to the session log in one transaction.

        Creates the session metadata on first write.

        Args:
            key (SessionKey): The session to append to.
            *messages (Message): Messages in log order.

        Raises:
            MessageStoreError: If Redis is unavailable.
        """
        if not messages:
            return
        now = _now_iso()
        encoded = [json.dumps(m.to_dict()) for m in messages]
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.rpush(self.messages_key(key), *encoded)
                pipe.hsetnx(self.session_key(key), "created_at", now)
                pipe.hset(self.session_key(key), "updated_at", now)
                pipe.zadd(self.index_key(key.tenant_id, key.user_id), {key.session_id: time.time()})
                if self._session_ttl is not None:
                    pipe.expire(self.messages_key(key), self._session_ttl)
                    pipe.expire(self.session_key(key), self._session_ttl)
                await pipe.execute()
        except RedisError as e:
            raise MessageStoreError(f"Message store unavailable: {e}") from e

    async def list(self, key: SessionKey) -> list[Message]:
        """
        Read every message of a session in insertion order.

        Raises:
            MessageStoreError: If Redis is unavailable.
        """
        try:
            raw_items = await self._redis.lrange(self.messages_key(key), 0, -1)
        except RedisError as e:
            raise MessageStoreError(f"Message store unavailable: {e}") from e
        return [Message.from_dict(json.loads(raw)) for raw in raw_items]

    # -----------------------------
    # Session metadata
    # -----------------------------
    async def create_session(self, key: SessionKey, title: str | None = None) -> SessionInfo:
        now = _now_iso()
        mapping: dict[str, Any] = {"created_at": now, "updated_at": now}
        if title:
            mapping["title"] = title
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.hset(self.session_key(key), mapping=mapping)
                pipe.zadd(self.index_key(key.tenant_id, key.user_id), {key.session_id: time.time()})
                await pipe.execute()
        except RedisError as e:
            raise MessageStoreError(f"Message store unavailable: {e}") from e
        return SessionInfo(
            id=key.session_id,
            tenant_id=key.tenant_id,
            user_id=key.user_id,
            title=title or None,
            created_at=now,
            updated_at=now,
        )

    async def get_session(self, key: SessionKey) -> SessionInfo | None:
        try:
            data = await self._redis.hgetall(self.session_key(key))
        except RedisError as e:
            raise MessageStoreError(f"Message store unavailable: {e}") from e
        if not data:
            return None
        return SessionInfo(
            id=key.session_id,
            tenant_id=key.tenant_id,
            user_id=key.user_id,
            title=data.get("title") or None,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    async def list_sessions(self, tenant_id: str, user_id: str) -> list[SessionInfo]:
        """List sessions for a tenant/user, most recently updated first."""
        try:
            session_ids = await self._redis.zrevrange(self.index_key(tenant_id, user_id), 0, -1)
        except RedisError as e:
            raise MessageStoreError(f"Message store unavailable: {e}") from e

        sessions: list[SessionInfo] = []
        for session_id in session_ids:
            info = await self.get_session(SessionKey(tenant_id, user_id, session_id))
            if info is not None:
                sessions.append(info)
        return sessions

    async def set_title(self, key: SessionKey, title: str) -> None:
        try:
            await self._redis.hset(self.session_key(key), "title", title)
        except RedisError as e:
            raise MessageStoreError(f"Message store unavailable: {e}") from e

    async def delete_session(self, key: SessionKey) -> bool:
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.delete(self.messages_key(key), self.session_key(key))
                pipe.zrem(self.index_key(key.tenant_id, key.user_id), key.session_id)
                deleted, _ = await pipe.execute()
        except RedisError as e:
            raise MessageStoreError(f"Message store unavailable: {e}") from e
        return bool(deleted)


def build_redis_manager(
    redis_url: str | None = None,
    *,
    redis_client: Redis | None = None,
    namespace: str = "chat:agent",
    session_ttl: int | None = None,
) -> RedisManager:
    """
    Factory to create a RedisManager with sensible defaults.

    You can provide either `redis_url` (preferred) and this function will initialize
    the client, or pass an existing `redis_client` (for tests/advanced use).

    Args:
        redis_url (str | None): Redis connection URL (e.g., "redis://:pwd@host:6379/0").
        redis_client (Redis | None): Pre-configured async Redis client instance.
        namespace (str): Key namespace/prefix for generated keys.
        session_ttl (int | None): Optional TTL for session keys.

    Returns:
        RedisManager: Configured manager instance.
    """
    if redis_client is None:
        if not redis_url:
            raise ValueError("Provide either redis_url or redis_client")
        redis_client = Redis.from_url(redis_url, decode_responses=True)

    return RedisManager(redis_client, namespace=namespace, session_ttl=session_ttl)
