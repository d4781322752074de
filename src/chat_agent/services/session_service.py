import logging
from typing import Any

from chat_agent.app.config import SESSION_TITLE_MAX_LENGTH, generate_session_id
from chat_agent.infrastructure.data_models import MessageStoreError, SessionInfo, SessionKey
from chat_agent.services.message_log import MessageStore

logger = logging.getLogger(__name__)


def derive_title(message: str, max_length: int = SESSION_TITLE_MAX_LENGTH) -> str:
    """Session title from the first user message, truncated with an ellipsis."""
    text = message.strip()
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


async def set_title_best_effort(store: MessageStore, key: SessionKey, message: str) -> None:
    # A failed title update never fails the turn
    try:
        await store.set_title(key, derive_title(message))
    except MessageStoreError as e:
        logger.warning(f"Could not set title for session {key.session_id}: {e}")


async def create_session(
    store: MessageStore, tenant_id: str, user_id: str, title: str | None = None
) -> SessionInfo:
    key = SessionKey(tenant_id, user_id, generate_session_id())
    info = await store.create_session(key, title)
    logger.info(f"Created session {info.id}")
    return info


async def list_sessions(store: MessageStore, tenant_id: str, user_id: str) -> list[SessionInfo]:
    return await store.list_sessions(tenant_id, user_id)


async def get_session_with_messages(store: MessageStore, key: SessionKey) -> dict[str, Any] | None:
    """Session metadata plus its user-visible messages, or None if unknown."""
    info = await store.get_session(key)
    if info is None:
        return None
    messages = await store.list(key)
    return {
        **info.to_dict(),
        "messages": [
            {"role": m.role, "content": m.content}
            for m in messages
            if m.role in ("user", "assistant") and m.content and not m.tool_calls
        ],
    }


async def delete_session(store: MessageStore, key: SessionKey) -> bool:
    deleted = await store.delete_session(key)
    if deleted:
        logger.info(f"Deleted session {key.session_id}")
    return deleted
