#!/usr/bin/env python3
"""
HTTP-facing operations of the chat agent.

Each `process_*` function takes a gateway-style event and returns a
gateway-style response dict. A streaming response carries an async iterator
of SSE lines as its body.
"""

import json
from typing import Any

from chat_agent.app.config import (
    MEMORY_STORE_URL,
    REDIS_NAMESPACE,
    AgentSettings,
    generate_session_id,
    get_settings,
)
from chat_agent.app.logging import log_chat_request, log_turn_result
from chat_agent.app.process_event import parse_body, process_chat_event, process_scope
from chat_agent.infrastructure.data_models import (
    CompletionServiceError,
    MessageStoreError,
    SessionKey,
)
from chat_agent.infrastructure.openai_chat_manager import OpenAIChat
from chat_agent.infrastructure.platform_manager import create_logger
from chat_agent.infrastructure.records_client import RecordsClient
from chat_agent.infrastructure.redis_manager import build_redis_manager
from chat_agent.services import session_service
from chat_agent.services.chat_service import ChatService, UnknownAssistantError
from chat_agent.services.message_log import InMemoryMessageStore, MessageStore
from chat_agent.services.streaming_relay import SSE_HEADERS, stream_sse

LOGGER_NAME = "chat_agent"
SSE_CONTENT_TYPE = "text/event-stream"

logger = create_logger(logger_name=LOGGER_NAME)

_service: ChatService | None = None


def create_response(
    status_code: int,
    body: Any,
    content_type: str = "application/json",
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    """
    Create a standard HTTP response.
    """
    if content_type == "application/json" and not isinstance(body, str):
        body = json.dumps(body)
    return {
        "statusCode": status_code,
        "body": body,
        "headers": {"Content-Type": content_type, **(headers or {})},
        "isBase64Encoded": False,
    }


def error_response(status_code: int, message: str) -> dict[str, Any]:
    return create_response(status_code, {"error": message})


def build_store(settings: AgentSettings) -> MessageStore:
    if settings.redis_url == MEMORY_STORE_URL:
        logger.warning("Using the in-memory message store; sessions do not survive a restart")
        return InMemoryMessageStore()
    return build_redis_manager(settings.redis_url, namespace=REDIS_NAMESPACE)


def build_chat_service(settings: AgentSettings | None = None) -> ChatService:
    """Wire the chat service from configuration."""
    settings = settings or get_settings()
    create_logger(settings.log_level, LOGGER_NAME, settings.logs_dir)

    completion = OpenAIChat(
        api_key=settings.completion_api_key,
        model=settings.completion_model,
        base_url=settings.completion_base_url,
        timeout=settings.completion_timeout,
        max_attempts=settings.max_attempts,
    )
    records = RecordsClient(settings.records_api_url, settings.records_api_key, timeout=settings.tool_timeout)
    return ChatService(
        build_store(settings),
        completion,
        records,
        max_rounds=settings.max_rounds,
        tool_timeout=settings.tool_timeout,
        search_timeout=completion.budget_seconds,
        parallel_tool_calls=settings.parallel_tool_calls,
        relay_chunk_size=settings.relay_chunk_size,
    )


def get_chat_service() -> ChatService:
    global _service
    if _service is None:
        _service = build_chat_service()
    return _service


async def process_chat(event: dict[str, Any], assistant_name: str, service: ChatService) -> dict[str, Any]:
    """
    Run one chat turn and stream the answer back as server-sent events.

    The stream only starts once the turn has finished; failures are plain
    JSON error responses.
    """
    try:
        request = process_chat_event(event)
        service.get_assistant(assistant_name)
    except ValueError as e:
        return error_response(400, str(e))
    except UnknownAssistantError as e:
        return error_response(404, str(e))

    log_chat_request(request, assistant_name, logger)
    session_id = request.session_id or generate_session_id()
    key = SessionKey(request.tenant_id, request.user_id, session_id)

    try:
        result = await service.submit_turn(assistant_name, key, request.message)
    except CompletionServiceError as e:
        logger.error(f"Completion service failure: {e.reason}")
        return error_response(502, f"AI service error: {e.reason}")
    except MessageStoreError as e:
        logger.error(f"Message store failure: {e}")
        return error_response(500, "Message store unavailable")
    except Exception as e:
        logger.error(f"Unexpected error in chat turn: {type(e).__name__}: {e}")
        return error_response(500, "Internal Server Error")

    log_turn_result(result, logger)
    return create_response(
        200,
        stream_sse(result.text, service.relay_chunk_size),
        SSE_CONTENT_TYPE,
        {**SSE_HEADERS, "X-Session-ID": session_id},
    )


async def process_list_sessions(event: dict[str, Any], service: ChatService) -> dict[str, Any]:
    try:
        tenant_id, user_id = process_scope(event)
        sessions = await session_service.list_sessions(service.store, tenant_id, user_id)
    except ValueError as e:
        return error_response(400, str(e))
    except MessageStoreError as e:
        logger.error(f"Message store failure: {e}")
        return error_response(500, "Message store unavailable")
    return create_response(200, {"sessions": [s.to_dict() for s in sessions]})


async def process_create_session(event: dict[str, Any], service: ChatService) -> dict[str, Any]:
    try:
        tenant_id, user_id = process_scope(event, from_body=True)
        title = parse_body(event).get("title")
        info = await session_service.create_session(
            service.store, tenant_id, user_id, title if isinstance(title, str) and title.strip() else None
        )
    except ValueError as e:
        return error_response(400, str(e))
    except MessageStoreError as e:
        logger.error(f"Message store failure: {e}")
        return error_response(500, "Message store unavailable")
    return create_response(201, info.to_dict())


async def process_get_session(event: dict[str, Any], session_id: str, service: ChatService) -> dict[str, Any]:
    try:
        tenant_id, user_id = process_scope(event)
        session = await session_service.get_session_with_messages(
            service.store, SessionKey(tenant_id, user_id, session_id)
        )
    except ValueError as e:
        return error_response(400, str(e))
    except MessageStoreError as e:
        logger.error(f"Message store failure: {e}")
        return error_response(500, "Message store unavailable")
    if session is None:
        return error_response(404, f"Session not found: {session_id}")
    return create_response(200, session)


async def process_delete_session(event: dict[str, Any], session_id: str, service: ChatService) -> dict[str, Any]:
    try:
        tenant_id, user_id = process_scope(event)
        deleted = await session_service.delete_session(
            service.store, SessionKey(tenant_id, user_id, session_id)
        )
    except ValueError as e:
        return error_response(400, str(e))
    except MessageStoreError as e:
        logger.error(f"Message store failure: {e}")
        return error_response(500, "Message store unavailable")
    if not deleted:
        return error_response(404, f"Session not found: {session_id}")
    return create_response(200, {"deleted": True, "id": session_id})
