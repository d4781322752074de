import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ChatRequest:
    message: str
    tenant_id: str
    user_id: str
    session_id: str | None = None


def parse_body(event: dict[str, Any]) -> dict[str, Any]:
    """
    Parse the JSON body of an event.

    An empty body reads as {}.

    Raises:
        ValueError: If the body is not a JSON object.
    """
    body_raw = event.get("body") or ""
    # API gateways send the body as a string but FastAPI sends bytes
    assert isinstance(body_raw, str | bytes)
    if isinstance(body_raw, bytes):
        body_raw = body_raw.decode("utf-8")
    if not body_raw.strip():
        return {}
    try:
        body_json = json.loads(body_raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Request body is not valid JSON: {e.msg}") from e

    if not isinstance(body_json, dict):
        raise ValueError("Request body must be a JSON object")
    return body_json


def _text(data: dict[str, Any], name: str) -> str:
    value = data.get(name)
    return value.strip() if isinstance(value, str) else ""


def process_chat_event(event: dict[str, Any]) -> ChatRequest:
    """
    Validate a chat turn request.

    Raises:
        ValueError: If message, tenant_id or user_id is missing or blank.
    """
    body_json = parse_body(event)

    message = body_json.get("message")
    tenant_id = _text(body_json, "tenant_id")
    user_id = _text(body_json, "user_id")
    if not isinstance(message, str) or not message.strip() or not tenant_id or not user_id:
        raise ValueError("message, tenant_id, and user_id are required")

    return ChatRequest(
        message=message,
        tenant_id=tenant_id,
        user_id=user_id,
        session_id=_text(body_json, "session_id") or None,
    )


def process_scope(event: dict[str, Any], *, from_body: bool = False) -> tuple[str, str]:
    """
    Extract the (tenant_id, user_id) scope of a session request.

    Query parameters are used unless `from_body` is set.

    Raises:
        ValueError: If either id is missing.
    """
    source = parse_body(event) if from_body else (event.get("queryStringParameters") or {})
    tenant_id = _text(source, "tenant_id")
    user_id = _text(source, "user_id")
    if not tenant_id or not user_id:
        raise ValueError("tenant_id and user_id are required")
    return tenant_id, user_id
