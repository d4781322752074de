# HTTP server for the chat agent.
# uvicorn chat_agent.fast_api_server:app --reload --port 9000
import base64
from collections.abc import AsyncIterator
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from chat_agent.app import main
from chat_agent.services.chat_service import ChatService


def _process_response(gateway_resp: dict[str, Any]) -> Response:
    """Convert a gateway-style proxy response into a FastAPI Response."""
    status_code = gateway_resp.get("statusCode", 200)
    headers = dict(gateway_resp.get("headers", {}))
    content_type = headers.pop("Content-Type", "text/plain")
    body = gateway_resp.get("body", "")

    # Streamed bodies are async iterators of SSE lines
    if isinstance(body, AsyncIterator):
        return StreamingResponse(body, status_code=status_code, media_type=content_type, headers=headers)

    if gateway_resp.get("isBase64Encoded", False):
        body = base64.b64decode(body)

    # Handle dict content as JSON
    if isinstance(body, dict):
        return JSONResponse(content=body, status_code=status_code, headers=headers)

    return Response(content=body, status_code=status_code, media_type=content_type, headers=headers)


async def _build_event(request: Request) -> dict[str, Any]:
    """Convert a FastAPI request to a gateway-style event."""
    return {
        "body": await request.body(),
        "isBase64Encoded": False,
        "headers": dict(request.headers),
        "queryStringParameters": dict(request.query_params),
        "pathParameters": dict(request.path_params),
        "requestContext": {"http": {"method": request.method, "path": request.url.path}},
    }


def get_service() -> ChatService:
    return main.get_chat_service()


app = FastAPI(title="Chat Agent")


# --- session routes are declared before /chat/{assistant} so they are not captured by it ---
@app.get("/chat/sessions")
async def list_sessions(request: Request, service: ChatService = Depends(get_service)) -> Response:
    return _process_response(await main.process_list_sessions(await _build_event(request), service))


@app.post("/chat/sessions")
async def create_session(request: Request, service: ChatService = Depends(get_service)) -> Response:
    return _process_response(await main.process_create_session(await _build_event(request), service))


@app.get("/chat/sessions/{session_id}")
async def get_session(
    session_id: str, request: Request, service: ChatService = Depends(get_service)
) -> Response:
    return _process_response(await main.process_get_session(await _build_event(request), session_id, service))


@app.delete("/chat/sessions/{session_id}")
async def delete_session(
    session_id: str, request: Request, service: ChatService = Depends(get_service)
) -> Response:
    return _process_response(
        await main.process_delete_session(await _build_event(request), session_id, service)
    )


# --- route to call an assistant ---
@app.post("/chat/{assistant}")
async def chat(assistant: str, request: Request, service: ChatService = Depends(get_service)) -> Response:
    return _process_response(await main.process_chat(await _build_event(request), assistant, service))


@app.get("/healthz")
def healthz() -> dict[str, bool]:
    return {"ok": True}
