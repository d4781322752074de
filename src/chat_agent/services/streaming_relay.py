"""
Chunked delivery of a finished answer as server-sent events.

The relay is purely a pacing transformation: `relay(text)` yields content
events whose concatenation is exactly `text`, followed by a single DONE event.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Iterable, Iterator
from dataclasses import dataclass

DONE_MARKER = "[DONE]"
DEFAULT_CHUNK_SIZE = 30
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class IncompleteStreamError(ValueError):
    """The event stream ended before the DONE marker."""


@dataclass(frozen=True)
class RelayEvent:
    content: str = ""
    done: bool = False


def relay(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[RelayEvent]:
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    for start in range(0, len(text), chunk_size):
        yield RelayEvent(content=text[start : start + chunk_size])
    yield RelayEvent(done=True)


def encode_sse(event: RelayEvent) -> str:
    if event.done:
        return f"data: {DONE_MARKER}\n\n"
    return f"data: {json.dumps({'content': event.content})}\n\n"


async def stream_sse(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[str]:
    """
    Async SSE body for a streaming HTTP response.

    Yields control between chunks so a caller disconnect cancels the
    generator promptly.
    """
    for event in relay(text, chunk_size):
        yield encode_sse(event)
        await asyncio.sleep(0)


def decode_sse(lines: Iterable[str | bytes]) -> Iterator[RelayEvent]:
    """
    Decode an SSE line stream into relay events.

    Consumes `lines` lazily and stops after the DONE event. Comment lines and
    fields other than `data` are ignored; multi-line data fields are joined
    with newlines as the SSE format requires.

    Raises:
        IncompleteStreamError: If the stream ends before the DONE marker.
        ValueError: If a data payload is not a `{"content": str}` object.
    """
    data_lines: list[str] = []

    def flush() -> RelayEvent | None:
        if not data_lines:
            return None
        data = "\n".join(data_lines)
        data_lines.clear()
        if data == DONE_MARKER:
            return RelayEvent(done=True)
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed event payload: {data!r}") from e
        if not isinstance(payload, dict) or not isinstance(payload.get("content"), str):
            raise ValueError(f"Unexpected event payload: {data!r}")
        return RelayEvent(content=payload["content"])

    for raw in lines:
        line = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        line = line.rstrip("\r\n")

        if line == "":
            event = flush()
            if event is None:
                continue
            yield event
            if event.done:
                return
            continue

        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if field != "data":
            continue
        data_lines.append(value[1:] if value.startswith(" ") else value)

    # A final event without its trailing blank line still counts
    event = flush()
    if event is not None:
        yield event
        if event.done:
            return
    raise IncompleteStreamError(f"Stream ended before {DONE_MARKER}")
