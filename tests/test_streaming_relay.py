import pytest

from chat_agent.services.streaming_relay import (
    IncompleteStreamError,
    RelayEvent,
    decode_sse,
    encode_sse,
    relay,
    stream_sse,
)

ANSWER = "## Briefings\n- **3** pending\n- 1 sent \u2705 and a long tail of text to split up"


@pytest.mark.parametrize("chunk_size", [1, 7, 30, 1000])
def test_relay_chunks_concatenate_to_text(chunk_size: int) -> None:
    events = list(relay(ANSWER, chunk_size))

    assert events[-1] == RelayEvent(done=True)
    assert sum(e.done for e in events) == 1
    body = [e.content for e in events[:-1]]
    assert "".join(body) == ANSWER
    assert all(0 < len(c) <= chunk_size for c in body)


def test_relay_of_empty_text_is_just_done() -> None:
    assert list(relay("")) == [RelayEvent(done=True)]


def test_relay_rejects_non_positive_chunk_size() -> None:
    with pytest.raises(ValueError):
        list(relay("x", 0))


def test_encode_sse_frames() -> None:
    assert encode_sse(RelayEvent(content='say "hi"\n')) == 'data: {"content": "say \\"hi\\"\\n"}\n\n'
    assert encode_sse(RelayEvent(done=True)) == "data: [DONE]\n\n"


async def test_stream_sse_decodes_back_to_text() -> None:
    wire = "".join([line async for line in stream_sse(ANSWER, 9)])

    events = list(decode_sse(wire.splitlines(keepends=True)))

    assert events[-1].done
    assert "".join(e.content for e in events) == ANSWER


def test_decode_ignores_comments_and_other_fields() -> None:
    lines = [
        b": keep-alive\n",
        b"event: message\n",
        b'data: {"content": "Hel"}\n',
        b"\n",
        'data: {"content": "lo"}',
        "",
        "data: [DONE]",
        "",
        'data: {"content": "ignored after done"}',
    ]

    events = list(decode_sse(lines))

    assert [e.content for e in events if not e.done] == ["Hel", "lo"]
    assert events[-1].done


def test_decode_joins_multiline_data() -> None:
    lines = ['data: {"content":', 'data: "split"}', "", "data: [DONE]", ""]

    assert [e.content for e in decode_sse(lines)] == ["split", ""]


def test_decode_without_done_marker_is_incomplete() -> None:
    with pytest.raises(IncompleteStreamError):
        list(decode_sse(['data: {"content": "partial"}', ""]))


@pytest.mark.parametrize("payload", ["data: not-json", 'data: {"text": "x"}'])
def test_decode_rejects_malformed_payloads(payload: str) -> None:
    with pytest.raises(ValueError):
        list(decode_sse([payload, ""]))
