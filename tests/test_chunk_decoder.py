from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from chatrelay.core.exceptions import DecodeError
from chatrelay.services.backend.decoder import (
    decode_batch_response,
    decode_event_stream,
    decode_stream_response,
    is_event_stream,
    parse_chunk_payload,
    select_decoder,
    split_full_response,
)
from chatrelay.services.backend.mock_server import format_frame


async def _lines(*lines: str) -> AsyncIterator[str]:
    for line in lines:
        yield line


async def _collect(chunks: AsyncIterator[str]) -> list[str]:
    return [chunk async for chunk in chunks]


@pytest.mark.asyncio
async def test_event_stream_yields_message_part_chunks_in_order() -> None:
    chunks = await _collect(
        decode_event_stream(
            _lines(
                "id: 0",
                "event: message_part",
                'data: {"text_chunk": "Echo: "}',
                "",
                "id: 1",
                "event: message_part",
                'data: {"text_chunk": "hello "}',
                "",
            ),
        ),
    )

    assert chunks == ["Echo: ", "hello "]


@pytest.mark.asyncio
async def test_stream_end_frame_never_contributes_a_chunk() -> None:
    chunks = await _collect(
        decode_event_stream(
            _lines(
                "event: message_part",
                'data: {"text_chunk": "done "}',
                "",
                "id: done",
                "event: stream_end",
                'data: {"text_chunk": "sneaky", "status": "done"}',
                "",
            ),
        ),
    )

    assert chunks == ["done "]


@pytest.mark.asyncio
async def test_malformed_frame_is_skipped_and_decoding_continues() -> None:
    chunks = await _collect(
        decode_event_stream(
            _lines(
                "event: message_part",
                "data: {not json",
                "",
                "event: message_part",
                'data: ["a", "list"]',
                "",
                "event: message_part",
                'data: {"text_chunk": "after "}',
                "",
            ),
        ),
    )

    assert chunks == ["after "]


@pytest.mark.asyncio
async def test_event_name_resets_between_frames() -> None:
    chunks = await _collect(
        decode_event_stream(
            _lines(
                "event: message_part",
                "",
                'data: {"text_chunk": "orphan"}',
                "",
            ),
        ),
    )

    assert chunks == []


@pytest.mark.asyncio
async def test_empty_chunks_and_compact_fields_are_handled() -> None:
    chunks = await _collect(
        decode_event_stream(
            _lines(
                "event:message_part",
                'data:{"text_chunk": ""}',
                "",
                "event:message_part\r",
                'data:{"text_chunk": "tight "}\r',
                "\r",
            ),
        ),
    )

    assert chunks == ["tight "]


@pytest.mark.asyncio
async def test_frames_built_from_chunks_decode_back_to_the_same_chunks() -> None:
    original = ["Echo:", "hello "]
    payload = b"".join(
        format_frame("message_part", {"text_chunk": chunk}, frame_id=str(index))
        for index, chunk in enumerate(original)
    )

    chunks = await _collect(
        decode_event_stream(_lines(*payload.decode().split("\n"))),
    )

    assert chunks == original


def test_parse_chunk_payload_rejects_non_string_text() -> None:
    with pytest.raises(DecodeError):
        parse_chunk_payload('{"text_chunk": 42}')


def test_split_full_response_yields_space_suffixed_words() -> None:
    assert split_full_response(b'{"full_response": "Echo: hello"}') == [
        "Echo: ",
        "hello ",
    ]
    assert split_full_response('{"full_response": "  spaced\\n out\\twords "}') == [
        "spaced ",
        "out ",
        "words ",
    ]
    assert split_full_response(b'{"full_response": ""}') == []


@pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b'{"full_response": 3}'])
def test_split_full_response_rejects_malformed_bodies(body: bytes) -> None:
    with pytest.raises(DecodeError):
        split_full_response(body)


@pytest.mark.parametrize(
    ("content_type", "expected"),
    [
        ("text/event-stream", True),
        ("text/event-stream; charset=utf-8", True),
        ("Text/Event-Stream", True),
        ("application/json", False),
        ("text/plain", False),
        ("", False),
        (None, False),
    ],
)
def test_is_event_stream(content_type: str | None, expected: bool) -> None:
    assert is_event_stream(content_type) is expected


def test_select_decoder_branches_on_content_type() -> None:
    assert select_decoder("text/event-stream") is decode_stream_response
    assert select_decoder("application/json") is decode_batch_response
    assert select_decoder(None) is decode_batch_response
