"""Decode backend responses into a uniform sequence of text chunks.

The backend answers in one of two encodings:

* an event stream, where every ``message_part`` frame carries one chunk;
* a single JSON document carrying the complete answer, which is split into
  space-suffixed words so callers see the same growing-prefix behaviour.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Callable

import httpx

from chatrelay.core.config import (
    CHUNK_EVENT_NAME,
    CHUNK_TEXT_FIELD,
    EVENT_STREAM_CONTENT_TYPE,
    FULL_RESPONSE_FIELD,
)
from chatrelay.core.exceptions import DecodeError

logger = logging.getLogger(__name__)

ChunkDecoder = Callable[[httpx.Response], AsyncIterator[str]]

_EVENT_FIELD = "event:"
_DATA_FIELD = "data:"


def is_event_stream(content_type: str | None) -> bool:
    """Return True when a Content-Type header declares an event stream."""
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == EVENT_STREAM_CONTENT_TYPE


def _field_value(line: str, field_name: str) -> str:
    value = line[len(field_name) :]
    # A single space after the colon is part of the framing, not the value.
    return value.removeprefix(" ")


def parse_chunk_payload(payload: str) -> str:
    """Extract the chunk text from one ``message_part`` data payload."""
    try:
        decoded = json.loads(payload)
    except json.JSONDecodeError as exc:
        message = f"Invalid chunk payload: {payload[:80]!r}"
        raise DecodeError(message) from exc

    if not isinstance(decoded, dict):
        message = f"Chunk payload is not an object: {payload[:80]!r}"
        raise DecodeError(message)

    text = decoded.get(CHUNK_TEXT_FIELD, "")
    if not isinstance(text, str):
        message = f"'{CHUNK_TEXT_FIELD}' is not a string: {text!r}"
        raise DecodeError(message)
    return text


async def decode_event_stream(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield chunk texts from event-stream lines.

    Frames with any event name other than ``message_part`` are ignored, as
    are data payloads that fail to decode.
    """
    current_event = ""
    async for raw_line in lines:
        line = raw_line.rstrip("\r")
        if not line:
            current_event = ""
            continue

        if line.startswith(_EVENT_FIELD):
            current_event = _field_value(line, _EVENT_FIELD).strip()
            continue

        if not line.startswith(_DATA_FIELD):
            continue

        if current_event != CHUNK_EVENT_NAME:
            continue

        try:
            text = parse_chunk_payload(_field_value(line, _DATA_FIELD))
        except DecodeError as exc:
            logger.debug("Skipping malformed frame: %s", exc)
            continue

        if text:
            yield text


def split_full_response(body: bytes | str) -> list[str]:
    """Split a complete JSON response into space-suffixed word chunks."""
    try:
        decoded = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        message = "Response body is not valid JSON"
        raise DecodeError(message) from exc

    if not isinstance(decoded, dict):
        message = "Response body is not a JSON object"
        raise DecodeError(message)

    full_text = decoded.get(FULL_RESPONSE_FIELD, "")
    if not isinstance(full_text, str):
        message = f"'{FULL_RESPONSE_FIELD}' is not a string"
        raise DecodeError(message)

    return [f"{word} " for word in full_text.split()]


async def decode_stream_response(response: httpx.Response) -> AsyncIterator[str]:
    """Chunk decoder for event-stream responses."""
    async for chunk in decode_event_stream(response.aiter_lines()):
        yield chunk


async def decode_batch_response(response: httpx.Response) -> AsyncIterator[str]:
    """Chunk decoder for single-document responses."""
    body = await response.aread()
    try:
        words = split_full_response(body)
    except DecodeError as exc:
        logger.warning("Discarding undecodable backend response: %s", exc)
        return

    for word in words:
        yield word


def select_decoder(content_type: str | None) -> ChunkDecoder:
    """Pick the chunk decoder for a response's declared content type."""
    if is_event_stream(content_type):
        return decode_stream_response
    return decode_batch_response
