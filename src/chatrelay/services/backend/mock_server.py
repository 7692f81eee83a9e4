"""Mock generative backend for local runs and integration tests.

It echoes the query back either as an event stream, one word per
``message_part`` frame, or as a single JSON document.
"""

import asyncio
import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from aiohttp import web

from chatrelay.core.config import (
    BACKEND_STREAM_PATH,
    CHUNK_EVENT_NAME,
    CHUNK_TEXT_FIELD,
    EVENT_STREAM_CONTENT_TYPE,
    FULL_RESPONSE_FIELD,
    STREAM_END_EVENT_NAME,
    SettingsError,
    load_config_or_empty,
)
from chatrelay.core.error_handling import configure_logging

logger = logging.getLogger(__name__)

MOCK_MODES = ("sse", "json")
DEFAULT_WORD_DELAY_SECONDS = 0.25
DEFAULT_MOCK_HOST = "127.0.0.1"
DEFAULT_MOCK_PORT = 8080

# The mock shares config.yaml with the relay but not its PORT/HOST variables.
MOCK_ENV_OVERRIDES = {
    "BACKEND_MODE": "backend_mode",
    "MOCK_BACKEND_HOST": "mock_backend_host",
    "MOCK_BACKEND_PORT": "mock_backend_port",
    "MOCK_WORD_DELAY_SECONDS": "mock_word_delay_seconds",
}


@dataclass(frozen=True, slots=True)
class MockBackendOptions:
    """Behaviour of the mock backend."""

    mode: str = "sse"
    word_delay_seconds: float = DEFAULT_WORD_DELAY_SECONDS


@dataclass(frozen=True, slots=True)
class MockServerSettings:
    """Where the standalone mock listens and how it answers."""

    options: MockBackendOptions
    host: str = DEFAULT_MOCK_HOST
    port: int = DEFAULT_MOCK_PORT


def load_mock_settings(
    config: Mapping[str, Any],
    environ: Mapping[str, str] | None = None,
) -> MockServerSettings:
    """Build mock settings from config.yaml keys plus environment overrides."""
    merged = dict(config)
    for env_name, key in MOCK_ENV_OVERRIDES.items():
        value = (os.environ if environ is None else environ).get(env_name)
        if value:
            merged[key] = value

    mode = str(merged.get("backend_mode") or "sse").strip().lower()
    if mode not in MOCK_MODES:
        message = f"'backend_mode' must be one of {MOCK_MODES}, got {mode!r}"
        raise SettingsError(message)

    raw_delay = merged.get("mock_word_delay_seconds")
    try:
        port = int(merged.get("mock_backend_port") or DEFAULT_MOCK_PORT)
        delay = (
            DEFAULT_WORD_DELAY_SECONDS if raw_delay in (None, "") else float(raw_delay)
        )
    except (TypeError, ValueError) as exc:
        message = "'mock_backend_port' and 'mock_word_delay_seconds' must be numbers"
        raise SettingsError(message) from exc
    if port <= 0 or delay < 0:
        message = "Mock backend port must be positive and word delay non-negative"
        raise SettingsError(message)

    return MockServerSettings(
        options=MockBackendOptions(mode=mode, word_delay_seconds=delay),
        host=str(merged.get("mock_backend_host") or DEFAULT_MOCK_HOST),
        port=port,
    )


def format_frame(event: str, data: dict[str, str], *, frame_id: str) -> bytes:
    """Serialize one event-stream frame."""
    return (
        f"id: {frame_id}\nevent: {event}\ndata: {json.dumps(data)}\n\n"
    ).encode()


def _echo(query: str) -> str:
    return f"Echo: {query}"


async def _stream_words(
    request: web.Request,
    full_text: str,
    options: MockBackendOptions,
) -> web.StreamResponse:
    response = web.StreamResponse(
        headers={"Content-Type": EVENT_STREAM_CONTENT_TYPE},
    )
    await response.prepare(request)

    for index, word in enumerate(full_text.split(" ")):
        await response.write(
            format_frame(
                CHUNK_EVENT_NAME,
                {CHUNK_TEXT_FIELD: f"{word} "},
                frame_id=str(index),
            ),
        )
        if options.word_delay_seconds > 0:
            await asyncio.sleep(options.word_delay_seconds)

    await response.write(
        format_frame(STREAM_END_EVENT_NAME, {"status": "done"}, frame_id="done"),
    )
    await response.write_eof()
    return response


def build_mock_app(options: MockBackendOptions | None = None) -> web.Application:
    """Create the mock backend application."""
    effective_options = options or MockBackendOptions()
    if effective_options.mode not in MOCK_MODES:
        message = f"Mock backend mode must be one of {MOCK_MODES}"
        raise ValueError(message)

    async def chat_stream(request: web.Request) -> web.StreamResponse:
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return web.Response(status=400, text="invalid JSON")
        if not isinstance(payload, dict):
            return web.Response(status=400, text="invalid JSON")

        full_text = _echo(str(payload.get("query", "")))
        if effective_options.mode == "sse":
            return await _stream_words(request, full_text, effective_options)
        return web.json_response({FULL_RESPONSE_FIELD: full_text})

    app = web.Application()
    app.add_routes([web.post(BACKEND_STREAM_PATH, chat_stream)])
    return app


async def start_mock_backend(
    *,
    host: str = "127.0.0.1",
    port: int = 0,
    options: MockBackendOptions | None = None,
) -> tuple[web.AppRunner, str]:
    """Start the mock backend and return its runner and base URL.

    Port ``0`` binds an ephemeral port.
    """
    runner = web.AppRunner(build_mock_app(options))
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    bound_host, bound_port = runner.addresses[0][:2]
    base_url = f"http://{bound_host}:{bound_port}"
    logger.info(
        "Mock backend listening on %s (mode=%s)",
        base_url,
        (options or MockBackendOptions()).mode,
    )
    return runner, base_url


def main() -> None:
    """Run the mock backend until interrupted."""
    configure_logging()
    settings = load_mock_settings(load_config_or_empty())
    web.run_app(
        build_mock_app(settings.options),
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    main()
