"""Wires the relay together and owns its long-lived resources."""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

from chatrelay.core.config import (
    HttpxClientOptions,
    RelaySettings,
    get_or_create_httpx_client,
)
from chatrelay.core.error_handling import log_exception
from chatrelay.core.exceptions import DeliveryError
from chatrelay.logic.dispatcher import Dispatcher
from chatrelay.logic.pipeline import RelayPipeline
from chatrelay.server import start_server
from chatrelay.services.backend import BackendClient
from chatrelay.services.slack import SlackPlatform
from chatrelay.services.slack.socket_mode import SocketModeIngress

if TYPE_CHECKING:
    from aiohttp.web import AppRunner

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _EntrypointState:
    httpx_client_holder: list[httpx.AsyncClient | None] = field(default_factory=list)
    platform: SlackPlatform | None = None
    pipeline: RelayPipeline | None = None
    server_runner: "AppRunner | None" = None
    socket_ingress: SocketModeIngress | None = None


_STATE = _EntrypointState()


async def _resolve_bot_user_id(platform: SlackPlatform) -> str | None:
    try:
        return await platform.resolve_bot_user_id()
    except DeliveryError as exc:
        log_exception(
            logger=logger,
            message="Could not resolve bot user id; mentions are stripped loosely",
            error=exc,
            traceback=False,
        )
        return None


async def shutdown() -> None:
    """Best-effort shutdown of long-lived resources.

    This is safe to call multiple times.
    """
    if _STATE.socket_ingress is not None:
        with contextlib.suppress(Exception):
            await _STATE.socket_ingress.close()
        _STATE.socket_ingress = None

    if _STATE.server_runner is not None:
        with contextlib.suppress(Exception):
            await _STATE.server_runner.cleanup()
        _STATE.server_runner = None

    if _STATE.pipeline is not None:
        with contextlib.suppress(Exception):
            await _STATE.pipeline.shutdown()
        _STATE.pipeline = None

    if _STATE.platform is not None:
        with contextlib.suppress(Exception):
            await _STATE.platform.aclose()
        _STATE.platform = None

    for client in _STATE.httpx_client_holder:
        if client is not None:
            with contextlib.suppress(Exception):
                await client.aclose()
    _STATE.httpx_client_holder.clear()


async def run(settings: RelaySettings) -> None:
    """Build the relay once, start its ingress, and serve until cancelled."""
    http_client = get_or_create_httpx_client(
        _STATE.httpx_client_holder,
        options=HttpxClientOptions(
            connect_timeout=settings.backend_connect_timeout_seconds,
            worker_pool_size=settings.worker_pool_size,
        ),
    )
    platform = SlackPlatform.from_token(settings.bot_token)
    _STATE.platform = platform

    bot_user_id = settings.bot_user_id or await _resolve_bot_user_id(platform)

    pipeline = RelayPipeline(
        platform=platform,
        backend=BackendClient(settings.backend_url, http_client=http_client),
        pool_size=settings.worker_pool_size,
        delivery_mode=settings.delivery_mode,
        post_delay_seconds=settings.post_delay_seconds,
    )
    _STATE.pipeline = pipeline
    pipeline.start()

    dispatcher = Dispatcher(
        platform,
        pipeline.enqueue,
        placeholder_text=settings.placeholder_text,
        bot_user_id=bot_user_id,
    )

    _STATE.server_runner = await start_server(settings, dispatcher)

    if settings.ingress == "socket" and settings.app_token:
        _STATE.socket_ingress = SocketModeIngress(
            app_token=settings.app_token,
            web_client=platform.web_client,
            dispatcher=dispatcher,
        )
        await _STATE.socket_ingress.connect()

    logger.info(
        "ChatRelay is running (ingress=%s). Press Ctrl+C to stop.",
        settings.ingress,
    )
    await asyncio.Event().wait()


async def main(settings: RelaySettings) -> None:
    """Run the relay, closing every connection on the way out."""
    try:
        await run(settings)
    finally:
        # Ctrl+C typically cancels the main task; shield shutdown so network
        # resources close before the event loop is closed.
        with contextlib.suppress(Exception):
            await asyncio.shield(shutdown())
        logger.info("Shutting down...")
