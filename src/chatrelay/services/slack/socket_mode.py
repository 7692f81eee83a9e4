"""Socket Mode ingress: receive Slack events over a persistent connection."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from slack_sdk.socket_mode.aiohttp import SocketModeClient
from slack_sdk.socket_mode.response import SocketModeResponse

from chatrelay.services.slack.events import AppMention, parse_event

if TYPE_CHECKING:
    from slack_sdk.socket_mode.request import SocketModeRequest
    from slack_sdk.web.async_client import AsyncWebClient

    from chatrelay.logic.dispatcher import Dispatcher

logger = logging.getLogger(__name__)

EVENTS_API_REQUEST = "events_api"


class SocketModeIngress:
    """Acknowledge Socket Mode envelopes and hand mentions to the dispatcher."""

    def __init__(
        self,
        *,
        app_token: str,
        web_client: AsyncWebClient,
        dispatcher: Dispatcher,
        client: SocketModeClient | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._client = client or SocketModeClient(
            app_token=app_token,
            web_client=web_client,
        )
        self._client.socket_mode_request_listeners.append(self.handle_request)
        self._tasks: set[asyncio.Task[object]] = set()

    async def handle_request(
        self,
        client: SocketModeClient,
        request: SocketModeRequest,
    ) -> None:
        """Ack the envelope first, then dispatch any mention it carries."""
        await client.send_socket_mode_response(
            SocketModeResponse(envelope_id=request.envelope_id),
        )
        if request.type != EVENTS_API_REQUEST:
            return

        event = parse_event(request.payload)
        if not isinstance(event, AppMention):
            return

        task = asyncio.create_task(
            self._dispatcher.dispatch(event),
            name="chatrelay-dispatch",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def connect(self) -> None:
        await self._client.connect()
        logger.info("Connected to Slack over Socket Mode")

    async def close(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._client.close()
