"""Chat-platform adapter over the Slack Web API."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

import aiohttp
from slack_sdk.errors import SlackClientError
from slack_sdk.web.async_client import AsyncWebClient

from chatrelay.core.exceptions import DeliveryError

logger = logging.getLogger(__name__)

SLACK_CALL_EXCEPTIONS = (
    SlackClientError,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    KeyError,
)


@dataclass(frozen=True, slots=True)
class PostedMessage:
    """Where a freshly posted message landed."""

    channel: str
    ts: str


class ChatPlatform(Protocol):
    """Capabilities the relay needs from the chat platform.

    Every call raises :class:`DeliveryError` on failure.
    """

    async def post_message(self, channel: str, text: str) -> PostedMessage: ...

    async def update_message(self, channel: str, ts: str, text: str) -> None: ...

    async def post_threaded_reply(self, channel: str, ts: str, text: str) -> None: ...


class SlackPlatform:
    """`ChatPlatform` backed by ``slack_sdk``'s async web client.

    The client is safe to share between the dispatcher and the poster.
    """

    def __init__(self, client: AsyncWebClient) -> None:
        self._client = client

    @classmethod
    def from_token(cls, bot_token: str) -> SlackPlatform:
        return cls(AsyncWebClient(token=bot_token))

    @property
    def web_client(self) -> AsyncWebClient:
        return self._client

    async def resolve_bot_user_id(self) -> str:
        """Return the bot's own user id via ``auth.test``."""
        try:
            response = await self._client.auth_test()
            return str(response["user_id"])
        except SLACK_CALL_EXCEPTIONS as exc:
            message = f"auth.test failed: {exc}"
            raise DeliveryError(message) from exc

    async def post_message(self, channel: str, text: str) -> PostedMessage:
        try:
            response = await self._client.chat_postMessage(channel=channel, text=text)
            return PostedMessage(
                channel=str(response["channel"]),
                ts=str(response["ts"]),
            )
        except SLACK_CALL_EXCEPTIONS as exc:
            message = f"chat.postMessage failed in {channel}: {exc}"
            raise DeliveryError(message) from exc

    async def update_message(self, channel: str, ts: str, text: str) -> None:
        try:
            await self._client.chat_update(channel=channel, ts=ts, text=text)
        except SLACK_CALL_EXCEPTIONS as exc:
            message = f"chat.update failed for {channel}/{ts}: {exc}"
            raise DeliveryError(message) from exc

    async def post_threaded_reply(self, channel: str, ts: str, text: str) -> None:
        try:
            await self._client.chat_postMessage(
                channel=channel,
                text=text,
                thread_ts=ts,
            )
        except SLACK_CALL_EXCEPTIONS as exc:
            message = f"threaded chat.postMessage failed for {channel}/{ts}: {exc}"
            raise DeliveryError(message) from exc

    async def aclose(self) -> None:
        """Close the web client's HTTP session when it owns one."""
        session = getattr(self._client, "session", None)
        if session is not None and not session.closed:
            await session.close()
