"""Turn inbound mentions into queued jobs."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from chatrelay.core.config import PLACEHOLDER_MESSAGE
from chatrelay.core.error_handling import log_exception
from chatrelay.core.exceptions import DeliveryError, PlaceholderError
from chatrelay.core.models import Job
from chatrelay.services.slack.events import AppMention, parse_app_mention_text

if TYPE_CHECKING:
    from chatrelay.services.slack.platform import ChatPlatform, PostedMessage

logger = logging.getLogger(__name__)

JobSink = Callable[[Job], Awaitable[None]]


class Dispatcher:
    """Entry point invoked once per detected mention, from any ingress."""

    def __init__(
        self,
        platform: ChatPlatform,
        enqueue: JobSink,
        *,
        placeholder_text: str = PLACEHOLDER_MESSAGE,
        bot_user_id: str | None = None,
    ) -> None:
        self._platform = platform
        self._enqueue = enqueue
        self._placeholder_text = placeholder_text
        self.bot_user_id = bot_user_id

    async def _post_placeholder(self, channel: str) -> PostedMessage:
        try:
            return await self._platform.post_message(channel, self._placeholder_text)
        except DeliveryError as exc:
            message = f"Could not post placeholder in {channel}"
            raise PlaceholderError(message) from exc

    async def dispatch(self, mention: AppMention) -> Job | None:
        """Post a placeholder for ``mention`` and queue its job.

        Returns the queued job, or ``None`` when the placeholder could not be
        posted. Blocks while the work queue is full.
        """
        query = parse_app_mention_text(
            mention.text,
            mention.bot_user_id or self.bot_user_id,
        )

        try:
            posted = await self._post_placeholder(mention.channel)
        except PlaceholderError as exc:
            log_exception(
                logger=logger,
                message="Dropping mention",
                error=exc,
                context={"channel": mention.channel, "user": mention.user},
                traceback=False,
            )
            return None

        logger.info("Posted placeholder in %s at %s", posted.channel, posted.ts)
        job = Job(channel=posted.channel, ts=posted.ts, user=mention.user, query=query)
        await self._enqueue(job)
        return job
