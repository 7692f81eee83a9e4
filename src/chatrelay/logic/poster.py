"""Single writer that reflects update events in the conversation."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from chatrelay.core.config import EMPTY_RESPONSE_MESSAGE
from chatrelay.core.error_handling import COMMON_HANDLER_EXCEPTIONS, log_exception
from chatrelay.core.exceptions import DeliveryError
from chatrelay.core.models import DeliveryMode, UpdateEvent

if TYPE_CHECKING:
    from chatrelay.services.slack.platform import ChatPlatform

logger = logging.getLogger(__name__)

POSTER_EXCEPTIONS = (DeliveryError, *COMMON_HANDLER_EXCEPTIONS)


async def deliver_update(
    platform: ChatPlatform,
    event: UpdateEvent,
    *,
    mode: DeliveryMode,
) -> None:
    """Apply one update event using the configured delivery mode.

    An empty answer is rendered as ``EMPTY_RESPONSE_MESSAGE`` so the
    placeholder never stays on the thinking text.
    """
    text = event.text or EMPTY_RESPONSE_MESSAGE
    if mode is DeliveryMode.THREAD:
        await platform.post_threaded_reply(event.channel, event.ts, text)
        return
    await platform.update_message(event.channel, event.ts, text)


async def poster_loop(
    *,
    update_queue: asyncio.Queue[UpdateEvent],
    platform: ChatPlatform,
    mode: DeliveryMode,
    post_delay_seconds: float,
) -> None:
    """Drain ``update_queue`` forever, pausing after each event."""
    while True:
        event = await update_queue.get()
        try:
            await deliver_update(platform, event, mode=mode)
        except POSTER_EXCEPTIONS as exc:
            log_exception(
                logger=logger,
                message="Failed to deliver update",
                error=exc,
                context={
                    "channel": event.channel,
                    "ts": event.ts,
                    "final": event.final,
                    "mode": str(mode),
                },
                traceback=not isinstance(exc, DeliveryError),
            )
        finally:
            update_queue.task_done()
        await asyncio.sleep(post_delay_seconds)
