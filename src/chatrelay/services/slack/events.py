"""Inbound Slack event parsing.

Both ingress transports hand raw payloads to :func:`parse_event`, which
reduces them to one of a small set of shapes decoded once at the boundary.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass

URL_VERIFICATION_TYPE = "url_verification"
EVENT_CALLBACK_TYPE = "event_callback"
APP_MENTION_TYPE = "app_mention"

_LEADING_MENTION_PATTERN = re.compile(r"^<@[^>\s]+>$")


@dataclass(frozen=True, slots=True)
class UrlVerification:
    """Endpoint ownership challenge sent once by Slack."""

    challenge: str


@dataclass(frozen=True, slots=True)
class AppMention:
    """A message that mentions the bot."""

    channel: str
    user: str
    text: str
    ts: str | None = None
    bot_user_id: str | None = None


@dataclass(frozen=True, slots=True)
class IgnoredEvent:
    """Any payload the relay does not act on."""

    reason: str


InboundEvent = UrlVerification | AppMention | IgnoredEvent


def _authorized_user_id(payload: Mapping[str, object]) -> str | None:
    authorizations = payload.get("authorizations")
    if not isinstance(authorizations, list) or not authorizations:
        return None
    first = authorizations[0]
    if not isinstance(first, Mapping):
        return None
    user_id = first.get("user_id")
    return user_id if isinstance(user_id, str) and user_id else None


def parse_event(payload: Mapping[str, object]) -> InboundEvent:
    """Classify a Slack Events API payload."""
    payload_type = payload.get("type")

    if payload_type == URL_VERIFICATION_TYPE:
        challenge = payload.get("challenge")
        if not isinstance(challenge, str):
            return IgnoredEvent(reason="url_verification without challenge")
        return UrlVerification(challenge=challenge)

    if payload_type != EVENT_CALLBACK_TYPE:
        return IgnoredEvent(reason=f"unsupported payload type {payload_type!r}")

    event = payload.get("event")
    if not isinstance(event, Mapping):
        return IgnoredEvent(reason="event_callback without event")

    event_type = event.get("type")
    if event_type != APP_MENTION_TYPE:
        return IgnoredEvent(reason=f"unsupported event type {event_type!r}")

    channel = event.get("channel")
    user = event.get("user")
    text = event.get("text")
    if not isinstance(channel, str) or not channel:
        return IgnoredEvent(reason="app_mention without channel")

    ts = event.get("ts")
    return AppMention(
        channel=channel,
        user=user if isinstance(user, str) else "",
        text=text if isinstance(text, str) else "",
        ts=ts if isinstance(ts, str) else None,
        bot_user_id=_authorized_user_id(payload),
    )


def parse_app_mention_text(text: str, bot_user_id: str | None) -> str:
    """Strip a leading self-mention from ``text``.

    ``"<@B123> hello world"`` with bot id ``B123`` becomes ``"hello world"``.
    Text that does not start with the bot's mention is returned unchanged.
    When the bot id is unknown, a leading ``<@...>`` token is dropped as long
    as other words follow it.
    """
    if bot_user_id:
        pattern = re.compile(rf"^<@{re.escape(bot_user_id)}(?:\|[^>]*)?>")
        trimmed = text.strip()
        match = pattern.match(trimmed)
        if match is None:
            return text
        return trimmed[match.end() :].strip()

    parts = text.split()
    if len(parts) > 1 and _LEADING_MENTION_PATTERN.match(parts[0]):
        return " ".join(parts[1:])
    return text
