"""Slack integration entrypoints and exports."""

from chatrelay.services.slack.events import (
    AppMention,
    IgnoredEvent,
    InboundEvent,
    UrlVerification,
    parse_app_mention_text,
    parse_event,
)
from chatrelay.services.slack.platform import ChatPlatform, PostedMessage, SlackPlatform

__all__ = [
    "AppMention",
    "ChatPlatform",
    "IgnoredEvent",
    "InboundEvent",
    "PostedMessage",
    "SlackPlatform",
    "UrlVerification",
    "parse_app_mention_text",
    "parse_event",
]
