"""Validated runtime settings built from config.yaml and the environment."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from chatrelay.core.config.constants import (
    DEFAULT_PORT,
    DEFAULT_WORKER_POOL_SIZE,
    PLACEHOLDER_MESSAGE,
    POST_DELAY_SECONDS,
)
from chatrelay.core.models import DeliveryMode

IngressKind = Literal["socket", "webhook"]

# Environment variables take precedence over config.yaml keys.
ENV_OVERRIDES = {
    "SLACK_BOT_TOKEN": "bot_token",
    "SLACK_APP_TOKEN": "app_token",
    "SLACK_SIGNING_SECRET": "signing_secret",
    "BACKEND_URL": "backend_url",
    "SLACK_STREAM_MODE": "stream_mode",
    "WORKER_POOL_SIZE": "worker_pool_size",
    "INGRESS": "ingress",
    "HOST": "host",
    "PORT": "port",
}


class SettingsError(ValueError):
    """Raised when the relay configuration is missing or invalid."""


@dataclass(frozen=True, slots=True)
class RelaySettings:
    """Static configuration consumed by the relay at startup."""

    bot_token: str
    backend_url: str
    app_token: str | None = None
    signing_secret: str | None = None
    worker_pool_size: int = DEFAULT_WORKER_POOL_SIZE
    delivery_mode: DeliveryMode = DeliveryMode.UPDATE
    ingress: IngressKind = "webhook"
    bot_user_id: str | None = None
    placeholder_text: str = PLACEHOLDER_MESSAGE
    post_delay_seconds: float = POST_DELAY_SECONDS
    backend_connect_timeout_seconds: float = 10.0
    host: str | None = None
    port: int = DEFAULT_PORT


def _merge_environment(
    config: Mapping[str, Any],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    merged = dict(config)
    for env_name, key in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            merged[key] = value
    return merged


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _positive_int(value: object, *, name: str, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        message = f"'{name}' must be a positive integer, got {value!r}"
        raise SettingsError(message)
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        message = f"'{name}' must be a positive integer, got {value!r}"
        raise SettingsError(message) from exc
    if parsed <= 0:
        message = f"'{name}' must be a positive integer, got {value!r}"
        raise SettingsError(message)
    return parsed


def _non_negative_float(value: object, *, name: str, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        message = f"'{name}' must be a number, got {value!r}"
        raise SettingsError(message) from exc
    if parsed < 0:
        message = f"'{name}' must not be negative, got {value!r}"
        raise SettingsError(message)
    return parsed


def _resolve_ingress(value: object, *, app_token: str | None) -> IngressKind:
    if value is None or value == "":
        return "socket" if app_token else "webhook"
    ingress = str(value).strip().lower()
    if ingress == "socket":
        if not app_token:
            message = "Socket Mode ingress requires 'app_token' (SLACK_APP_TOKEN)"
            raise SettingsError(message)
        return "socket"
    if ingress == "webhook":
        return "webhook"
    message = f"'ingress' must be 'socket' or 'webhook', got {value!r}"
    raise SettingsError(message)


def load_settings(
    config: Mapping[str, Any],
    environ: Mapping[str, str] | None = None,
) -> RelaySettings:
    """Build validated settings from a config mapping plus the environment."""
    merged = _merge_environment(config, os.environ if environ is None else environ)

    bot_token = _optional_str(merged.get("bot_token"))
    if not bot_token:
        message = "'bot_token' (SLACK_BOT_TOKEN) must be set"
        raise SettingsError(message)

    backend_url = _optional_str(merged.get("backend_url"))
    if not backend_url:
        message = "'backend_url' (BACKEND_URL) must be set"
        raise SettingsError(message)

    app_token = _optional_str(merged.get("app_token"))

    return RelaySettings(
        bot_token=bot_token,
        backend_url=backend_url.rstrip("/"),
        app_token=app_token,
        signing_secret=_optional_str(merged.get("signing_secret")),
        worker_pool_size=_positive_int(
            merged.get("worker_pool_size"),
            name="worker_pool_size",
            default=DEFAULT_WORKER_POOL_SIZE,
        ),
        delivery_mode=DeliveryMode.from_config(merged.get("stream_mode")),
        ingress=_resolve_ingress(merged.get("ingress"), app_token=app_token),
        bot_user_id=_optional_str(merged.get("bot_user_id")),
        placeholder_text=(
            _optional_str(merged.get("placeholder_text")) or PLACEHOLDER_MESSAGE
        ),
        post_delay_seconds=_non_negative_float(
            merged.get("post_delay_seconds"),
            name="post_delay_seconds",
            default=POST_DELAY_SECONDS,
        ),
        backend_connect_timeout_seconds=_non_negative_float(
            merged.get("backend_connect_timeout_seconds"),
            name="backend_connect_timeout_seconds",
            default=10.0,
        ),
        host=_optional_str(merged.get("host")),
        port=_positive_int(merged.get("port"), name="port", default=DEFAULT_PORT),
    )
