"""Configuration loading and constants for chatrelay.

This package exposes the split configuration modules as a single interface.
"""

from chatrelay.core.config.constants import (
    BACKEND_ERROR_MESSAGE,
    BACKEND_STREAM_PATH,
    CHUNK_BUFFER_SIZE,
    CHUNK_EVENT_NAME,
    CHUNK_TEXT_FIELD,
    DEFAULT_PORT,
    DEFAULT_WORKER_POOL_SIZE,
    EMPTY_RESPONSE_MESSAGE,
    EVENT_STREAM_CONTENT_TYPE,
    FULL_RESPONSE_FIELD,
    PLACEHOLDER_MESSAGE,
    POST_DELAY_SECONDS,
    STREAM_END_EVENT_NAME,
    UPDATE_QUEUE_FACTOR,
)
from chatrelay.core.config.http import (
    DEFAULT_USER_AGENT,
    HttpxClientOptions,
    get_or_create_httpx_client,
)
from chatrelay.core.config.manager import (
    CONFIG_CACHE_TTL,
    CONFIG_PATH_ENV,
    ConfigFileEmptyError,
    ConfigFileNotFoundError,
    clear_config_cache,
    get_config,
    load_config_or_empty,
)
from chatrelay.core.config.settings import (
    RelaySettings,
    SettingsError,
    load_settings,
)

__all__ = [
    "BACKEND_ERROR_MESSAGE",
    "BACKEND_STREAM_PATH",
    "CHUNK_BUFFER_SIZE",
    "CHUNK_EVENT_NAME",
    "CHUNK_TEXT_FIELD",
    "CONFIG_CACHE_TTL",
    "CONFIG_PATH_ENV",
    "DEFAULT_PORT",
    "DEFAULT_USER_AGENT",
    "DEFAULT_WORKER_POOL_SIZE",
    "EMPTY_RESPONSE_MESSAGE",
    "EVENT_STREAM_CONTENT_TYPE",
    "FULL_RESPONSE_FIELD",
    "PLACEHOLDER_MESSAGE",
    "POST_DELAY_SECONDS",
    "STREAM_END_EVENT_NAME",
    "UPDATE_QUEUE_FACTOR",
    "ConfigFileEmptyError",
    "ConfigFileNotFoundError",
    "HttpxClientOptions",
    "RelaySettings",
    "SettingsError",
    "clear_config_cache",
    "get_config",
    "get_or_create_httpx_client",
    "load_config_or_empty",
    "load_settings",
]
