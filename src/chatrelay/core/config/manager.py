"""Loading and caching of the optional config.yaml."""

import os
import time
from pathlib import Path
from typing import Any

import yaml

CONFIG_PATH_ENV = "CHATRELAY_CONFIG"
SECRETS_DIR = Path("/etc/secrets")
CONFIG_CACHE_TTL = 5  # seconds between mtime checks


class ConfigFileNotFoundError(FileNotFoundError):
    """Raised when no config file exists at any searched location."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__(filename)

    def __str__(self) -> str:
        return f"Config file '{self.filename}' not found in . or {SECRETS_DIR}/"


class ConfigFileEmptyError(ValueError):
    """Raised when the config file does not hold a YAML mapping."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(path)

    def __str__(self) -> str:
        return f"Config file must contain a YAML mapping: {self.path}"


class _ConfigCacheState:
    def __init__(self) -> None:
        self.path: Path | None = None
        self.cache: dict[str, Any] = {}
        self.mtime: float = 0
        self.check_time: float = 0


_CONFIG_STATE = _ConfigCacheState()


def _resolve_config_path(filename: str) -> Path:
    explicit = os.environ.get(CONFIG_PATH_ENV)
    candidates = [Path(explicit)] if explicit else []
    candidates += [Path(filename), SECRETS_DIR / filename]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    raise ConfigFileNotFoundError(filename)


def _read_mapping(path: Path) -> dict[str, Any]:
    with path.open(encoding="utf-8") as file:
        loaded = yaml.safe_load(file)
    if not isinstance(loaded, dict):
        raise ConfigFileEmptyError(path)
    return loaded


def get_config(filename: str = "config.yaml") -> dict[str, Any]:
    """Return the parsed config, re-reading it only after it changes.

    The file's mtime is checked at most every ``CONFIG_CACHE_TTL`` seconds.
    ``$CHATRELAY_CONFIG`` takes precedence over the search path.
    """
    now = time.monotonic()
    state = _CONFIG_STATE
    if state.cache and now - state.check_time <= CONFIG_CACHE_TTL:
        return state.cache

    state.check_time = now
    path = _resolve_config_path(filename)
    mtime = path.stat().st_mtime
    if path != state.path or mtime != state.mtime or not state.cache:
        state.cache = _read_mapping(path)
        state.path = path
        state.mtime = mtime
    return state.cache


def load_config_or_empty(filename: str = "config.yaml") -> dict[str, Any]:
    """Return the YAML config, or an empty mapping when no file exists.

    Deployments that configure everything through environment variables do
    not need to ship a config file.
    """
    try:
        return get_config(filename)
    except ConfigFileNotFoundError:
        return {}


def clear_config_cache() -> None:
    """Force the next `get_config()` call to re-read the file."""
    _CONFIG_STATE.path = None
    _CONFIG_STATE.cache = {}
    _CONFIG_STATE.mtime = 0
    _CONFIG_STATE.check_time = 0
