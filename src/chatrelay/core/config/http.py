"""Shared httpx client for backend calls."""

from dataclasses import dataclass

import httpx

DEFAULT_USER_AGENT = "chatrelay/0.1"


@dataclass(frozen=True, slots=True)
class HttpxClientOptions:
    """Connection settings for the backend client.

    Each worker holds at most one streaming response open, so the pool is
    sized from the worker count. ``read_timeout`` of ``None`` leaves long
    answers bounded only by task cancellation.
    """

    connect_timeout: float = 10.0
    read_timeout: float | None = None
    worker_pool_size: int = 10
    headers: dict[str, str] | None = None

    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.read_timeout, connect=self.connect_timeout)

    def limits(self) -> httpx.Limits:
        return httpx.Limits(
            max_connections=self.worker_pool_size,
            max_keepalive_connections=self.worker_pool_size,
        )


def get_or_create_httpx_client(
    client_holder: list[httpx.AsyncClient | None],
    *,
    options: HttpxClientOptions | None = None,
) -> httpx.AsyncClient:
    """Return the client stored in ``client_holder``, creating it if needed.

    The holder is a one-slot list owned by the caller; a closed client in the
    slot is replaced.
    """
    current = client_holder[0] if client_holder else None
    if current is not None and not current.is_closed:
        return current

    effective_options = options or HttpxClientOptions()
    client = httpx.AsyncClient(
        timeout=effective_options.timeout(),
        limits=effective_options.limits(),
        headers={
            "User-Agent": DEFAULT_USER_AGENT,
            **(effective_options.headers or {}),
        },
    )
    client_holder[:] = [client]
    return client
