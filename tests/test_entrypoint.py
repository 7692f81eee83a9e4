from __future__ import annotations

import httpx
import pytest

import chatrelay.entrypoint as entrypoint_module
from chatrelay.core.config import HttpxClientOptions, get_or_create_httpx_client


class _Closable:
    def __init__(self, name: str, calls: list[str], *, fail: bool = False) -> None:
        self._name = name
        self._calls = calls
        self._fail = fail

    async def _record(self) -> None:
        self._calls.append(self._name)
        if self._fail:
            message = f"{self._name} failed to close"
            raise RuntimeError(message)

    async def close(self) -> None:
        await self._record()

    async def cleanup(self) -> None:
        await self._record()

    async def shutdown(self) -> None:
        await self._record()

    async def aclose(self) -> None:
        await self._record()


@pytest.mark.asyncio
async def test_shutdown_closes_everything_once_even_when_a_step_fails(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    calls: list[str] = []
    state = entrypoint_module._EntrypointState(
        socket_ingress=_Closable("socket", calls, fail=True),  # type: ignore[arg-type]
        server_runner=_Closable("server", calls),  # type: ignore[arg-type]
        pipeline=_Closable("pipeline", calls),  # type: ignore[arg-type]
        platform=_Closable("platform", calls),  # type: ignore[arg-type]
    )
    http_client = get_or_create_httpx_client(state.httpx_client_holder)
    monkeypatch.setattr(entrypoint_module, "_STATE", state)

    await entrypoint_module.shutdown()
    await entrypoint_module.shutdown()

    assert calls == ["socket", "server", "pipeline", "platform"]
    assert http_client.is_closed
    assert state.httpx_client_holder == []


@pytest.mark.asyncio
async def test_httpx_client_is_shared_until_closed() -> None:
    holder: list[httpx.AsyncClient | None] = []
    options = HttpxClientOptions(connect_timeout=2.0, worker_pool_size=3)

    first = get_or_create_httpx_client(holder, options=options)
    assert get_or_create_httpx_client(holder, options=options) is first
    assert first.timeout.connect == 2.0
    assert first.timeout.read is None

    await first.aclose()
    second = get_or_create_httpx_client(holder, options=options)

    assert second is not first
    assert holder == [second]
    await second.aclose()
