"""Backend streaming client."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

import httpx

from chatrelay.core.config import BACKEND_STREAM_PATH, CHUNK_BUFFER_SIZE
from chatrelay.core.error_handling import COMMON_HANDLER_EXCEPTIONS, log_exception
from chatrelay.core.exceptions import (
    BackendStatusError,
    DecodeError,
    RequestConstructionError,
    TransportError,
)
from chatrelay.services.backend.decoder import ChunkDecoder, select_decoder

if TYPE_CHECKING:
    from types import TracebackType

    from chatrelay.core.models import BackendRequest

logger = logging.getLogger(__name__)

DECODER_EXCEPTIONS = (
    DecodeError,
    httpx.HTTPError,
    *COMMON_HANDLER_EXCEPTIONS,
)
ALLOWED_SCHEMES = frozenset({"http", "https"})

_END_OF_STREAM = object()


class ChunkStream:
    """Cancellable channel over the chunks of one backend response.

    A background task runs the decoder and hands chunks over through a
    bounded queue. The response is closed when decoding finishes, fails, or
    the consumer closes the stream early.
    """

    def __init__(
        self,
        response: httpx.Response,
        decoder: ChunkDecoder,
        *,
        buffer_size: int = CHUNK_BUFFER_SIZE,
    ) -> None:
        self._response = response
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=buffer_size)
        self._exhausted = False
        self._task = asyncio.create_task(
            self._pump(decoder),
            name="chatrelay-chunk-decoder",
        )

    async def _pump(self, decoder: ChunkDecoder) -> None:
        try:
            async with contextlib.aclosing(decoder(self._response)) as chunks:
                async for chunk in chunks:
                    await self._queue.put(chunk)
        except DECODER_EXCEPTIONS as exc:
            log_exception(
                logger=logger,
                message="Backend stream ended early",
                error=exc,
                context={"url": str(self._response.url)},
            )
        finally:
            await self._response.aclose()
        await self._queue.put(_END_OF_STREAM)

    @property
    def closed(self) -> bool:
        """Whether the underlying response has been closed."""
        return self._response.is_closed

    def __aiter__(self) -> ChunkStream:
        return self

    async def __anext__(self) -> str:
        if self._exhausted:
            raise StopAsyncIteration

        getter = asyncio.ensure_future(self._queue.get())
        try:
            await asyncio.wait(
                {getter, self._task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if not getter.done():
                getter.cancel()

        if getter.done() and not getter.cancelled():
            item = getter.result()
        elif not self._queue.empty():
            item = self._queue.get_nowait()
        else:
            # The decoder task died before handing over the end marker.
            self._exhausted = True
            self._raise_task_failure()
            raise StopAsyncIteration

        if item is _END_OF_STREAM:
            self._exhausted = True
            raise StopAsyncIteration
        return str(item)

    def _raise_task_failure(self) -> None:
        if self._task.cancelled():
            return
        error = self._task.exception()
        if error is not None:
            message = f"Backend stream failed: {error!r}"
            raise TransportError(message) from error

    async def aclose(self) -> None:
        """Stop decoding and release the connection."""
        self._exhausted = True
        if not self._task.done():
            self._task.cancel()
        await asyncio.wait({self._task})

    async def __aenter__(self) -> ChunkStream:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.aclose()


class BackendClient:
    """Issues backend requests and exposes their answers as chunk streams."""

    def __init__(
        self,
        base_url: str,
        *,
        http_client: httpx.AsyncClient,
        buffer_size: int = CHUNK_BUFFER_SIZE,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client
        self._buffer_size = buffer_size

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}{BACKEND_STREAM_PATH}"

    def build_request(self, request: BackendRequest) -> httpx.Request:
        """Build the POST request for ``request`` without sending it."""
        try:
            url = httpx.URL(self.endpoint)
        except httpx.InvalidURL as exc:
            message = f"Invalid backend URL: {self.endpoint!r}"
            raise RequestConstructionError(message) from exc

        if url.scheme not in ALLOWED_SCHEMES or not url.host:
            message = f"Backend URL must be absolute http(s): {self.endpoint!r}"
            raise RequestConstructionError(message)

        try:
            return self._http_client.build_request(
                "POST",
                url,
                json=request.to_payload(),
            )
        except (httpx.InvalidURL, TypeError, ValueError) as exc:
            message = "Could not build backend request"
            raise RequestConstructionError(message) from exc

    async def stream(self, request: BackendRequest) -> ChunkStream:
        """Send ``request`` and return the chunk stream of its response.

        The decoder is chosen from the response headers before any body bytes
        are read. Cancelling the calling task aborts the call.
        """
        http_request = self.build_request(request)
        try:
            response = await self._http_client.send(http_request, stream=True)
        except httpx.UnsupportedProtocol as exc:
            message = f"Unsupported backend URL: {self.endpoint!r}"
            raise RequestConstructionError(message) from exc
        except httpx.RequestError as exc:
            message = f"Backend unreachable at {self.endpoint}: {exc}"
            raise TransportError(message) from exc

        if not response.is_success:
            await response.aclose()
            raise BackendStatusError(response.status_code, url=self.endpoint)

        decoder = select_decoder(response.headers.get("content-type"))
        return ChunkStream(response, decoder, buffer_size=self._buffer_size)
