from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import httpx
import pytest

from chatrelay.core.config import BACKEND_ERROR_MESSAGE
from chatrelay.core.exceptions import RequestConstructionError, TransportError
from chatrelay.core.models import BackendRequest, Job, UpdateEvent
from chatrelay.logic.workers import run_job, worker_loop
from chatrelay.services.backend import ChunkStream

from ._fakes import FakeBackend, drain


def _job(query: str = "hello", ts: str = "1.0001") -> Job:
    return Job(channel="C1", ts=ts, user="U1", query=query)


@pytest.mark.asyncio
async def test_run_job_emits_growing_prefixes_then_one_terminal_event(
    backend: FakeBackend,
) -> None:
    backend.answers["hello"] = ["Echo: ", "hello "]
    updates: asyncio.Queue[UpdateEvent] = asyncio.Queue()

    await run_job(_job(), backend=backend, update_queue=updates)

    events = drain(updates)
    assert [(event.text, event.final) for event in events] == [
        ("Echo: ", False),
        ("Echo: hello ", False),
        ("Echo: hello ", True),
    ]
    assert all(event.channel == "C1" and event.ts == "1.0001" for event in events)
    assert backend.requests[0].user_id == "U1"
    assert backend.requests[0].query == "hello"
    assert backend.streams[0].closed


@pytest.mark.asyncio
async def test_run_job_prefix_growth_holds_for_many_chunks(
    backend: FakeBackend,
) -> None:
    chunks = ["The ", "quick ", "brown ", "fox ", "jumps"]
    backend.answers["q"] = chunks
    updates: asyncio.Queue[UpdateEvent] = asyncio.Queue()

    await run_job(_job("q"), backend=backend, update_queue=updates)

    events = drain(updates)
    texts = [event.text for event in events if not event.final]
    assert texts == ["".join(chunks[: index + 1]) for index in range(len(chunks))]
    assert all(later.startswith(earlier) for earlier, later in zip(texts, texts[1:]))
    assert [event.final for event in events].count(True) == 1
    assert events[-1].final
    assert events[-1].text == texts[-1]


@pytest.mark.asyncio
async def test_run_job_with_zero_chunks_still_emits_terminal_event(
    backend: FakeBackend,
) -> None:
    updates: asyncio.Queue[UpdateEvent] = asyncio.Queue()

    await run_job(_job("silence"), backend=backend, update_queue=updates)

    assert drain(updates) == [UpdateEvent("C1", "1.0001", "", final=True)]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        TransportError("backend unreachable"),
        RequestConstructionError("bad url"),
    ],
)
async def test_run_job_converts_backend_failure_into_error_marker(
    backend: FakeBackend,
    error: Exception,
) -> None:
    backend.errors["hello"] = error
    updates: asyncio.Queue[UpdateEvent] = asyncio.Queue()

    await run_job(_job(), backend=backend, update_queue=updates)

    assert drain(updates) == [
        UpdateEvent("C1", "1.0001", BACKEND_ERROR_MESSAGE, final=True),
    ]


@pytest.mark.asyncio
async def test_worker_keeps_serving_jobs_after_a_failure(
    backend: FakeBackend,
) -> None:
    backend.errors["boom"] = TransportError("backend unreachable")
    backend.answers["ok"] = ["fine "]
    work: asyncio.Queue[Job] = asyncio.Queue(maxsize=1)
    updates: asyncio.Queue[UpdateEvent] = asyncio.Queue()

    task = asyncio.create_task(
        worker_loop(0, work_queue=work, update_queue=updates, backend=backend),
    )
    try:
        await work.put(_job("boom", ts="1"))
        await work.put(_job("ok", ts="2"))
        await work.join()
    finally:
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    events = drain(updates)
    assert [(event.ts, event.text, event.final) for event in events] == [
        ("1", BACKEND_ERROR_MESSAGE, True),
        ("2", "fine ", False),
        ("2", "fine ", True),
    ]


@pytest.mark.asyncio
async def test_run_job_finishes_when_the_decoder_task_crashes() -> None:
    async def _crashing_decoder(_response: httpx.Response) -> AsyncIterator[str]:
        yield "Echo: "
        message = "decoder bug"
        raise ZeroDivisionError(message)

    class _CrashingBackend:
        async def stream(self, _request: BackendRequest) -> ChunkStream:
            response = httpx.Response(
                200,
                content=b"",
                request=httpx.Request("POST", "http://backend.test"),
            )
            return ChunkStream(response, _crashing_decoder)

    updates: asyncio.Queue[UpdateEvent] = asyncio.Queue()

    async with asyncio.timeout(1):
        await run_job(_job(), backend=_CrashingBackend(), update_queue=updates)

    assert drain(updates) == [
        UpdateEvent("C1", "1.0001", "Echo: "),
        UpdateEvent("C1", "1.0001", BACKEND_ERROR_MESSAGE, final=True),
    ]
