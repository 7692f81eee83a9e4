"""Worker pool logic: turn jobs into growing-prefix update events."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

from chatrelay.core.config import BACKEND_ERROR_MESSAGE
from chatrelay.core.error_handling import COMMON_HANDLER_EXCEPTIONS, log_exception
from chatrelay.core.exceptions import BackendError
from chatrelay.core.models import BackendRequest, Job, UpdateEvent

if TYPE_CHECKING:
    from chatrelay.services.backend.client import ChunkStream

logger = logging.getLogger(__name__)

JOB_EXCEPTIONS = (BackendError, *COMMON_HANDLER_EXCEPTIONS)


class ChunkSource(Protocol):
    """Anything that can answer a backend request with a chunk stream."""

    async def stream(self, request: BackendRequest) -> ChunkStream: ...


def _job_context(job: Job) -> dict[str, object]:
    return {"channel": job.channel, "ts": job.ts, "user": job.user}


async def run_job(
    job: Job,
    *,
    backend: ChunkSource,
    update_queue: asyncio.Queue[UpdateEvent],
) -> None:
    """Stream one job's answer into ``update_queue``.

    Every chunk produces a non-terminal event carrying the text so far.
    Exactly one terminal event follows, carrying either the final text or
    the backend error marker.
    """
    full_text = ""
    try:
        chunks = await backend.stream(BackendRequest(user_id=job.user, query=job.query))
        async with chunks:
            async for chunk in chunks:
                full_text += chunk
                await update_queue.put(
                    UpdateEvent(channel=job.channel, ts=job.ts, text=full_text),
                )
    except JOB_EXCEPTIONS as exc:
        log_exception(
            logger=logger,
            message="Backend call failed",
            error=exc,
            context=_job_context(job),
            traceback=not isinstance(exc, BackendError),
        )
        final_text = BACKEND_ERROR_MESSAGE
    else:
        final_text = full_text

    await update_queue.put(
        UpdateEvent(channel=job.channel, ts=job.ts, text=final_text, final=True),
    )


async def worker_loop(
    worker_id: int,
    *,
    work_queue: asyncio.Queue[Job],
    update_queue: asyncio.Queue[UpdateEvent],
    backend: ChunkSource,
) -> None:
    """Claim jobs forever; runs until cancelled."""
    logger.debug("Worker %s started", worker_id)
    while True:
        job = await work_queue.get()
        try:
            await run_job(job, backend=backend, update_queue=update_queue)
        finally:
            work_queue.task_done()
