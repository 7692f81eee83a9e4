"""Relay pipeline lifecycle: work queue, worker pool, update queue, poster."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from chatrelay.core.config import (
    DEFAULT_WORKER_POOL_SIZE,
    POST_DELAY_SECONDS,
    UPDATE_QUEUE_FACTOR,
)
from chatrelay.core.models import DeliveryMode, Job, UpdateEvent
from chatrelay.logic.poster import poster_loop
from chatrelay.logic.workers import worker_loop

if TYPE_CHECKING:
    from types import TracebackType

    from chatrelay.logic.workers import ChunkSource
    from chatrelay.services.slack.platform import ChatPlatform

logger = logging.getLogger(__name__)


class RelayPipeline:
    """Owns the queues and background tasks of the relay.

    Construct and start it once per process. The work queue holds one slot
    per worker, so ``enqueue`` blocks once every worker is busy and every
    slot is taken. The update queue is shared by all workers and drained by
    a single poster, which keeps each anchor's events in production order.
    """

    def __init__(
        self,
        *,
        platform: ChatPlatform,
        backend: ChunkSource,
        pool_size: int = DEFAULT_WORKER_POOL_SIZE,
        delivery_mode: DeliveryMode = DeliveryMode.UPDATE,
        post_delay_seconds: float = POST_DELAY_SECONDS,
    ) -> None:
        if pool_size <= 0:
            message = f"pool_size must be positive, got {pool_size}"
            raise ValueError(message)

        self.platform = platform
        self.backend = backend
        self.pool_size = pool_size
        self.delivery_mode = delivery_mode
        self.post_delay_seconds = post_delay_seconds
        self.work_queue: asyncio.Queue[Job] = asyncio.Queue(maxsize=pool_size)
        self.update_queue: asyncio.Queue[UpdateEvent] = asyncio.Queue(
            maxsize=pool_size * UPDATE_QUEUE_FACTOR,
        )
        self._tasks: list[asyncio.Task[None]] = []
        self._started = False

    @property
    def running(self) -> bool:
        return bool(self._tasks) and not all(task.done() for task in self._tasks)

    def start(self) -> None:
        """Spawn the poster and the worker pool."""
        if self._started:
            message = "RelayPipeline has already been started"
            raise RuntimeError(message)
        self._started = True

        self._tasks.append(
            asyncio.create_task(
                poster_loop(
                    update_queue=self.update_queue,
                    platform=self.platform,
                    mode=self.delivery_mode,
                    post_delay_seconds=self.post_delay_seconds,
                ),
                name="chatrelay-poster",
            ),
        )
        for worker_id in range(self.pool_size):
            self._tasks.append(
                asyncio.create_task(
                    worker_loop(
                        worker_id,
                        work_queue=self.work_queue,
                        update_queue=self.update_queue,
                        backend=self.backend,
                    ),
                    name=f"chatrelay-worker-{worker_id}",
                ),
            )
        logger.info(
            "Relay pipeline started (workers=%s, mode=%s)",
            self.pool_size,
            self.delivery_mode,
        )

    async def enqueue(self, job: Job) -> None:
        """Queue a job, waiting while the work queue is full."""
        await self.work_queue.put(job)
        logger.debug("Enqueued job for %s/%s", job.channel, job.ts)

    async def shutdown(self) -> None:
        """Cancel every task; queued jobs are abandoned.

        This is safe to call multiple times.
        """
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Relay pipeline stopped")

    async def __aenter__(self) -> RelayPipeline:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.shutdown()
