"""Job queue: delivery of run requests with delayed retries."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .constants import DEFAULT_BACKOFF_MS, DEFAULT_JOB_RETRIES, DEFAULT_QUEUE_NAME
from .contracts import (
    BackoffSpec,
    JobMessage,
    JobResult,
    ProgressEnvelope,
    ProgressEvent,
    WorkflowJobData,
)
from .transports import BaseTransport
from .utils import retry

logger = logging.getLogger(__name__)


def progress_channel(queue_name: str, run_id: str) -> str:
    """Name of the pub/sub channel carrying one run's progress."""
    return f"{queue_name}:progress:{run_id}"


class Job:
    """A delivered job as seen by the handler."""

    def __init__(self, message: JobMessage, queue: "JobQueue") -> None:
        self.message = message
        self._queue = queue

    @property
    def id(self) -> str:
        return self.message.job_id

    @property
    def data(self) -> WorkflowJobData:
        return self.message.data

    @property
    def attempt(self) -> int:
        return self.message.attempt

    async def report_progress(self, envelope: ProgressEnvelope) -> None:
        """Publish ``envelope`` on this job's run channel, tagged with the job id."""
        event = ProgressEvent(
            job_id=self.id, run_id=self.data.run_id, progress=envelope
        )
        await self._queue.transport.publish_event(
            progress_channel(self._queue.name, self.data.run_id), event.to_wire()
        )


JobHandler = Callable[[Job], Awaitable[JobResult]]
ExhaustedHook = Callable[[Job, Exception], Awaitable[None]]


class JobQueue:
    """Named queue on top of a transport.

    A handler that raises is treated as a failed attempt; the job is
    re-published after its backoff until ``retries`` re-deliveries are used up.
    The backoff runs in a background task, so it never holds a worker slot.

    A job removed from the transport is not handed back if its worker dies
    mid-attempt: delivery is at most once per attempt.
    """

    def __init__(
        self,
        transport: BaseTransport,
        name: str = DEFAULT_QUEUE_NAME,
        retries: int = DEFAULT_JOB_RETRIES,
        backoff: BackoffSpec | None = None,
    ) -> None:
        self.transport = transport
        self.name = name
        self.retries = retries
        self.backoff = backoff or BackoffSpec(strategy="fixed", delay_ms=DEFAULT_BACKOFF_MS)
        self._delayed: set[asyncio.Task] = set()

    async def enqueue(
        self,
        data: WorkflowJobData,
        job_id: Optional[str] = None,
        retries: Optional[int] = None,
        backoff: Optional[BackoffSpec] = None,
    ) -> JobMessage:
        """Put a new job on the queue and return its envelope."""
        message = JobMessage(
            data=data,
            retries=self.retries if retries is None else retries,
            backoff=backoff or self.backoff,
        )
        if job_id:
            message.job_id = job_id
        await self.transport.publish(self.name, message)
        logger.info(
            f"Enqueued job {message.job_id} for run {data.run_id} on {self.name}"
        )
        return message

    async def process(
        self,
        handler: JobHandler,
        lifespan: Optional[float] = None,
        concurrency: int = 1,
        on_exhausted: Optional[ExhaustedHook] = None,
    ) -> None:
        """Pull jobs and run ``handler`` on each until ``lifespan`` expires.

        Up to ``concurrency`` jobs are handled at the same time. Retries still
        waiting out their backoff are re-published before this returns.
        """
        slots = asyncio.Semaphore(concurrency)
        running: set[asyncio.Task] = set()

        async def _run(raw_message, message: JobMessage) -> None:
            try:
                await self.handle(message, handler, on_exhausted=on_exhausted)
                await self.transport.ack(raw_message)
            finally:
                slots.release()

        try:
            async for raw_message, message in self.transport.subscribe(
                self.name, lifespan=lifespan
            ):
                await slots.acquire()
                task = asyncio.create_task(_run(raw_message, message))
                running.add(task)
                task.add_done_callback(running.discard)
        finally:
            if running:
                await asyncio.gather(*running)
            await self.drain_retries()

    async def drain_retries(self) -> None:
        """Wait until every delayed retry has been re-published."""
        while self._delayed:
            await asyncio.gather(*list(self._delayed))

    async def handle(
        self,
        message: JobMessage,
        handler: JobHandler,
        on_exhausted: Optional[ExhaustedHook] = None,
    ) -> Optional[JobResult]:
        """Run one delivery of ``message``; returns ``None`` if the handler raised.

        A failed attempt with attempts left is re-published in the background
        after its backoff. Once none are left, ``on_exhausted`` is awaited.
        """
        job = Job(message, self)
        try:
            result = await handler(job)
        except Exception as e:
            if message.attempts_left > 0:
                logger.warning(
                    f"Job {job.id} attempt {message.attempt} failed: {e}; "
                    f"retrying ({message.attempts_left} attempts left)"
                )
                task = asyncio.create_task(self._redeliver(message))
                self._delayed.add(task)
                task.add_done_callback(self._delayed.discard)
            else:
                logger.error(
                    f"Job {job.id} failed after {message.attempt} attempts: {e}"
                )
                if on_exhausted is not None:
                    await on_exhausted(job, e)
            return None

        logger.info(f"Job {job.id} succeeded: {result.to_wire()}")
        return result

    async def _redeliver(self, message: JobMessage) -> None:
        await retry.schedule_retry(message.backoff, message.attempt)
        await self.transport.publish(self.name, message.bump_attempt())
