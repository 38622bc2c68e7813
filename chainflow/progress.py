"""Progress envelopes published while a run executes."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional

from .constants import DEFAULT_QUEUE_NAME, PROGRESS_TYPE
from .contracts import (
    ProgressEnvelope,
    ProgressEvent,
    RunStatus,
    StepProgress,
    WorkflowProgress,
)
from .jobs import progress_channel
from .transports import BaseTransport, EventStream

if TYPE_CHECKING:
    from .jobs import Job

logger = logging.getLogger(__name__)


class ProgressPublisher:
    """Emits workflow- and step-level transitions for one run."""

    def __init__(self, job: "Job", workflow_id: str) -> None:
        self._job = job
        self.workflow_id = workflow_id

    async def publish(self, kind: str, payload: dict[str, Any]) -> ProgressEnvelope:
        """Wrap ``payload`` into an envelope of type ``kind`` and send it."""
        data = WorkflowProgress.model_validate(
            {"workflowId": self.workflow_id, **payload}
        )
        envelope = ProgressEnvelope(type=kind, data=data)
        await self._job.report_progress(envelope)
        return envelope

    async def workflow(
        self, status: RunStatus, error: Optional[str] = None
    ) -> ProgressEnvelope:
        return await self.publish(PROGRESS_TYPE, {"status": status, "error": error})

    async def step(
        self,
        node_id: str,
        name: str,
        status: RunStatus,
        output: Optional[str] = None,
        error: Optional[str] = None,
    ) -> ProgressEnvelope:
        current = StepProgress(
            node_id=node_id, name=name, status=status, output=output, error=error
        )
        return await self.publish(PROGRESS_TYPE, {"currentStep": current})


class RunProgressStream:
    """Live subscription to one run's progress channel."""

    def __init__(self, stream: EventStream, run_id: str) -> None:
        self._stream = stream
        self.run_id = run_id

    async def events(
        self, lifespan: Optional[float] = None
    ) -> AsyncIterator[ProgressEvent]:
        """Yield events until the terminal workflow event or ``lifespan`` expires."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + lifespan if lifespan else None
        while True:
            timeout = None
            if deadline is not None:
                timeout = deadline - loop.time()
                if timeout <= 0:
                    return
            raw = await self._stream.get(timeout=timeout)
            if raw is None:
                continue
            event = ProgressEvent.model_validate(raw)
            yield event
            if event.is_terminal:
                logger.debug(f"Run {self.run_id} reached a terminal state")
                return

    async def close(self) -> None:
        await self._stream.close()

    async def __aenter__(self) -> "RunProgressStream":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


async def open_run_progress(
    transport: BaseTransport, run_id: str, queue_name: str = DEFAULT_QUEUE_NAME
) -> RunProgressStream:
    """Subscribe to ``run_id``'s progress channel.

    Only events published after this returns are seen; callers that may have
    missed the end of a run should read the persisted run log instead.
    """
    stream = await transport.open_event_stream(progress_channel(queue_name, run_id))
    return RunProgressStream(stream, run_id)


async def watch_run(
    transport: BaseTransport,
    run_id: str,
    queue_name: str = DEFAULT_QUEUE_NAME,
    lifespan: Optional[float] = None,
) -> AsyncIterator[ProgressEvent]:
    """Yield a run's progress events, unsubscribing once the run has ended."""
    async with await open_run_progress(transport, run_id, queue_name) as progress:
        async for event in progress.events(lifespan):
            yield event
