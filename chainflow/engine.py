"""Run coordinator: executes one queued run of a workflow."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from .contracts import JobResult, RunStatus
from .errors import ExecutionError, RunNotFoundError, WorkflowError
from .persistence import StepLog, WorkflowRepository
from .persistence.models import utcnow
from .progress import ProgressPublisher
from .resolver import ChainLink, ChainResolver, WorkflowChain

if TYPE_CHECKING:
    from .jobs import Job

logger = logging.getLogger(__name__)


@dataclass
class ExecutionContext:
    """State threaded from one step to the next within a run."""

    run_id: str
    workflow_id: str
    last_output: Optional[str] = None


class RunCoordinator:
    """Drives a run from ``pending`` to ``completed`` or ``failed``.

    Step, graph and node errors end the run as failed and are reported in the
    returned :class:`JobResult`. Anything else (repository or transport
    failures) propagates so the job queue can retry the whole job.
    """

    def __init__(self, repository: WorkflowRepository, resolver: ChainResolver) -> None:
        self._repository = repository
        self._resolver = resolver

    async def __call__(self, job: "Job") -> JobResult:
        return await self.run(job)

    async def run(self, job: "Job") -> JobResult:
        workflow_id = job.data.workflow_id
        run_id = job.data.run_id

        run = await self._repository.get_run_log(run_id)
        if run is None:
            raise RunNotFoundError(f"Run {run_id} not found")
        if RunStatus(run.status).is_terminal:
            logger.warning(
                f"Run {run_id} already {run.status}; ignoring redelivered job {job.id}"
            )
            return JobResult(
                success=run.status == RunStatus.COMPLETED, run_id=run_id, error=run.error
            )

        discarded = await self._repository.delete_step_logs(run_id)
        if discarded:
            logger.info(
                f"Discarded {discarded} step logs of an interrupted attempt of run {run_id}"
            )

        publisher = ProgressPublisher(job, workflow_id)
        await self._repository.update_run_log(
            run_id,
            status=RunStatus.RUNNING,
            started_at=utcnow(),
            finished_at=None,
            error=None,
            job_id=job.id,
        )
        await publisher.workflow(RunStatus.RUNNING)
        logger.info(f"Run {run_id} of workflow {workflow_id} started (job {job.id})")

        try:
            chain = await self._resolver.resolve(workflow_id)
            context = ExecutionContext(run_id=run_id, workflow_id=workflow_id)
            await self._execute_chain(chain, context, publisher)
        except WorkflowError as e:
            await self._repository.update_run_log(
                run_id,
                status=RunStatus.FAILED,
                finished_at=utcnow(),
                error=e.message,
            )
            await publisher.workflow(RunStatus.FAILED, error=e.message)
            logger.info(f"Run {run_id} failed: {e.message}")
            return JobResult(success=False, run_id=run_id, error=e.message)

        await self._repository.update_run_log(
            run_id, status=RunStatus.COMPLETED, finished_at=utcnow()
        )
        await publisher.workflow(RunStatus.COMPLETED)
        logger.info(f"Run {run_id} completed")
        return JobResult(success=True, run_id=run_id)

    async def _execute_chain(
        self,
        chain: WorkflowChain,
        context: ExecutionContext,
        publisher: ProgressPublisher,
    ) -> None:
        """Run each link in order; the first failing step aborts the rest."""
        for link in chain:
            context.last_output = await self._execute_link(link, context, publisher)

    async def _execute_link(
        self,
        link: ChainLink,
        context: ExecutionContext,
        publisher: ProgressPublisher,
    ) -> str:
        step = link.step
        step_log = StepLog(
            run_id=context.run_id,
            node_id=link.node_id,
            name=step.name,
            input=context.last_output,
            status=RunStatus.RUNNING,
        )
        await self._repository.create_step_log(step_log)
        await publisher.step(link.node_id, step.name, RunStatus.RUNNING)

        try:
            output = await step.execute(context.last_output)
        except Exception as e:
            message = str(e) or type(e).__name__
            await self._repository.update_step_log(
                step_log.id,
                status=RunStatus.FAILED,
                error=message,
                finished_at=utcnow(),
            )
            await publisher.step(link.node_id, step.name, RunStatus.FAILED, error=message)
            logger.warning(f"Step {step.name} ({link.node_id}) failed: {message}")
            raise ExecutionError(message, node_id=link.node_id) from e

        await self._repository.update_step_log(
            step_log.id,
            status=RunStatus.COMPLETED,
            output=output,
            finished_at=utcnow(),
        )
        await publisher.step(link.node_id, step.name, RunStatus.COMPLETED, output=output)
        logger.debug(f"Step {step.name} ({link.node_id}) completed")
        return output

    async def fail_run(self, job: "Job", error: Exception) -> None:
        """Mark a run failed once its job has no attempts left.

        Best effort: the repository or transport that exhausted the job may
        still be down, in which case the run is left as it is.
        """
        run_id = job.data.run_id
        message = str(error) or type(error).__name__
        try:
            run = await self._repository.get_run_log(run_id)
            if run is None or RunStatus(run.status).is_terminal:
                return
            await self._repository.update_run_log(
                run_id, status=RunStatus.FAILED, finished_at=utcnow(), error=message
            )
            await ProgressPublisher(job, job.data.workflow_id).workflow(
                RunStatus.FAILED, error=message
            )
        except Exception as e:
            logger.error(f"Could not mark run {run_id} failed: {e}")
            return
        logger.info(f"Run {run_id} failed after its job ran out of attempts: {message}")
