"""Workflow dispatcher for chainflow."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from pydantic import BaseModel

from .contracts import BackoffSpec, RunStatus, WorkflowJobData
from .errors import WorkflowNotFoundError
from .jobs import JobQueue
from .persistence import RunLog, WorkflowRepository

logger = logging.getLogger(__name__)


class RunHandle(BaseModel):
    """Identifiers a caller uses to follow a dispatched run."""

    run_id: str
    job_id: str
    status: RunStatus = RunStatus.PENDING


class WorkflowDispatcher:
    """Service responsible for starting workflow runs."""

    def __init__(self, repository: WorkflowRepository, queue: JobQueue) -> None:
        self._repository = repository
        self._queue = queue

    async def dispatch(
        self,
        workflow_id: str,
        job_id: Optional[str] = None,
        retries: Optional[int] = None,
        backoff: Optional[BackoffSpec] = None,
    ) -> RunHandle:
        """Record a pending run of ``workflow_id`` and enqueue it.

        Args:
            workflow_id: Workflow to execute.
            job_id: Optional caller-chosen job id.
            retries: Re-deliveries allowed if the worker fails the job;
                defaults to the queue's policy.
            backoff: Delay between re-deliveries; defaults to the queue's policy.

        Returns:
            Run and job identifiers for tracking the run.

        Raises:
            WorkflowNotFoundError: if the workflow does not exist.
        """
        workflow = await self._repository.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(f"Workflow {workflow_id} not found")

        job_id = job_id or str(uuid.uuid4())
        run = await self._repository.create_run_log(
            RunLog(workflow_id=workflow_id, job_id=job_id, status=RunStatus.PENDING)
        )
        message = await self._queue.enqueue(
            WorkflowJobData(workflow_id=workflow_id, run_id=run.id),
            job_id=job_id,
            retries=retries,
            backoff=backoff,
        )
        logger.info(f"Dispatched run {run.id} of workflow {workflow.name}")
        return RunHandle(run_id=run.id, job_id=message.job_id)
