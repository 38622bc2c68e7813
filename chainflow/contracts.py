"""Message contracts exchanged between dispatcher, queue, engine and subscribers."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .constants import DEFAULT_BACKOFF_MS, DEFAULT_JOB_RETRIES, PROGRESS_TYPE


class RunStatus(str, Enum):
    """Lifecycle of runs and steps."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class CamelModel(BaseModel):
    """Models serialized with camelCase keys on the wire."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class WorkflowJobData(CamelModel):
    """Payload of one queued execution request."""

    workflow_id: str = Field(alias="workflowId")
    run_id: str = Field(alias="runId")


class BackoffSpec(BaseModel):
    """Delay between job attempts."""

    strategy: Literal["fixed", "exponential"] = "fixed"
    delay_ms: int = DEFAULT_BACKOFF_MS


class JobMessage(BaseModel):
    """Envelope placed on the job queue."""

    job_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    data: WorkflowJobData
    attempt: int = 1
    retries: int = DEFAULT_JOB_RETRIES
    backoff: BackoffSpec = Field(default_factory=BackoffSpec)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def attempts_left(self) -> int:
        return max(0, self.retries + 1 - self.attempt)

    def bump_attempt(self) -> "JobMessage":
        """Return a copy of this message for the next delivery attempt."""
        return self.model_copy(
            update={
                "attempt": self.attempt + 1,
                "timestamp": datetime.now(timezone.utc),
            }
        )

    def to_json(self) -> str:
        """Serialize message to JSON."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data: str | bytes) -> "JobMessage":
        """Deserialize message from JSON."""
        return cls.model_validate_json(data)


class JobResult(CamelModel):
    """Outcome handed back to the queue by the job handler."""

    success: bool
    run_id: str = Field(alias="runId")
    error: Optional[str] = None


class StepProgress(CamelModel):
    node_id: str = Field(alias="nodeId")
    name: str
    status: RunStatus
    output: Optional[str] = None
    error: Optional[str] = None


class WorkflowProgress(CamelModel):
    """Progress of one run; ``current_step`` is unset for run-level transitions."""

    workflow_id: str = Field(alias="workflowId")
    status: Optional[RunStatus] = None
    current_step: Optional[StepProgress] = Field(default=None, alias="currentStep")
    error: Optional[str] = None


class ProgressEnvelope(CamelModel):
    type: Literal["workflow_progress"] = PROGRESS_TYPE
    data: WorkflowProgress


class ProgressEvent(CamelModel):
    """What subscribers receive on a run's progress channel."""

    job_id: str = Field(alias="jobId")
    run_id: str = Field(alias="runId")
    progress: ProgressEnvelope

    @property
    def is_terminal(self) -> bool:
        data = self.progress.data
        return data.current_step is None and data.status in (
            RunStatus.COMPLETED.value,
            RunStatus.FAILED.value,
        )
