"""Data models for workflow definitions and persisted run state."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..contracts import RunStatus


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Workflow(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: Optional[str] = None


class WorkflowNode(BaseModel):
    """A node of a workflow; ``config["type"]`` selects the step variant."""

    id: str = Field(default_factory=new_id)
    workflow_id: str
    config: dict[str, Any] = Field(default_factory=dict)

    @property
    def type(self) -> Optional[str]:
        return self.config.get("type")


class WorkflowEdge(BaseModel):
    """Run ``target_node_id`` immediately after ``source_node_id``."""

    id: str = Field(default_factory=new_id)
    workflow_id: str
    source_node_id: Optional[str] = None
    target_node_id: Optional[str] = None


class Agent(BaseModel):
    """Agent profile referenced by agent nodes."""

    id: str = Field(default_factory=new_id)
    name: str
    model: str
    system_prompt: Optional[str] = None


class StepLog(BaseModel):
    """Record of one step execution within a run."""

    id: str = Field(default_factory=new_id)
    run_id: str
    node_id: str
    name: str
    input: Optional[str] = None
    output: Optional[str] = None
    status: RunStatus = RunStatus.RUNNING
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    error: Optional[str] = None


class RunLog(BaseModel):
    """One execution attempt of a workflow, with its steps in start order."""

    id: str = Field(default_factory=new_id)
    workflow_id: str
    job_id: Optional[str] = None
    status: RunStatus = RunStatus.PENDING
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None
    steps: list[StepLog] = Field(default_factory=list)


RUN_LOG_FIELDS = frozenset(
    {"job_id", "status", "started_at", "finished_at", "error"}
)
STEP_LOG_FIELDS = frozenset(
    {"name", "input", "output", "status", "started_at", "finished_at", "error"}
)


def check_fields(changes: dict[str, Any], allowed: frozenset[str]) -> None:
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
