"""Repository abstraction for workflow definitions and run state."""

from __future__ import annotations

from typing import Any, Protocol

from .models import Agent, RunLog, StepLog, Workflow, WorkflowEdge, WorkflowNode


class WorkflowRepository(Protocol):
    """Protocol for persistence backends."""

    async def create_workflow(self, workflow: Workflow) -> Workflow:
        """Persist a workflow definition."""

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        """Retrieve a workflow definition by id."""

    async def create_node(self, node: WorkflowNode) -> WorkflowNode:
        """Persist a workflow node."""

    async def create_edge(self, edge: WorkflowEdge) -> WorkflowEdge:
        """Persist a workflow edge."""

    async def create_agent(self, agent: Agent) -> Agent:
        """Persist an agent profile."""

    async def find_nodes(self, workflow_id: str) -> list[WorkflowNode]:
        """Return all nodes of a workflow."""

    async def find_edges(self, workflow_id: str) -> list[WorkflowEdge]:
        """Return all edges of a workflow."""

    async def find_agent(self, agent_id: str) -> Agent | None:
        """Retrieve an agent profile by id."""

    async def create_run_log(self, run: RunLog) -> RunLog:
        """Persist a new run record."""

    async def update_run_log(self, run_id: str, **changes: Any) -> None:
        """Apply field changes to a run record."""

    async def get_run_log(self, run_id: str) -> RunLog | None:
        """Retrieve a run with its step logs ordered by start."""

    async def list_run_logs(self, workflow_id: str | None = None) -> list[RunLog]:
        """Return runs, optionally restricted to one workflow."""

    async def create_step_log(self, step: StepLog) -> StepLog:
        """Persist a new step record."""

    async def update_step_log(self, step_id: str, **changes: Any) -> None:
        """Apply field changes to a step record."""

    async def delete_step_logs(self, run_id: str) -> int:
        """Remove all step records of a run and return how many were removed."""
