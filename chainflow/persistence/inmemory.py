"""In-memory implementation of the workflow repository."""

from __future__ import annotations

from typing import Any, Dict, List

from .models import (
    RUN_LOG_FIELDS,
    STEP_LOG_FIELDS,
    Agent,
    RunLog,
    StepLog,
    Workflow,
    WorkflowEdge,
    WorkflowNode,
    check_fields,
)
from .repository import WorkflowRepository


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store definitions and run state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, Workflow] = {}
        self._nodes: Dict[str, WorkflowNode] = {}
        self._edges: Dict[str, WorkflowEdge] = {}
        self._agents: Dict[str, Agent] = {}
        self._runs: Dict[str, RunLog] = {}
        self._steps: List[StepLog] = []

    # ------------------------------------------------------------------
    async def create_workflow(self, workflow: Workflow) -> Workflow:
        self._workflows[workflow.id] = workflow.model_copy()
        return workflow

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        wf = self._workflows.get(workflow_id)
        return wf.model_copy() if wf else None

    async def create_node(self, node: WorkflowNode) -> WorkflowNode:
        self._nodes[node.id] = node.model_copy(deep=True)
        return node

    async def create_edge(self, edge: WorkflowEdge) -> WorkflowEdge:
        self._edges[edge.id] = edge.model_copy()
        return edge

    async def create_agent(self, agent: Agent) -> Agent:
        self._agents[agent.id] = agent.model_copy()
        return agent

    async def find_nodes(self, workflow_id: str) -> list[WorkflowNode]:
        return [
            n.model_copy(deep=True)
            for n in self._nodes.values()
            if n.workflow_id == workflow_id
        ]

    async def find_edges(self, workflow_id: str) -> list[WorkflowEdge]:
        return [
            e.model_copy() for e in self._edges.values() if e.workflow_id == workflow_id
        ]

    async def find_agent(self, agent_id: str) -> Agent | None:
        agent = self._agents.get(agent_id)
        return agent.model_copy() if agent else None

    # ------------------------------------------------------------------
    async def create_run_log(self, run: RunLog) -> RunLog:
        self._runs[run.id] = run.model_copy(update={"steps": []})
        return run

    async def update_run_log(self, run_id: str, **changes: Any) -> None:
        check_fields(changes, RUN_LOG_FIELDS)
        run = self._runs.get(run_id)
        if run is None:
            raise KeyError(f"Run {run_id} not found")
        self._runs[run_id] = run.model_copy(update=changes)

    async def get_run_log(self, run_id: str) -> RunLog | None:
        run = self._runs.get(run_id)
        if run is None:
            return None
        steps = [s.model_copy() for s in self._steps if s.run_id == run_id]
        steps.sort(key=lambda s: s.started_at)
        return run.model_copy(update={"steps": steps})

    async def list_run_logs(self, workflow_id: str | None = None) -> list[RunLog]:
        return [
            r.model_copy()
            for r in self._runs.values()
            if workflow_id is None or r.workflow_id == workflow_id
        ]

    async def create_step_log(self, step: StepLog) -> StepLog:
        self._steps.append(step.model_copy())
        return step

    async def update_step_log(self, step_id: str, **changes: Any) -> None:
        check_fields(changes, STEP_LOG_FIELDS)
        for index, step in enumerate(self._steps):
            if step.id == step_id:
                self._steps[index] = step.model_copy(update=changes)
                return
        raise KeyError(f"Step log {step_id} not found")

    async def delete_step_logs(self, run_id: str) -> int:
        before = len(self._steps)
        self._steps = [s for s in self._steps if s.run_id != run_id]
        return before - len(self._steps)
