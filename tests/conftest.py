"""Shared fixtures for chainflow tests."""

from typing import Any

import pytest

from chainflow.contracts import ProgressEnvelope, WorkflowJobData
from chainflow.persistence import (
    InMemoryWorkflowRepository,
    RunLog,
    Workflow,
    WorkflowEdge,
    WorkflowNode,
)


class RecordingJob:
    """Stand-in for a delivered job that keeps every progress envelope."""

    def __init__(self, workflow_id: str, run_id: str, job_id: str = "job-1") -> None:
        self.id = job_id
        self.data = WorkflowJobData(workflow_id=workflow_id, run_id=run_id)
        self.attempt = 1
        self.envelopes: list[ProgressEnvelope] = []

    async def report_progress(self, envelope: ProgressEnvelope) -> None:
        self.envelopes.append(envelope)

    def transitions(self) -> list[tuple]:
        """(node_id or None, status) per envelope, in publish order."""
        result = []
        for envelope in self.envelopes:
            step = envelope.data.current_step
            if step is None:
                result.append((None, envelope.data.status))
            else:
                result.append((step.node_id, step.status))
        return result


async def create_linear_workflow(
    repo, configs: list[dict[str, Any]], name: str = "test workflow"
) -> tuple[Workflow, list[WorkflowNode]]:
    """Store a workflow whose nodes run in the order of ``configs``."""
    workflow = await repo.create_workflow(Workflow(name=name))
    nodes = []
    for config in configs:
        nodes.append(
            await repo.create_node(WorkflowNode(workflow_id=workflow.id, config=config))
        )
    for source, target in zip(nodes, nodes[1:]):
        await repo.create_edge(
            WorkflowEdge(
                workflow_id=workflow.id,
                source_node_id=source.id,
                target_node_id=target.id,
            )
        )
    return workflow, nodes


async def create_pending_run(repo, workflow_id: str) -> RunLog:
    return await repo.create_run_log(RunLog(workflow_id=workflow_id))


@pytest.fixture
def repo() -> InMemoryWorkflowRepository:
    return InMemoryWorkflowRepository()


@pytest.fixture
def make_workflow():
    return create_linear_workflow


@pytest.fixture
def make_run():
    return create_pending_run


@pytest.fixture
def recording_job():
    return RecordingJob
