"""Load workflow and agent definitions from a YAML document."""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, Field

from .persistence import Agent, Workflow, WorkflowEdge, WorkflowNode, WorkflowRepository
from .persistence.models import new_id


class NodeSpec(BaseModel):
    id: str = Field(default_factory=new_id)
    config: dict[str, Any]


class EdgeSpec(BaseModel):
    id: str = Field(default_factory=new_id)
    source: Optional[str] = None
    target: Optional[str] = None


class WorkflowSpec(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: Optional[str] = None
    nodes: List[NodeSpec] = Field(default_factory=list)
    edges: List[EdgeSpec] = Field(default_factory=list)


class DefinitionsFile(BaseModel):
    agents: List[Agent] = Field(default_factory=list)
    workflows: List[WorkflowSpec] = Field(default_factory=list)


def read_definitions(path: str | Path) -> DefinitionsFile:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    return DefinitionsFile.model_validate(data)


async def load_definitions(
    definitions: DefinitionsFile, repository: WorkflowRepository
) -> list[Workflow]:
    """Store every agent and workflow of ``definitions`` in ``repository``."""
    for agent in definitions.agents:
        await repository.create_agent(agent)

    loaded: list[Workflow] = []
    for spec in definitions.workflows:
        workflow = await repository.create_workflow(
            Workflow(id=spec.id, name=spec.name, description=spec.description)
        )
        for node in spec.nodes:
            await repository.create_node(
                WorkflowNode(id=node.id, workflow_id=workflow.id, config=node.config)
            )
        for edge in spec.edges:
            await repository.create_edge(
                WorkflowEdge(
                    id=edge.id,
                    workflow_id=workflow.id,
                    source_node_id=edge.source,
                    target_node_id=edge.target,
                )
            )
        loaded.append(workflow)
    return loaded
