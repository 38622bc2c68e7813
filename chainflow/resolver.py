"""Turns a workflow's nodes and edges into an ordered chain of steps."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from pydantic import ValidationError

from .agent.models import ModelClient
from .errors import InitializationError, StructuralError, UnsupportedNodeError
from .persistence import WorkflowEdge, WorkflowNode, WorkflowRepository
from .steps import STEP_REGISTRY, Step, StepDependencies, StepType

logger = logging.getLogger(__name__)


@dataclass
class ChainLink:
    node_id: str
    step: Step


@dataclass
class WorkflowChain:
    """Steps of one workflow in execution order."""

    workflow_id: str
    links: List[ChainLink] = field(default_factory=list)

    def __iter__(self) -> Iterator[ChainLink]:
        return iter(self.links)

    def __len__(self) -> int:
        return len(self.links)

    @property
    def node_ids(self) -> List[str]:
        return [link.node_id for link in self.links]


def order_nodes(
    nodes: List[WorkflowNode], edges: List[WorkflowEdge]
) -> List[WorkflowNode]:
    """Validate that ``edges`` link ``nodes`` into one chain and return it in order.

    Raises:
        StructuralError: dangling or foreign edge, branching, no or several
            start nodes, a cycle, or nodes the chain never reaches.
    """
    by_id: Dict[str, WorkflowNode] = {node.id: node for node in nodes}
    next_node: Dict[str, str] = {}
    targets = set()

    for edge in edges:
        if not edge.source_node_id or not edge.target_node_id:
            raise StructuralError(
                f"Workflow edge {edge.id} is missing either source node or target node"
            )
        for endpoint in (edge.source_node_id, edge.target_node_id):
            if endpoint not in by_id:
                raise StructuralError(
                    f"Workflow edge {edge.id} references unknown node {endpoint}"
                )
        if edge.source_node_id in next_node:
            raise StructuralError(
                f"Node {edge.source_node_id} has more than one outgoing edge",
                node_id=edge.source_node_id,
            )
        next_node[edge.source_node_id] = edge.target_node_id
        targets.add(edge.target_node_id)

    start_nodes = [node for node in nodes if node.id not in targets]
    if len(start_nodes) > 1:
        raise StructuralError("Workflow chain does not support multiple start nodes")
    if not start_nodes:
        raise StructuralError("Workflow chain has no start node")

    ordered: List[WorkflowNode] = []
    seen = set()
    current: Optional[str] = start_nodes[0].id
    while current is not None:
        if current in seen:
            raise StructuralError(
                f"Workflow chain contains a cycle at node {current}", node_id=current
            )
        seen.add(current)
        ordered.append(by_id[current])
        current = next_node.get(current)

    if len(ordered) != len(by_id):
        unreachable = sorted(set(by_id) - seen)
        raise StructuralError(
            f"Workflow chain has unreachable nodes: {', '.join(unreachable)}"
        )
    return ordered


def build_step(node: WorkflowNode, deps: StepDependencies) -> Step:
    """Construct the step variant registered for ``node``'s type tag."""
    tag = node.type
    if not tag:
        raise UnsupportedNodeError(
            f"Node {node.id} has no type in its config", node_id=node.id
        )
    try:
        step_cls = STEP_REGISTRY[StepType(tag)]
    except (ValueError, KeyError):
        raise UnsupportedNodeError(
            f"Unsupported node type in workflow chain: {tag}", node_id=node.id
        ) from None

    try:
        config = step_cls.config_model.model_validate(node.config)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise InitializationError(
            f"Node {node.id} has invalid {tag} config: {location}: {first['msg']}",
            node_id=node.id,
        ) from e
    return step_cls.from_config(node.id, config, deps)


class ChainResolver:
    """Loads a workflow definition and resolves it into a :class:`WorkflowChain`."""

    def __init__(
        self,
        repository: WorkflowRepository,
        model_client: Optional[ModelClient] = None,
    ) -> None:
        self._repository = repository
        self._deps = StepDependencies(repository=repository, model_client=model_client)

    async def resolve(self, workflow_id: str) -> WorkflowChain:
        nodes = await self._repository.find_nodes(workflow_id)
        edges = await self._repository.find_edges(workflow_id)

        chain = WorkflowChain(workflow_id=workflow_id)
        for node in order_nodes(nodes, edges):
            step = build_step(node, self._deps)
            try:
                await step.initialize()
            except InitializationError as e:
                e.node_id = e.node_id or node.id
                raise
            chain.links.append(ChainLink(node_id=node.id, step=step))

        logger.info(f"Resolved workflow {workflow_id} into {len(chain)} steps")
        return chain
