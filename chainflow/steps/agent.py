from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel

from ..agent.models import ModelClient
from ..errors import InitializationError
from ..persistence import Agent, WorkflowRepository
from .base import NodeConfig, Step, StepDependencies, StepType, register_step

logger = logging.getLogger(__name__)


class AgentRef(BaseModel):
    id: str


class AgentConfig(NodeConfig):
    agent: AgentRef


@register_step(StepType.AGENT)
class AgentStep(Step):
    """Hands the previous output to an agent's model and returns its reply."""

    config_model = AgentConfig
    default_name = "Agent"

    def __init__(
        self,
        agent_id: str,
        repository: WorkflowRepository,
        model_client: ModelClient,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(name)
        self.agent_id = agent_id
        self._label = name
        self._repository = repository
        self._model_client = model_client
        self.profile: Optional[Agent] = None

    @classmethod
    def from_config(
        cls, node_id: str, config: AgentConfig, deps: StepDependencies
    ) -> "AgentStep":
        if deps.model_client is None:
            raise InitializationError(
                f"Agent node {node_id} needs a model client", node_id=node_id
            )
        return cls(
            config.agent.id,
            repository=deps.repository,
            model_client=deps.model_client,
            name=config.name,
        )

    async def initialize(self) -> None:
        profile = await self._repository.find_agent(self.agent_id)
        if profile is None:
            raise InitializationError(f"Agent {self.agent_id} not found")
        self.profile = profile
        self.name = self._label or profile.name
        logger.debug(f"Loaded agent {profile.name} ({profile.model})")

    async def execute(self, input: Optional[str] = None) -> str:
        if self.profile is None:
            await self.initialize()
        return await self._model_client.complete(self.profile, input)
