"""Model-call collaborators used by agent steps."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Protocol

from pydantic_ai import Agent as PydanticAgent

from ..config import ChainflowConfig, load_config
from ..persistence.models import Agent

logger = logging.getLogger(__name__)


class ModelClient(Protocol):
    """Given an agent profile and an input, produce the agent's reply."""

    async def complete(self, agent: Agent, input: Optional[str]) -> str:
        ...


class EchoModelClient:
    """Offline stand-in that echoes the input, tagged with the agent's model."""

    def __init__(self, delay_seconds: float = 0.0) -> None:
        self.delay_seconds = delay_seconds

    async def complete(self, agent: Agent, input: Optional[str]) -> str:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        return f'[Agent {agent.model}] Processed input: "{input or ""}"'


class PydanticAIModelClient:
    """Runs agent profiles through pydantic-ai.

    ``Agent.model`` is passed through as a pydantic-ai model name, e.g.
    ``"openai:gpt-4o"``.
    """

    def __init__(self) -> None:
        self._agents: Dict[str, PydanticAgent] = {}

    def _agent_for(self, agent: Agent) -> PydanticAgent:
        cached = self._agents.get(agent.id)
        if cached is None:
            cached = PydanticAgent(
                agent.model,
                output_type=str,
                system_prompt=agent.system_prompt or (),
                name=agent.name,
            )
            self._agents[agent.id] = cached
        return cached

    async def complete(self, agent: Agent, input: Optional[str]) -> str:
        logger.debug(f"Running agent {agent.name} on {agent.model}")
        result = await self._agent_for(agent).run(input or "")
        return result.output


def get_model_client(config: Optional[ChainflowConfig] = None) -> ModelClient:
    """Factory selecting the model client configured under ``model_client``."""
    config = config or load_config()
    backend = config.model_client.backend
    if backend == "echo":
        return EchoModelClient(delay_seconds=config.model_client.delay_seconds)
    if backend == "pydantic_ai":
        return PydanticAIModelClient()
    raise ValueError(f"Unsupported model client backend: {backend}")
