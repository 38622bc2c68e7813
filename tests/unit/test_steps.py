"""Step variant tests."""

import pytest

from chainflow.agent.models import EchoModelClient
from chainflow.errors import InitializationError
from chainflow.persistence import Agent
from chainflow.steps import STEP_REGISTRY, AgentStep, StepType, TextInputStep


@pytest.mark.asyncio
async def test_text_input_uses_content_without_input():
    step = TextInputStep("default text")
    await step.initialize()

    assert await step.execute() == "default text"
    assert await step.execute(None) == "default text"
    assert await step.execute("") == "default text"


@pytest.mark.asyncio
async def test_text_input_passes_input_through():
    step = TextInputStep("default text")
    assert await step.execute("x") == "x"


def test_registry_contains_builtin_variants():
    assert STEP_REGISTRY[StepType.TEXT_INPUT] is TextInputStep
    assert STEP_REGISTRY[StepType.AGENT] is AgentStep


@pytest.mark.asyncio
async def test_agent_step_loads_profile_and_calls_model(repo):
    agent = await repo.create_agent(
        Agent(name="Summarizer", model="test-model", system_prompt="Be brief")
    )
    step = AgentStep(agent.id, repository=repo, model_client=EchoModelClient())

    await step.initialize()
    assert step.name == "Summarizer"
    assert step.profile.model == "test-model"

    output = await step.execute("some text")
    assert output == '[Agent test-model] Processed input: "some text"'


@pytest.mark.asyncio
async def test_agent_step_keeps_node_label(repo):
    agent = await repo.create_agent(Agent(name="Summarizer", model="m"))
    step = AgentStep(
        agent.id, repository=repo, model_client=EchoModelClient(), name="Summarize notes"
    )
    await step.initialize()
    assert step.name == "Summarize notes"


@pytest.mark.asyncio
async def test_agent_step_missing_agent(repo):
    step = AgentStep("missing", repository=repo, model_client=EchoModelClient())
    with pytest.raises(InitializationError, match="Agent missing not found"):
        await step.initialize()


@pytest.mark.asyncio
async def test_agent_step_propagates_model_failure(repo):
    class BrokenClient:
        async def complete(self, agent, input):
            raise RuntimeError("model unavailable")

    agent = await repo.create_agent(Agent(name="a", model="m"))
    step = AgentStep(agent.id, repository=repo, model_client=BrokenClient())
    await step.initialize()
    with pytest.raises(RuntimeError, match="model unavailable"):
        await step.execute("hi")
