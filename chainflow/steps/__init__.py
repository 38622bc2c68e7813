"""Step variants. Importing this package registers every built-in variant."""

from .agent import AgentConfig, AgentStep
from .base import (
    STEP_REGISTRY,
    NodeConfig,
    Step,
    StepDependencies,
    StepType,
    register_step,
)
from .text_input import TextInputConfig, TextInputStep

__all__ = [
    "AgentConfig",
    "AgentStep",
    "NodeConfig",
    "STEP_REGISTRY",
    "Step",
    "StepDependencies",
    "StepType",
    "TextInputConfig",
    "TextInputStep",
    "register_step",
]
