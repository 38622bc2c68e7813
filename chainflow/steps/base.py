"""Step abstraction and the registry mapping node types to step classes."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from ..agent.models import ModelClient
    from ..persistence import WorkflowRepository


class StepType(str, Enum):
    AGENT = "agent"
    TEXT_INPUT = "text_input"


class NodeConfig(BaseModel):
    """Fields shared by every node configuration."""

    model_config = ConfigDict(extra="allow")

    type: StepType
    name: Optional[str] = None


@dataclass
class StepDependencies:
    """Collaborators handed to steps when they are built."""

    repository: "WorkflowRepository"
    model_client: Optional["ModelClient"] = None


class Step(metaclass=abc.ABCMeta):
    """Executable behaviour attached to one workflow node."""

    step_type: ClassVar[StepType]
    config_model: ClassVar[Type[NodeConfig]] = NodeConfig
    default_name: ClassVar[str] = "unnamed_step"

    def __init__(self, name: Optional[str] = None) -> None:
        self.name = name or self.default_name

    @classmethod
    @abc.abstractmethod
    def from_config(
        cls, node_id: str, config: Any, deps: StepDependencies
    ) -> "Step":
        """Build the step from its validated node configuration."""
        raise NotImplementedError

    async def initialize(self) -> None:
        """Prepare the step before the run starts (no-op by default)."""

    @abc.abstractmethod
    async def execute(self, input: Optional[str] = None) -> str:
        """Produce this step's output from the previous step's output."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


STEP_REGISTRY: Dict[StepType, Type[Step]] = {}


def register_step(step_type: StepType):
    """Class decorator adding a step class to ``STEP_REGISTRY``."""

    def decorator(cls: Type[Step]) -> Type[Step]:
        cls.step_type = step_type
        STEP_REGISTRY[step_type] = cls
        return cls

    return decorator
