from __future__ import annotations

from typing import Optional

from .base import NodeConfig, Step, StepDependencies, StepType, register_step


class TextInputConfig(NodeConfig):
    value: Optional[str] = None


@register_step(StepType.TEXT_INPUT)
class TextInputStep(Step):
    """Emits fixed text, unless the previous step produced some."""

    config_model = TextInputConfig
    default_name = "Text Input"

    def __init__(self, content: str, name: Optional[str] = None) -> None:
        super().__init__(name)
        self.content = content

    @classmethod
    def from_config(
        cls, node_id: str, config: TextInputConfig, deps: StepDependencies
    ) -> "TextInputStep":
        return cls(config.value or "", name=config.name)

    async def execute(self, input: Optional[str] = None) -> str:
        return input if input else self.content
