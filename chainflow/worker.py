"""Wiring of queue, repository and coordinator into a worker process."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .agent import get_model_client
from .config import ChainflowConfig, load_config
from .contracts import BackoffSpec
from .dispatch import WorkflowDispatcher
from .engine import RunCoordinator
from .jobs import JobQueue
from .persistence import WorkflowRepository, get_repository
from .resolver import ChainResolver
from .transports import BaseTransport, get_transport


@dataclass
class Runtime:
    config: ChainflowConfig
    transport: BaseTransport
    repository: WorkflowRepository
    queue: JobQueue
    coordinator: RunCoordinator
    dispatcher: WorkflowDispatcher

    async def serve(self, lifespan: Optional[float] = None, concurrency: int = 1) -> None:
        """Process jobs until ``lifespan`` expires (forever when ``None``)."""
        try:
            await self.queue.process(
                self.coordinator,
                lifespan=lifespan,
                concurrency=concurrency,
                on_exhausted=self.coordinator.fail_run,
            )
        finally:
            await self.transport.disconnect()


def build_runtime(
    config: Optional[ChainflowConfig] = None,
    transport: Optional[BaseTransport] = None,
    repository: Optional[WorkflowRepository] = None,
) -> Runtime:
    """Assemble a runtime from configuration, using the given parts where provided."""
    config = config or load_config()
    transport = transport or get_transport(config=config)
    repository = repository or get_repository(config=config)
    queue = JobQueue(
        transport,
        name=config.queue.name,
        retries=config.queue.retries,
        backoff=BackoffSpec(
            strategy=config.queue.backoff_strategy, delay_ms=config.queue.backoff_ms
        ),
    )
    resolver = ChainResolver(repository, model_client=get_model_client(config))
    return Runtime(
        config=config,
        transport=transport,
        repository=repository,
        queue=queue,
        coordinator=RunCoordinator(repository, resolver),
        dispatcher=WorkflowDispatcher(repository, queue),
    )
