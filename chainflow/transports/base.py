"""Base transport interface for chainflow jobs and progress events."""

from __future__ import annotations

import abc
from typing import Any, AsyncIterator, Generic, Optional, Tuple, TypeVar

from ..contracts import JobMessage

RawMessageT = TypeVar("RawMessageT")


class EventStream(metaclass=abc.ABCMeta):
    """Open subscription to one pub/sub channel.

    The subscription is live as soon as it is returned by
    :meth:`BaseTransport.open_event_stream`; events published earlier are not
    replayed.
    """

    def __init__(self, channel: str) -> None:
        self.channel = channel

    @abc.abstractmethod
    async def get(self, timeout: Optional[float] = None) -> Optional[dict[str, Any]]:
        """Return the next event, or ``None`` when ``timeout`` elapses."""
        raise NotImplementedError

    @abc.abstractmethod
    async def close(self) -> None:
        """Unsubscribe from the channel."""
        raise NotImplementedError

    async def __aenter__(self) -> "EventStream":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class BaseTransport(Generic[RawMessageT], metaclass=abc.ABCMeta):
    """Abstract base transport for message brokers."""

    async def connect(self) -> None:
        """Open connection to broker (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to broker (no-op by default)."""
        pass

    @abc.abstractmethod
    async def publish(self, topic: str, message: JobMessage) -> None:
        """Send a job to a topic/queue."""
        raise NotImplementedError

    @abc.abstractmethod
    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[RawMessageT, JobMessage]]:
        """Yield raw transport message and JobMessage pairs.

        Args:
            topic: The topic to subscribe to
            lifespan: Maximum time in seconds to keep connection open. If None, runs indefinitely.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def ack(self, raw_message: RawMessageT) -> None:
        """Acknowledge successful processing."""
        raise NotImplementedError

    @abc.abstractmethod
    async def publish_event(self, channel: str, event: dict[str, Any]) -> None:
        """Broadcast an event to current subscribers of ``channel``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def open_event_stream(self, channel: str) -> EventStream:
        """Subscribe to ``channel`` and return the live stream."""
        raise NotImplementedError
