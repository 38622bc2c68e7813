"""In-memory transport for testing."""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from typing import Any, AsyncIterator, Deque, Dict, List, Optional, Tuple

from ..contracts import JobMessage
from .base import BaseTransport, EventStream


class InMemoryEventStream(EventStream):
    def __init__(self, transport: "InMemoryTransport", channel: str) -> None:
        super().__init__(channel)
        self._transport = transport
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._closed = False

    def deliver(self, event: dict[str, Any]) -> None:
        self._queue.put_nowait(event)

    async def get(self, timeout: Optional[float] = None) -> Optional[dict[str, Any]]:
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._transport._detach(self)


class InMemoryTransport(BaseTransport[Tuple[str, JobMessage]]):
    """Simple in-process queue and pub/sub for unit tests."""

    def __init__(self) -> None:
        self._queues: Dict[str, Deque[Tuple[str, JobMessage]]] = defaultdict(deque)
        self._streams: Dict[str, List[InMemoryEventStream]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def publish(self, topic: str, message: JobMessage) -> None:
        """Publish message to in-memory queue."""
        raw = (message.to_json(), message)
        async with self._lock:
            self._queues[topic].append(raw)

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[Tuple[str, JobMessage], JobMessage]]:
        """Subscribe to messages from topic.

        Args:
            topic: The topic to subscribe to
            lifespan: Maximum time in seconds to keep connection open. If None, runs indefinitely.
        """
        loop = asyncio.get_running_loop()
        start_time = loop.time() if lifespan else None

        while True:
            if lifespan and start_time:
                elapsed = loop.time() - start_time
                if elapsed >= lifespan:
                    break

            raw_message = None
            async with self._lock:
                if self._queues[topic]:
                    raw_message = self._queues[topic].popleft()
            if raw_message is not None:
                yield raw_message, raw_message[1]
                continue

            await asyncio.sleep(0.01)

    async def ack(self, raw_message: Tuple[str, JobMessage]) -> None:
        """No-op acknowledgment for in-memory transport."""
        pass

    async def publish_event(self, channel: str, event: dict[str, Any]) -> None:
        for stream in list(self._streams.get(channel, [])):
            stream.deliver(event)

    async def open_event_stream(self, channel: str) -> InMemoryEventStream:
        stream = InMemoryEventStream(self, channel)
        self._streams[channel].append(stream)
        return stream

    def _detach(self, stream: InMemoryEventStream) -> None:
        streams = self._streams.get(stream.channel, [])
        if stream in streams:
            streams.remove(stream)
        if not streams:
            self._streams.pop(stream.channel, None)

    def subscriber_count(self, channel: str) -> int:
        return len(self._streams.get(channel, []))
