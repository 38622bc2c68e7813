"""Redis transport for cross-process job delivery and progress pub/sub."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Optional, Tuple

import redis.asyncio as redis
from pydantic import ValidationError

from ..contracts import JobMessage
from .base import BaseTransport, EventStream

logger = logging.getLogger(__name__)


class RedisEventStream(EventStream):
    def __init__(self, pubsub: Any, channel: str) -> None:
        super().__init__(channel)
        self._pubsub = pubsub

    async def get(self, timeout: Optional[float] = None) -> Optional[dict[str, Any]]:
        message = await self._pubsub.get_message(
            ignore_subscribe_messages=True, timeout=timeout
        )
        if message is None:
            return None
        return json.loads(message["data"])

    async def close(self) -> None:
        await self._pubsub.unsubscribe(self.channel)
        await self._pubsub.aclose()


class RedisTransport(BaseTransport[str]):
    """Redis lists as job queues, Redis pub/sub for progress."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        prefix: str = "chainflow",
    ) -> None:
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.prefix = prefix
        self._redis: Optional[redis.Redis] = None

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        # Test connection
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    def _key(self, name: str) -> str:
        return f"{self.prefix}:{name}"

    async def _client(self) -> redis.Redis:
        if not self._redis:
            await self.connect()
        return self._redis

    async def publish(self, topic: str, message: JobMessage) -> None:
        """Publish job to Redis list (acting as queue)."""
        client = await self._client()
        await client.lpush(self._key(topic), message.to_json())

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[str, JobMessage]]:
        """Subscribe to jobs from Redis queue."""
        client = await self._client()
        queue_name = self._key(topic)
        loop = asyncio.get_running_loop()
        start_time = loop.time() if lifespan else None

        while True:
            if lifespan and start_time:
                elapsed = loop.time() - start_time
                if elapsed >= lifespan:
                    break

            # Blocking pop with timeout
            result = await client.brpop(queue_name, timeout=1)

            if result:
                _, message_json = result
                try:
                    message = JobMessage.from_json(message_json)
                except ValidationError as e:
                    logger.error(f"Dropping malformed job on {queue_name}: {e}")
                    continue
                yield message_json, message

    async def ack(self, raw_message: str) -> None:
        """No-op acknowledgment for Redis transport (message already consumed)."""
        pass

    async def publish_event(self, channel: str, event: dict[str, Any]) -> None:
        client = await self._client()
        await client.publish(self._key(channel), json.dumps(event))

    async def open_event_stream(self, channel: str) -> RedisEventStream:
        client = await self._client()
        pubsub = client.pubsub()
        await pubsub.subscribe(self._key(channel))
        return RedisEventStream(pubsub, self._key(channel))
