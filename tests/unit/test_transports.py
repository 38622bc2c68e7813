"""Transport tests."""

import asyncio

import pytest

from chainflow.contracts import JobMessage, WorkflowJobData
from chainflow.transports.inmemory import InMemoryTransport


def _message(run_id="run-1"):
    return JobMessage(data=WorkflowJobData(workflow_id="wf-1", run_id=run_id))


@pytest.mark.asyncio
async def test_inmemory_transport_basic():
    """Test basic InMemoryTransport publish/subscribe."""
    transport = InMemoryTransport()
    message = _message()

    await transport.publish("runs", message)

    message_received = False
    async for raw_msg, received_msg in transport.subscribe("runs"):
        assert received_msg.job_id == message.job_id
        assert received_msg.data.run_id == "run-1"

        await transport.ack(raw_msg)
        message_received = True
        break

    assert message_received


@pytest.mark.asyncio
async def test_inmemory_subscribe_preserves_order_and_topics():
    transport = InMemoryTransport()
    await transport.publish("runs", _message("a"))
    await transport.publish("other", _message("x"))
    await transport.publish("runs", _message("b"))

    received = [
        message.data.run_id
        async for _, message in transport.subscribe("runs", lifespan=0.1)
    ]
    assert received == ["a", "b"]


@pytest.mark.asyncio
async def test_inmemory_subscribe_stops_after_lifespan():
    transport = InMemoryTransport()

    async def drain():
        return [m async for _, m in transport.subscribe("empty", lifespan=0.05)]

    assert await asyncio.wait_for(drain(), timeout=1) == []


@pytest.mark.asyncio
async def test_event_stream_receives_events_after_open():
    transport = InMemoryTransport()
    await transport.publish_event("progress", {"seq": 0})

    async with await transport.open_event_stream("progress") as stream:
        assert transport.subscriber_count("progress") == 1
        await transport.publish_event("progress", {"seq": 1})
        await transport.publish_event("elsewhere", {"seq": 2})

        assert await stream.get(timeout=0.1) == {"seq": 1}
        assert await stream.get(timeout=0.05) is None

    assert transport.subscriber_count("progress") == 0


@pytest.mark.asyncio
async def test_event_is_delivered_to_every_stream():
    transport = InMemoryTransport()
    first = await transport.open_event_stream("progress")
    second = await transport.open_event_stream("progress")

    await transport.publish_event("progress", {"seq": 1})

    assert await first.get(timeout=0.1) == {"seq": 1}
    assert await second.get(timeout=0.1) == {"seq": 1}
    await first.close()
    await first.close()
    assert transport.subscriber_count("progress") == 1
    await second.close()


@pytest.mark.asyncio
async def test_redis_transport_import():
    """Redis transport can be instantiated without a server."""
    from chainflow.transports.redis import RedisTransport

    transport = RedisTransport()
    assert transport.host == "localhost"
    assert transport.port == 6379
    assert transport.prefix == "chainflow"
