"""Progress publishing and subscription tests."""

import pytest

from chainflow.contracts import JobMessage, RunStatus, WorkflowJobData
from chainflow.jobs import Job, JobQueue, progress_channel
from chainflow.progress import ProgressPublisher, open_run_progress, watch_run
from chainflow.transports.inmemory import InMemoryTransport


@pytest.fixture
def transport():
    return InMemoryTransport()


def _job(transport, run_id="run-1", queue_name="runs"):
    queue = JobQueue(transport, name=queue_name)
    message = JobMessage(
        data=WorkflowJobData(workflow_id="wf-1", run_id=run_id), job_id=f"job-{run_id}"
    )
    return Job(message, queue)


async def _publish_successful_run(publisher):
    await publisher.workflow(RunStatus.RUNNING)
    await publisher.step("n1", "Text Input", RunStatus.RUNNING)
    await publisher.step("n1", "Text Input", RunStatus.COMPLETED, output="hello")
    await publisher.workflow(RunStatus.COMPLETED)


@pytest.mark.asyncio
async def test_publisher_envelope_shapes(recording_job):
    job = recording_job("wf-1", "run-1")
    publisher = ProgressPublisher(job, "wf-1")

    workflow_envelope = await publisher.workflow(RunStatus.FAILED, error="boom")
    step_envelope = await publisher.step(
        "n1", "Writer", RunStatus.FAILED, error="boom"
    )

    assert job.envelopes == [workflow_envelope, step_envelope]
    assert workflow_envelope.to_wire() == {
        "type": "workflow_progress",
        "data": {"workflowId": "wf-1", "status": "failed", "error": "boom"},
    }
    assert step_envelope.to_wire() == {
        "type": "workflow_progress",
        "data": {
            "workflowId": "wf-1",
            "currentStep": {
                "nodeId": "n1",
                "name": "Writer",
                "status": "failed",
                "error": "boom",
            },
        },
    }


@pytest.mark.asyncio
async def test_watch_run_stops_at_terminal_event(transport):
    job = _job(transport)
    publisher = ProgressPublisher(job, "wf-1")
    progress = await open_run_progress(transport, "run-1", "runs")

    await _publish_successful_run(publisher)
    await publisher.workflow(RunStatus.RUNNING)

    async with progress:
        events = [event async for event in progress.events(lifespan=1)]

    assert [e.job_id for e in events] == ["job-run-1"] * 4
    assert [e.is_terminal for e in events] == [False, False, False, True]
    assert events[2].progress.data.current_step.output == "hello"
    assert transport.subscriber_count(progress_channel("runs", "run-1")) == 0


@pytest.mark.asyncio
async def test_watch_run_ignores_other_runs(transport):
    publisher = ProgressPublisher(_job(transport, "run-1"), "wf-1")
    other = ProgressPublisher(_job(transport, "run-2"), "wf-1")
    progress = await open_run_progress(transport, "run-1", "runs")

    await other.workflow(RunStatus.FAILED, error="not mine")
    await publisher.workflow(RunStatus.FAILED, error="mine")

    async with progress:
        events = [event async for event in progress.events(lifespan=1)]
    assert [e.progress.data.error for e in events] == ["mine"]
    assert all(e.run_id == "run-1" for e in events)


@pytest.mark.asyncio
async def test_failed_step_is_not_terminal(transport):
    publisher = ProgressPublisher(_job(transport), "wf-1")
    progress = await open_run_progress(transport, "run-1", "runs")

    await publisher.step("n1", "Writer", RunStatus.FAILED, error="boom")
    await publisher.workflow(RunStatus.FAILED, error="boom")

    async with progress:
        events = [event async for event in progress.events(lifespan=1)]
    assert [e.is_terminal for e in events] == [False, True]


@pytest.mark.asyncio
async def test_events_published_before_subscribing_are_not_replayed(transport):
    publisher = ProgressPublisher(_job(transport), "wf-1")
    await publisher.workflow(RunStatus.COMPLETED)

    events = [
        event async for event in watch_run(transport, "run-1", "runs", lifespan=0.1)
    ]

    assert events == []
    assert transport.subscriber_count(progress_channel("runs", "run-1")) == 0
