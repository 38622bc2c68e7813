"""Example running a two-step workflow in a single process with chainflow."""

import asyncio
from pathlib import Path

from chainflow.loader import load_definitions, read_definitions
from chainflow.progress import open_run_progress
from chainflow.worker import build_runtime


async def main():
    """Load definitions, dispatch one run and follow it to the end."""
    # In-memory transport and repository unless config.yaml says otherwise
    runtime = build_runtime()

    definitions = read_definitions(Path(__file__).with_name("workflows.yaml"))
    (workflow,) = await load_definitions(definitions, runtime.repository)

    handle = await runtime.dispatcher.dispatch(workflow.id)
    print(f"Run {handle.run_id} queued as job {handle.job_id}")

    progress = await open_run_progress(
        runtime.transport, handle.run_id, runtime.queue.name
    )
    worker = asyncio.create_task(runtime.serve(lifespan=2))

    async with progress:
        async for event in progress.events(lifespan=2):
            data = event.progress.data
            if data.current_step:
                print(f"  {data.current_step.name}: {data.current_step.status}")
            else:
                print(f"Workflow {data.status}")

    await worker

    run = await runtime.repository.get_run_log(handle.run_id)
    for step in run.steps:
        print(f"{step.name} -> {step.output}")


if __name__ == "__main__":
    asyncio.run(main())
