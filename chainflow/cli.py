"""Command line interface for running chainflow workers and runs."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

from chainflow.config import ChainflowConfig, load_config
from chainflow.errors import StructuralError, WorkflowNotFoundError
from chainflow.loader import load_definitions, read_definitions
from chainflow.persistence import get_repository
from chainflow.progress import watch_run
from chainflow.resolver import order_nodes
from chainflow.worker import build_runtime

app = typer.Typer(help="CLI for chainflow workflows")

# Command groups
run_app = typer.Typer(help="Commands for starting and inspecting runs")
workflow_app = typer.Typer(help="Commands for managing workflow definitions")

app.add_typer(run_app, name="run")
app.add_typer(workflow_app, name="workflow")


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="YAML config file (default: $CHAINFLOW_CONFIG or config.yaml)"
    ),
    log_level: Optional[str] = typer.Option(None, help="Override the configured log level"),
) -> None:
    """chainflow CLI entry point."""
    config = load_config(str(config_path) if config_path else None)
    logging.basicConfig(
        level=(log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = config


def _config(ctx: typer.Context) -> ChainflowConfig:
    return ctx.obj if isinstance(ctx.obj, ChainflowConfig) else load_config()


@app.command("worker")
def worker(
    ctx: typer.Context,
    lifespan: Optional[float] = None,
    concurrency: int = typer.Option(1, min=1, help="Runs executed at the same time"),
) -> None:
    """
    Run a worker process executing queued workflow runs.

    Example:
        chainflow worker
        chainflow worker --lifespan 300 --concurrency 4
    """
    runtime = build_runtime(_config(ctx))
    typer.echo(f"Starting worker on queue: {runtime.queue.name}")
    asyncio.run(runtime.serve(lifespan=lifespan, concurrency=concurrency))


@run_app.command("start")
def run_start(
    ctx: typer.Context,
    workflow_id: str,
    job_id: Optional[str] = typer.Option(None, help="Job id to use instead of a generated one"),
) -> None:
    """
    Create a pending run of a workflow and enqueue it for a worker.

    Example:
        chainflow run start 550e8400-e29b-41d4-a716-446655440000
    """
    runtime = build_runtime(_config(ctx))

    async def _start():
        try:
            return await runtime.dispatcher.dispatch(workflow_id, job_id=job_id)
        finally:
            await runtime.transport.disconnect()

    try:
        handle = asyncio.run(_start())
    except WorkflowNotFoundError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Run ID: {handle.run_id}")
    typer.echo(f"Job ID: {handle.job_id}")
    typer.echo(f"Status: {handle.status.value}")


@run_app.command("show")
def run_show(ctx: typer.Context, run_id: str) -> None:
    """
    Show a run's status and its step-by-step execution log.

    Example:
        chainflow run show 0190f3c2-...
        # Output: Run 0190f3c2-...: failed (boom)
        #         - Text Input [completed] -> hello
        #         - Writer [failed] boom
    """
    repo = get_repository(config=_config(ctx))
    run = asyncio.run(repo.get_run_log(run_id))
    if run is None:
        typer.echo("Run not found")
        raise typer.Exit(code=1)
    header = f"Run {run.id}: {run.status.value}"
    if run.error:
        header += f" ({run.error})"
    typer.echo(header)
    for step in run.steps:
        line = f"- {step.name} [{step.status.value}]"
        if step.output is not None:
            line += f" -> {step.output}"
        if step.error:
            line += f" {step.error}"
        typer.echo(line)


@run_app.command("list")
def run_list(
    ctx: typer.Context,
    workflow_id: Optional[str] = typer.Option(None, help="Only runs of this workflow"),
) -> None:
    """List runs with their current status."""
    repo = get_repository(config=_config(ctx))
    runs = asyncio.run(repo.list_run_logs(workflow_id))
    if not runs:
        typer.echo("No runs found")
        return
    for run in runs:
        typer.echo(f"{run.id}\t{run.workflow_id}\t{run.status.value}")


@run_app.command("watch")
def run_watch(
    ctx: typer.Context,
    run_id: str,
    lifespan: Optional[float] = None,
) -> None:
    """
    Print a run's live progress events as JSON until the run ends.

    Events published before the watch starts are not replayed; use
    'run show' for the persisted state.
    """
    runtime = build_runtime(_config(ctx))

    async def _watch() -> None:
        try:
            async for event in watch_run(
                runtime.transport, run_id, runtime.queue.name, lifespan=lifespan
            ):
                typer.echo(event.model_dump_json(by_alias=True, exclude_none=True))
        finally:
            await runtime.transport.disconnect()

    asyncio.run(_watch())


@workflow_app.command("load")
def workflow_load(ctx: typer.Context, path: Path) -> None:
    """
    Load agents and workflows from a YAML definitions file.

    Example:
        chainflow workflow load ./workflows.yaml
    """
    if not path.exists():
        typer.secho("Specified path does not exist", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    definitions = read_definitions(path)
    repo = get_repository(config=_config(ctx))
    workflows = asyncio.run(load_definitions(definitions, repo))
    typer.echo(f"Loaded {len(definitions.agents)} agents")
    for wf in workflows:
        typer.echo(f"{wf.id}\t{wf.name}")


@workflow_app.command("show")
def workflow_show(ctx: typer.Context, workflow_id: str) -> None:
    """Show a workflow's nodes in execution order."""
    repo = get_repository(config=_config(ctx))

    async def _load():
        return (
            await repo.get_workflow(workflow_id),
            await repo.find_nodes(workflow_id),
            await repo.find_edges(workflow_id),
        )

    workflow, nodes, edges = asyncio.run(_load())
    if workflow is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Workflow {workflow.id}: {workflow.name}")
    try:
        ordered = order_nodes(nodes, edges)
    except StructuralError as exc:
        typer.secho(f"Invalid chain: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    for position, node in enumerate(ordered, start=1):
        label = node.config.get("name") or node.type or "(untyped)"
        typer.echo(f"{position}. {node.id} {label}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
