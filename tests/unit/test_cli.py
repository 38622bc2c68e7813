import asyncio

import pytest
from typer.testing import CliRunner

from chainflow.cli import app
from chainflow.contracts import RunStatus
from chainflow.persistence import RunLog, SQLiteWorkflowRepository, StepLog

DEFINITIONS = """
workflows:
  - id: wf-cli
    name: CLI workflow
    nodes:
      - id: first
        config: {type: text_input, value: hello, name: Greeting}
      - id: second
        config: {type: text_input}
    edges:
      - {source: first, target: second}
"""


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = tmp_path / "chainflow.db"
    monkeypatch.setenv("CHAINFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.setenv("CHAINFLOW_DATABASE_URL", f"sqlite://{path}")
    monkeypatch.delenv("CHAINFLOW_TRANSPORT", raising=False)
    return path


@pytest.fixture
def runner():
    return CliRunner()


def test_workflow_load_and_show(db_path, tmp_path, runner):
    definitions = tmp_path / "workflows.yaml"
    definitions.write_text(DEFINITIONS)

    result = runner.invoke(app, ["workflow", "load", str(definitions)])
    assert result.exit_code == 0, result.stdout
    assert "Loaded 0 agents" in result.stdout
    assert "wf-cli\tCLI workflow" in result.stdout

    result = runner.invoke(app, ["workflow", "show", "wf-cli"])
    assert result.exit_code == 0, result.stdout
    assert "1. first Greeting" in result.stdout
    assert "2. second text_input" in result.stdout


def test_workflow_load_missing_path(db_path, tmp_path, runner):
    result = runner.invoke(app, ["workflow", "load", str(tmp_path / "nope.yaml")])
    assert result.exit_code == 1
    assert "Specified path does not exist" in result.stdout


def test_workflow_show_missing_and_invalid(db_path, runner, make_workflow):
    repo = SQLiteWorkflowRepository(db_path)
    workflow, _ = asyncio.run(
        make_workflow(repo, [{"type": "text_input"}, {"type": "text_input"}])
    )
    # Drop the edge so both nodes become start nodes.
    repo._execute("DELETE FROM workflow_edges")

    result = runner.invoke(app, ["workflow", "show", workflow.id])
    assert result.exit_code == 1
    assert "Invalid chain: Workflow chain does not support multiple start nodes" in result.stdout

    result = runner.invoke(app, ["workflow", "show", "missing-id"])
    assert result.exit_code == 1
    assert "Workflow not found" in result.stdout


def test_run_start_prints_identifiers(db_path, runner, make_workflow):
    repo = SQLiteWorkflowRepository(db_path)
    workflow, _ = asyncio.run(make_workflow(repo, [{"type": "text_input"}]))

    result = runner.invoke(app, ["run", "start", workflow.id, "--job-id", "job-42"])
    assert result.exit_code == 0, result.stdout
    assert "Job ID: job-42" in result.stdout
    assert "Status: pending" in result.stdout

    (run,) = asyncio.run(repo.list_run_logs(workflow.id))
    assert f"Run ID: {run.id}" in result.stdout
    assert run.job_id == "job-42"


def test_run_start_unknown_workflow(db_path, runner):
    result = runner.invoke(app, ["run", "start", "missing-id"])
    assert result.exit_code == 1
    assert "Workflow missing-id not found" in result.stdout


def test_run_show_and_list(db_path, runner):
    repo = SQLiteWorkflowRepository(db_path)

    async def _seed():
        run = await repo.create_run_log(RunLog(workflow_id="wf-1"))
        step = await repo.create_step_log(StepLog(run_id=run.id, node_id="n1", name="Text Input"))
        await repo.update_step_log(step.id, status=RunStatus.COMPLETED, output="hello")
        failed = await repo.create_step_log(StepLog(run_id=run.id, node_id="n2", name="Writer"))
        await repo.update_step_log(failed.id, status=RunStatus.FAILED, error="boom")
        await repo.update_run_log(run.id, status=RunStatus.FAILED, error="boom")
        return run

    run = asyncio.run(_seed())

    result = runner.invoke(app, ["run", "show", run.id])
    assert result.exit_code == 0, result.stdout
    lines = result.stdout.splitlines()
    assert lines[0] == f"Run {run.id}: failed (boom)"
    assert lines[1] == "- Text Input [completed] -> hello"
    assert lines[2] == "- Writer [failed] boom"

    result = runner.invoke(app, ["run", "list", "--workflow-id", "wf-1"])
    assert result.exit_code == 0
    assert f"{run.id}\twf-1\tfailed" in result.stdout

    result = runner.invoke(app, ["run", "list", "--workflow-id", "wf-2"])
    assert "No runs found" in result.stdout

    result = runner.invoke(app, ["run", "show", "missing-id"])
    assert result.exit_code == 1
    assert "Run not found" in result.stdout
