"""PostgreSQL implementation of the workflow repository."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

import asyncpg

from .models import (
    RUN_LOG_FIELDS,
    STEP_LOG_FIELDS,
    Agent,
    RunLog,
    StepLog,
    Workflow,
    WorkflowEdge,
    WorkflowNode,
    check_fields,
)
from .repository import WorkflowRepository

_RUN_COLUMNS = "id, workflow_id, job_id, status, started_at, finished_at, error"
_STEP_COLUMNS = (
    "id, run_id, node_id, name, input, output, status, started_at, finished_at, error"
)


def _to_db(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class PostgresWorkflowRepository(WorkflowRepository):
    """Persist definitions and run state using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT
            );
            CREATE TABLE IF NOT EXISTS workflow_nodes (
                seq BIGSERIAL,
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                config JSONB NOT NULL
            );
            CREATE TABLE IF NOT EXISTS workflow_edges (
                seq BIGSERIAL,
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                source_node_id TEXT,
                target_node_id TEXT
            );
            CREATE TABLE IF NOT EXISTS agents (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                model TEXT NOT NULL,
                system_prompt TEXT
            );
            CREATE TABLE IF NOT EXISTS run_logs (
                seq BIGSERIAL,
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                job_id TEXT,
                status TEXT NOT NULL,
                started_at TIMESTAMPTZ,
                finished_at TIMESTAMPTZ,
                error TEXT
            );
            CREATE TABLE IF NOT EXISTS step_logs (
                seq BIGSERIAL,
                id TEXT PRIMARY KEY,
                run_id TEXT NOT NULL,
                node_id TEXT NOT NULL,
                name TEXT NOT NULL,
                input TEXT,
                output TEXT,
                status TEXT NOT NULL,
                started_at TIMESTAMPTZ NOT NULL,
                finished_at TIMESTAMPTZ,
                error TEXT
            );
            """
        )

    async def _execute(self, query: str, *params: Any) -> str:
        conn = await self._connect()
        try:
            return await conn.execute(query, *[_to_db(p) for p in params])
        finally:
            await conn.close()

    async def _fetch(self, query: str, *params: Any) -> list[asyncpg.Record]:
        conn = await self._connect()
        try:
            return await conn.fetch(query, *params)
        finally:
            await conn.close()

    async def _fetchrow(self, query: str, *params: Any) -> asyncpg.Record | None:
        conn = await self._connect()
        try:
            return await conn.fetchrow(query, *params)
        finally:
            await conn.close()

    async def _update(
        self, table: str, row_id: str, changes: dict[str, Any], allowed: frozenset[str]
    ) -> None:
        check_fields(changes, allowed)
        if not changes:
            return
        assignments = ", ".join(
            f"{column} = ${index}" for index, column in enumerate(changes, start=1)
        )
        status = await self._execute(
            f"UPDATE {table} SET {assignments} WHERE id = ${len(changes) + 1}",
            *changes.values(),
            row_id,
        )
        if status.endswith(" 0"):
            raise KeyError(f"{table} row {row_id} not found")

    @staticmethod
    def _run_from_row(row: asyncpg.Record, steps: list[StepLog] | None = None) -> RunLog:
        return RunLog(
            id=row["id"],
            workflow_id=row["workflow_id"],
            job_id=row["job_id"],
            status=row["status"],
            started_at=row["started_at"],
            finished_at=row["finished_at"],
            error=row["error"],
            steps=steps or [],
        )

    # ------------------------------------------------------------------
    async def create_workflow(self, workflow: Workflow) -> Workflow:
        await self._execute(
            "INSERT INTO workflows (id, name, description) VALUES ($1, $2, $3)",
            workflow.id,
            workflow.name,
            workflow.description,
        )
        return workflow

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        row = await self._fetchrow(
            "SELECT id, name, description FROM workflows WHERE id = $1", workflow_id
        )
        if not row:
            return None
        return Workflow(id=row["id"], name=row["name"], description=row["description"])

    async def create_node(self, node: WorkflowNode) -> WorkflowNode:
        await self._execute(
            "INSERT INTO workflow_nodes (id, workflow_id, config) VALUES ($1, $2, $3::jsonb)",
            node.id,
            node.workflow_id,
            json.dumps(node.config),
        )
        return node

    async def create_edge(self, edge: WorkflowEdge) -> WorkflowEdge:
        await self._execute(
            "INSERT INTO workflow_edges (id, workflow_id, source_node_id, target_node_id) VALUES ($1, $2, $3, $4)",
            edge.id,
            edge.workflow_id,
            edge.source_node_id,
            edge.target_node_id,
        )
        return edge

    async def create_agent(self, agent: Agent) -> Agent:
        await self._execute(
            "INSERT INTO agents (id, name, model, system_prompt) VALUES ($1, $2, $3, $4)",
            agent.id,
            agent.name,
            agent.model,
            agent.system_prompt,
        )
        return agent

    async def find_nodes(self, workflow_id: str) -> list[WorkflowNode]:
        rows = await self._fetch(
            "SELECT id, workflow_id, config FROM workflow_nodes WHERE workflow_id = $1 ORDER BY seq",
            workflow_id,
        )
        return [
            WorkflowNode(
                id=r["id"], workflow_id=r["workflow_id"], config=json.loads(r["config"])
            )
            for r in rows
        ]

    async def find_edges(self, workflow_id: str) -> list[WorkflowEdge]:
        rows = await self._fetch(
            "SELECT id, workflow_id, source_node_id, target_node_id FROM workflow_edges WHERE workflow_id = $1 ORDER BY seq",
            workflow_id,
        )
        return [
            WorkflowEdge(
                id=r["id"],
                workflow_id=r["workflow_id"],
                source_node_id=r["source_node_id"],
                target_node_id=r["target_node_id"],
            )
            for r in rows
        ]

    async def find_agent(self, agent_id: str) -> Agent | None:
        row = await self._fetchrow(
            "SELECT id, name, model, system_prompt FROM agents WHERE id = $1", agent_id
        )
        if not row:
            return None
        return Agent(
            id=row["id"],
            name=row["name"],
            model=row["model"],
            system_prompt=row["system_prompt"],
        )

    # ------------------------------------------------------------------
    async def create_run_log(self, run: RunLog) -> RunLog:
        await self._execute(
            f"INSERT INTO run_logs ({_RUN_COLUMNS}) VALUES ($1, $2, $3, $4, $5, $6, $7)",
            run.id,
            run.workflow_id,
            run.job_id,
            run.status,
            run.started_at,
            run.finished_at,
            run.error,
        )
        return run

    async def update_run_log(self, run_id: str, **changes: Any) -> None:
        await self._update("run_logs", run_id, changes, RUN_LOG_FIELDS)

    async def get_run_log(self, run_id: str) -> RunLog | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"SELECT {_RUN_COLUMNS} FROM run_logs WHERE id = $1", run_id
            )
            if not row:
                return None
            step_rows = await conn.fetch(
                f"SELECT {_STEP_COLUMNS} FROM step_logs WHERE run_id = $1 ORDER BY started_at, seq",
                run_id,
            )
        finally:
            await conn.close()
        steps = [StepLog(**dict(r)) for r in step_rows]
        return self._run_from_row(row, steps)

    async def list_run_logs(self, workflow_id: str | None = None) -> list[RunLog]:
        if workflow_id is None:
            rows = await self._fetch(f"SELECT {_RUN_COLUMNS} FROM run_logs ORDER BY seq")
        else:
            rows = await self._fetch(
                f"SELECT {_RUN_COLUMNS} FROM run_logs WHERE workflow_id = $1 ORDER BY seq",
                workflow_id,
            )
        return [self._run_from_row(r) for r in rows]

    async def create_step_log(self, step: StepLog) -> StepLog:
        await self._execute(
            f"INSERT INTO step_logs ({_STEP_COLUMNS}) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)",
            step.id,
            step.run_id,
            step.node_id,
            step.name,
            step.input,
            step.output,
            step.status,
            step.started_at,
            step.finished_at,
            step.error,
        )
        return step

    async def update_step_log(self, step_id: str, **changes: Any) -> None:
        await self._update("step_logs", step_id, changes, STEP_LOG_FIELDS)

    async def delete_step_logs(self, run_id: str) -> int:
        status = await self._execute("DELETE FROM step_logs WHERE run_id = $1", run_id)
        return int(status.split()[-1])
