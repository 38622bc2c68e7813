"""SQLite implementation of the workflow repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

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
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteWorkflowRepository(WorkflowRepository):
    """Persist definitions and run state using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.executescript(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT
            );
            CREATE TABLE IF NOT EXISTS workflow_nodes (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                config TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS workflow_edges (
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
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                job_id TEXT,
                status TEXT NOT NULL,
                started_at TEXT,
                finished_at TEXT,
                error TEXT
            );
            CREATE TABLE IF NOT EXISTS step_logs (
                id TEXT PRIMARY KEY,
                run_id TEXT NOT NULL,
                node_id TEXT NOT NULL,
                name TEXT NOT NULL,
                input TEXT,
                output TEXT,
                status TEXT NOT NULL,
                started_at TEXT NOT NULL,
                finished_at TEXT,
                error TEXT
            );
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, [_to_db(p) for p in params])
        self._conn.commit()
        return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    async def _update(
        self, table: str, row_id: str, changes: dict[str, Any], allowed: frozenset[str]
    ) -> None:
        check_fields(changes, allowed)
        if not changes:
            return
        assignments = ", ".join(f"{column} = ?" for column in changes)
        updated = await asyncio.to_thread(
            self._execute,
            f"UPDATE {table} SET {assignments} WHERE id = ?",
            *changes.values(),
            row_id,
        )
        if not updated:
            raise KeyError(f"{table} row {row_id} not found")

    @staticmethod
    def _run_from_row(row: sqlite3.Row, steps: list[StepLog] | None = None) -> RunLog:
        return RunLog(
            id=row["id"],
            workflow_id=row["workflow_id"],
            job_id=row["job_id"],
            status=row["status"],
            started_at=_parse_dt(row["started_at"]),
            finished_at=_parse_dt(row["finished_at"]),
            error=row["error"],
            steps=steps or [],
        )

    @staticmethod
    def _step_from_row(row: sqlite3.Row) -> StepLog:
        return StepLog(
            id=row["id"],
            run_id=row["run_id"],
            node_id=row["node_id"],
            name=row["name"],
            input=row["input"],
            output=row["output"],
            status=row["status"],
            started_at=_parse_dt(row["started_at"]),
            finished_at=_parse_dt(row["finished_at"]),
            error=row["error"],
        )

    # ------------------------------------------------------------------
    # Definitions
    async def create_workflow(self, workflow: Workflow) -> Workflow:
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO workflows (id, name, description) VALUES (?, ?, ?)",
            workflow.id,
            workflow.name,
            workflow.description,
        )
        return workflow

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT id, name, description FROM workflows WHERE id = ?",
            workflow_id,
        )
        if not row:
            return None
        return Workflow(id=row["id"], name=row["name"], description=row["description"])

    async def create_node(self, node: WorkflowNode) -> WorkflowNode:
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO workflow_nodes (id, workflow_id, config) VALUES (?, ?, ?)",
            node.id,
            node.workflow_id,
            json.dumps(node.config),
        )
        return node

    async def create_edge(self, edge: WorkflowEdge) -> WorkflowEdge:
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO workflow_edges (id, workflow_id, source_node_id, target_node_id) VALUES (?, ?, ?, ?)",
            edge.id,
            edge.workflow_id,
            edge.source_node_id,
            edge.target_node_id,
        )
        return edge

    async def create_agent(self, agent: Agent) -> Agent:
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO agents (id, name, model, system_prompt) VALUES (?, ?, ?, ?)",
            agent.id,
            agent.name,
            agent.model,
            agent.system_prompt,
        )
        return agent

    async def find_nodes(self, workflow_id: str) -> list[WorkflowNode]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT id, workflow_id, config FROM workflow_nodes WHERE workflow_id = ? ORDER BY rowid",
            workflow_id,
        )
        return [
            WorkflowNode(
                id=r["id"], workflow_id=r["workflow_id"], config=json.loads(r["config"])
            )
            for r in rows
        ]

    async def find_edges(self, workflow_id: str) -> list[WorkflowEdge]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT id, workflow_id, source_node_id, target_node_id FROM workflow_edges WHERE workflow_id = ? ORDER BY rowid",
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
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT id, name, model, system_prompt FROM agents WHERE id = ?",
            agent_id,
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
    # Run state
    async def create_run_log(self, run: RunLog) -> RunLog:
        await asyncio.to_thread(
            self._execute,
            f"INSERT INTO run_logs ({_RUN_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
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
        row = await asyncio.to_thread(
            self._fetchone,
            f"SELECT {_RUN_COLUMNS} FROM run_logs WHERE id = ?",
            run_id,
        )
        if not row:
            return None
        step_rows = await asyncio.to_thread(
            self._fetchall,
            f"SELECT {_STEP_COLUMNS} FROM step_logs WHERE run_id = ? ORDER BY started_at, rowid",
            run_id,
        )
        return self._run_from_row(row, [self._step_from_row(r) for r in step_rows])

    async def list_run_logs(self, workflow_id: str | None = None) -> list[RunLog]:
        if workflow_id is None:
            rows = await asyncio.to_thread(
                self._fetchall,
                f"SELECT {_RUN_COLUMNS} FROM run_logs ORDER BY rowid",
            )
        else:
            rows = await asyncio.to_thread(
                self._fetchall,
                f"SELECT {_RUN_COLUMNS} FROM run_logs WHERE workflow_id = ? ORDER BY rowid",
                workflow_id,
            )
        return [self._run_from_row(r) for r in rows]

    async def create_step_log(self, step: StepLog) -> StepLog:
        await asyncio.to_thread(
            self._execute,
            f"INSERT INTO step_logs ({_STEP_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
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
        return await asyncio.to_thread(
            self._execute, "DELETE FROM step_logs WHERE run_id = ?", run_id
        )
