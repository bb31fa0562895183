"""SQLite-backed record of workflow, analysis and agent executions."""
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from agentic_workflow.core.errors import PersistenceError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS workflow_executions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    workflow_name TEXT NOT NULL,
    status TEXT NOT NULL,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    completed_at DATETIME,
    execution_time_ms INTEGER,
    user_id TEXT,
    input_data TEXT,
    output_data TEXT,
    error TEXT
);

CREATE TABLE IF NOT EXISTS analysis_requests (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    analysis_id TEXT UNIQUE NOT NULL,
    project_id TEXT NOT NULL,
    status TEXT NOT NULL,
    analysis_types TEXT NOT NULL,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    completed_at DATETIME,
    execution_time_ms INTEGER,
    request_data TEXT,
    result_data TEXT,
    error TEXT
);

CREATE TABLE IF NOT EXISTS agent_executions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    agent_type TEXT NOT NULL,
    workflow_execution_id INTEGER,
    analysis_request_id INTEGER,
    status TEXT NOT NULL,
    confidence REAL,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    completed_at DATETIME,
    execution_time_ms INTEGER,
    input_data TEXT,
    output_data TEXT,
    error TEXT,
    FOREIGN KEY (workflow_execution_id) REFERENCES workflow_executions(id),
    FOREIGN KEY (analysis_request_id) REFERENCES analysis_requests(id)
);

CREATE INDEX IF NOT EXISTS idx_workflow_executions_workflow_name ON workflow_executions(workflow_name);
CREATE INDEX IF NOT EXISTS idx_workflow_executions_status ON workflow_executions(status);
CREATE INDEX IF NOT EXISTS idx_analysis_requests_project_id ON analysis_requests(project_id);
CREATE INDEX IF NOT EXISTS idx_analysis_requests_status ON analysis_requests(status);
CREATE INDEX IF NOT EXISTS idx_agent_executions_agent_type ON agent_executions(agent_type);
CREATE INDEX IF NOT EXISTS idx_agent_executions_workflow_execution_id ON agent_executions(workflow_execution_id);
CREATE INDEX IF NOT EXISTS idx_agent_executions_analysis_request_id ON agent_executions(analysis_request_id);
"""

TERMINAL_STATUSES = {"completed", "failed", "partial"}


def _dumps(value: Any) -> Optional[str]:
    return json.dumps(value, default=str) if value is not None else None


def _completed_at(status: str) -> Optional[str]:
    return datetime.now(timezone.utc).isoformat() if status in TERMINAL_STATUSES else None


def _decode(row: sqlite3.Row, *json_columns: str) -> Dict[str, Any]:
    record = dict(row)
    for column in json_columns:
        if record.get(column):
            record[column] = json.loads(record[column])
    return record


class ExecutionStore:
    """Stores JSON blobs about executions; callers never depend on the schema."""

    def __init__(self, path: str) -> None:
        self.path = path
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error("SQLite error on %s: %s", self.path, exc)
            raise PersistenceError(str(exc)) from exc
        finally:
            conn.close()

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        with self._connect() as conn:
            cursor = conn.execute(sql, params)
            return cursor.lastrowid

    def _fetch(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        with self._connect() as conn:
            return conn.execute(sql, params).fetchall()

    def initialize(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA)
        logger.info("SQLite execution store ready at %s", self.path)

    # Workflow executions

    def record_workflow_execution(
        self,
        workflow_name: str,
        status: str,
        user_id: Optional[str] = None,
        input_data: Any = None,
        output_data: Any = None,
        error: Optional[str] = None,
        execution_time_ms: Optional[int] = None,
    ) -> int:
        return self._execute(
            """
            INSERT INTO workflow_executions
            (workflow_name, status, user_id, input_data, output_data, error, execution_time_ms, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                workflow_name,
                status,
                user_id,
                _dumps(input_data),
                _dumps(output_data),
                error,
                execution_time_ms,
                _completed_at(status),
            ),
        )

    def update_workflow_execution(
        self,
        execution_id: int,
        status: str,
        output_data: Any = None,
        error: Optional[str] = None,
        execution_time_ms: Optional[int] = None,
    ) -> None:
        self._execute(
            """
            UPDATE workflow_executions
            SET status = ?, output_data = ?, error = ?, execution_time_ms = ?, completed_at = ?
            WHERE id = ?
            """,
            (status, _dumps(output_data), error, execution_time_ms, _completed_at(status), execution_id),
        )

    def get_workflow_execution(self, execution_id: int) -> Optional[Dict[str, Any]]:
        rows = self._fetch("SELECT * FROM workflow_executions WHERE id = ?", (execution_id,))
        return _decode(rows[0], "input_data", "output_data") if rows else None

    # Analysis requests

    def record_analysis_request(
        self,
        analysis_id: str,
        project_id: str,
        status: str,
        analysis_types: Sequence[str],
        request_data: Any = None,
    ) -> int:
        return self._execute(
            """
            INSERT INTO analysis_requests
            (analysis_id, project_id, status, analysis_types, request_data, completed_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                analysis_id,
                project_id,
                status,
                ",".join(analysis_types),
                _dumps(request_data),
                _completed_at(status),
            ),
        )

    def update_analysis_request(
        self,
        analysis_id: str,
        status: str,
        result_data: Any = None,
        error: Optional[str] = None,
        execution_time_ms: Optional[int] = None,
    ) -> None:
        self._execute(
            """
            UPDATE analysis_requests
            SET status = ?, result_data = ?, error = ?, execution_time_ms = ?, completed_at = ?
            WHERE analysis_id = ?
            """,
            (status, _dumps(result_data), error, execution_time_ms, _completed_at(status), analysis_id),
        )

    def get_analysis_request(self, analysis_id: str) -> Optional[Dict[str, Any]]:
        rows = self._fetch("SELECT * FROM analysis_requests WHERE analysis_id = ?", (analysis_id,))
        if not rows:
            return None
        record = _decode(rows[0], "request_data", "result_data")
        record["analysis_types"] = [t for t in record["analysis_types"].split(",") if t]
        return record

    # Agent executions

    def record_agent_execution(
        self,
        agent_type: str,
        status: str,
        *,
        workflow_execution_id: Optional[int] = None,
        analysis_id: Optional[str] = None,
        confidence: Optional[float] = None,
        input_data: Any = None,
        output_data: Any = None,
        error: Optional[str] = None,
        execution_time_ms: Optional[int] = None,
    ) -> int:
        return self._execute(
            """
            INSERT INTO agent_executions
            (agent_type, status, workflow_execution_id, analysis_request_id, confidence,
             input_data, output_data, error, execution_time_ms, completed_at)
            VALUES (?, ?, ?, (SELECT id FROM analysis_requests WHERE analysis_id = ?), ?, ?, ?, ?, ?, ?)
            """,
            (
                agent_type,
                status,
                workflow_execution_id,
                analysis_id,
                confidence,
                _dumps(input_data),
                _dumps(output_data),
                error,
                execution_time_ms,
                _completed_at(status),
            ),
        )

    def get_agent_executions(
        self,
        *,
        workflow_execution_id: Optional[int] = None,
        analysis_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        if workflow_execution_id is not None:
            rows = self._fetch(
                "SELECT * FROM agent_executions WHERE workflow_execution_id = ? ORDER BY id",
                (workflow_execution_id,),
            )
        elif analysis_id is not None:
            rows = self._fetch(
                """
                SELECT e.* FROM agent_executions e
                JOIN analysis_requests r ON r.id = e.analysis_request_id
                WHERE r.analysis_id = ? ORDER BY e.id
                """,
                (analysis_id,),
            )
        else:
            raise ValueError("Either workflow_execution_id or analysis_id must be provided")
        return [_decode(row, "input_data", "output_data") for row in rows]
