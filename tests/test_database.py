"""Tests for the SQLite execution store."""
from __future__ import annotations

import pytest

from agentic_workflow.core.errors import PersistenceError
from agentic_workflow.services.database import ExecutionStore


@pytest.fixture
def store(tmp_path) -> ExecutionStore:
    store = ExecutionStore(str(tmp_path / "executions.db"))
    store.initialize()
    return store


def test_workflow_execution_lifecycle(store: ExecutionStore) -> None:
    execution_id = store.record_workflow_execution(
        "customer_support", "running", user_id="u-1", input_data={"query": "hi"}
    )

    running = store.get_workflow_execution(execution_id)
    assert running["status"] == "running"
    assert running["input_data"] == {"query": "hi"}
    assert running["completed_at"] is None

    store.update_workflow_execution(execution_id, "completed", {"ticketId": "SUP-000001"}, None, 12)

    finished = store.get_workflow_execution(execution_id)
    assert finished["status"] == "completed"
    assert finished["output_data"] == {"ticketId": "SUP-000001"}
    assert finished["execution_time_ms"] == 12
    assert finished["completed_at"] is not None


def test_missing_rows_return_none(store: ExecutionStore) -> None:
    assert store.get_workflow_execution(999) is None
    assert store.get_analysis_request("missing") is None


def test_analysis_request_lifecycle(store: ExecutionStore) -> None:
    store.record_analysis_request("a-1", "p1", "pending", ["sentiment", "market"], {"projectId": "p1"})

    store.update_analysis_request("a-1", "failed", None, "Agent market failed", 40)

    record = store.get_analysis_request("a-1")
    assert record["analysis_types"] == ["sentiment", "market"]
    assert record["request_data"] == {"projectId": "p1"}
    assert record["status"] == "failed"
    assert record["error"] == "Agent market failed"
    assert record["result_data"] is None


def test_agent_executions_link_to_analysis_and_workflow(store: ExecutionStore) -> None:
    store.record_analysis_request("a-1", "p1", "pending", ["sentiment"])
    workflow_id = store.record_workflow_execution("customer_support", "running")

    store.record_agent_execution(
        "sentiment", "completed", analysis_id="a-1", confidence=0.85, output_data={"score": 0.72}
    )
    store.record_agent_execution("chat", "failed", workflow_execution_id=workflow_id, error="offline")

    by_analysis = store.get_agent_executions(analysis_id="a-1")
    assert [row["agent_type"] for row in by_analysis] == ["sentiment"]
    assert by_analysis[0]["output_data"] == {"score": 0.72}
    by_workflow = store.get_agent_executions(workflow_execution_id=workflow_id)
    assert by_workflow[0]["error"] == "offline"


def test_agent_executions_need_a_filter(store: ExecutionStore) -> None:
    with pytest.raises(ValueError):
        store.get_agent_executions()


def test_duplicate_analysis_id_raises_persistence_error(store: ExecutionStore) -> None:
    store.record_analysis_request("a-1", "p1", "pending", ["sentiment"])

    with pytest.raises(PersistenceError):
        store.record_analysis_request("a-1", "p1", "pending", ["sentiment"])
