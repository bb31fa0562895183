"""Tests for status tracking, retention and the result cache."""
from __future__ import annotations

import asyncio

import pytest

from agentic_workflow.core.errors import AnalysisNotFound
from agentic_workflow.core.models import AnalysisRequest, AnalysisState, AnalysisType
from agentic_workflow.orchestration.cache import ResultCache
from agentic_workflow.orchestration.status import StatusTracker
from agentic_workflow.services.database import ExecutionStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_new_status_is_pending() -> None:
    tracker = StatusTracker()

    status = tracker.create("a-1")

    assert status.status is AnalysisState.PENDING
    assert status.progress == 0.0
    assert tracker.lookup("a-1") == {
        "analysisId": "a-1",
        "status": "pending",
        "progress": 0.0,
        "completedTypes": [],
        "currentType": None,
    }


def test_unknown_id_is_not_found() -> None:
    with pytest.raises(AnalysisNotFound):
        StatusTracker().lookup("missing")


def test_progress_moves_forward_until_completion() -> None:
    tracker = StatusTracker()
    tracker.create("a-1")
    requested = [AnalysisType.SENTIMENT, AnalysisType.MARKET]

    tracker.mark_processing("a-1", AnalysisType.SENTIMENT)
    assert tracker.get("a-1").progress == 0.1

    tracker.record_progress("a-1", AnalysisType.SENTIMENT, requested)
    status = tracker.get("a-1")
    assert status.status is AnalysisState.PROCESSING
    assert 0.1 < status.progress < 1.0
    assert status.completed_types == [AnalysisType.SENTIMENT]
    assert status.current_type is AnalysisType.MARKET

    tracker.complete("a-1", {"sentiment": {}, "market": {}}, 0.25)
    payload = tracker.lookup("a-1")
    assert payload["status"] == "completed"
    assert payload["progress"] == 1.0
    assert payload["results"] == {"sentiment": {}, "market": {}}
    assert payload["executionTime"] == 0.25


def test_terminal_status_ignores_later_updates() -> None:
    tracker = StatusTracker()
    tracker.create("a-1")
    tracker.complete("a-1", {"sentiment": {}}, 0.1)

    tracker.fail("a-1", "too late")
    tracker.mark_processing("a-1", AnalysisType.SENTIMENT)

    status = tracker.get("a-1")
    assert status.status is AnalysisState.COMPLETED
    assert status.error is None


def test_failed_status_carries_error_and_no_results() -> None:
    tracker = StatusTracker()
    tracker.create("a-1")

    tracker.fail("a-1", "Agent pricing failed after 4 attempts", 1.5)

    payload = tracker.lookup("a-1")
    assert payload["status"] == "failed"
    assert payload["error"] == "Agent pricing failed after 4 attempts"
    assert "results" not in payload


def test_terminal_entries_expire_after_retention() -> None:
    clock = FakeClock()
    tracker = StatusTracker(retention_seconds=60, clock=clock)
    tracker.create("done")
    tracker.create("running")
    tracker.complete("done", {}, 0.1)

    clock.advance(59)
    assert "done" in tracker

    clock.advance(1)
    assert "done" not in tracker
    with pytest.raises(AnalysisNotFound):
        tracker.lookup("done")
    # Non-terminal entries are never evicted.
    assert tracker.get("running").status is AnalysisState.PENDING


@pytest.mark.anyio
async def test_retention_timer_evicts_without_reads() -> None:
    tracker = StatusTracker(retention_seconds=0.05)
    tracker.create("a-1")
    tracker.complete("a-1", {}, 0.01)
    assert len(tracker) == 1

    await asyncio.sleep(0.1)

    assert len(tracker) == 0


def test_evicted_status_falls_back_to_store(tmp_path) -> None:
    store = ExecutionStore(str(tmp_path / "status.db"))
    store.initialize()
    clock = FakeClock()
    tracker = StatusTracker(retention_seconds=10, store=store, clock=clock)
    request = AnalysisRequest(projectId="p1", analysisTypes=["sentiment"])

    tracker.create("a-1", request)
    tracker.complete("a-1", {"sentiment": {"score": 0.8}}, 0.5)
    clock.advance(11)

    payload = tracker.lookup("a-1")
    assert payload["status"] == "completed"
    assert payload["results"] == {"sentiment": {"score": 0.8}}
    assert payload["completedTypes"] == ["sentiment"]
    assert payload["executionTime"] == 0.5


def test_cache_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache = ResultCache(ttl_seconds=30, clock=clock)
    cache.store("a-1", {"sentiment": {}})

    clock.advance(29)
    assert cache.get("a-1") == {"sentiment": {}}

    clock.advance(1)
    assert cache.get("a-1") is None
    assert len(cache) == 0


def test_cache_store_purges_expired_entries() -> None:
    clock = FakeClock()
    cache = ResultCache(ttl_seconds=30, clock=clock)
    cache.store("old", {})

    clock.advance(31)
    cache.store("new", {})

    assert len(cache) == 1
    assert cache.get("new") == {}
