"""Tracks the latest known status of each submitted analysis."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional, Sequence

from agentic_workflow.core.errors import AnalysisNotFound, PersistenceError
from agentic_workflow.core.models import (
    AnalysisRequest,
    AnalysisState,
    AnalysisStatus,
    AnalysisType,
)
from agentic_workflow.services.database import ExecutionStore

logger = logging.getLogger(__name__)

PROCESSING_PROGRESS = 0.1


class StatusTracker:
    """Map from analysis id to its status, with bounded retention.

    Entries in a terminal state are evicted ``retention_seconds`` after they
    got there. An evicted id is indistinguishable from one that never existed.
    """

    def __init__(
        self,
        retention_seconds: float = 3600.0,
        store: Optional[ExecutionStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.retention_seconds = retention_seconds
        self._store = store
        self._clock = clock
        self._statuses: Dict[str, AnalysisStatus] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}

    def __contains__(self, analysis_id: str) -> bool:
        return self._live(analysis_id) is not None

    def __len__(self) -> int:
        return len(self._statuses)

    def create(self, analysis_id: str, request: Optional[AnalysisRequest] = None) -> AnalysisStatus:
        status = AnalysisStatus(analysis_id=analysis_id, created_at=self._clock())
        self._statuses[analysis_id] = status
        if request is not None:
            self._persist(
                self._store.record_analysis_request if self._store else None,
                analysis_id,
                request.project_id,
                AnalysisState.PENDING.value,
                list(request.analysis_types),
                request.model_dump(mode="json", by_alias=True),
            )
        return status

    def get(self, analysis_id: str) -> AnalysisStatus:
        status = self._live(analysis_id)
        if status is None:
            raise AnalysisNotFound(analysis_id)
        return status

    def lookup(self, analysis_id: str) -> Dict[str, Any]:
        """Return the wire form of a status, falling back to the store once evicted."""
        status = self._live(analysis_id)
        if status is not None:
            return status.to_dict()
        record = self._store.get_analysis_request(analysis_id) if self._store else None
        if record is None:
            raise AnalysisNotFound(analysis_id)
        state = AnalysisState(record["status"])
        progress = {AnalysisState.COMPLETED: 1.0, AnalysisState.FAILED: 0.0}.get(state, 0.5)
        payload: Dict[str, Any] = {
            "analysisId": analysis_id,
            "status": state.value,
            "progress": progress,
            "completedTypes": record["analysis_types"] if state is AnalysisState.COMPLETED else [],
            "currentType": None,
        }
        if record.get("result_data") is not None:
            payload["results"] = record["result_data"]
        if record.get("execution_time_ms") is not None:
            payload["executionTime"] = record["execution_time_ms"] / 1000
        if record.get("error"):
            payload["error"] = record["error"]
        return payload

    def mark_processing(self, analysis_id: str, current_type: Optional[AnalysisType]) -> None:
        status = self._active(analysis_id)
        if status is None:
            return
        status.status = AnalysisState.PROCESSING
        status.progress = PROCESSING_PROGRESS
        status.current_type = current_type

    def record_progress(
        self,
        analysis_id: str,
        finished: AnalysisType,
        requested: Sequence[AnalysisType],
    ) -> None:
        """Mark one kind as done; progress stays below 1.0 until ``complete``."""
        status = self._active(analysis_id)
        if status is None:
            return
        if finished not in status.completed_types:
            status.completed_types.append(finished)
        done = len(status.completed_types)
        status.progress = max(
            status.progress,
            round(PROCESSING_PROGRESS + (0.9 - PROCESSING_PROGRESS) * done / max(len(requested), 1), 4),
        )
        status.current_type = next(
            (kind for kind in requested if kind not in status.completed_types), None
        )

    def complete(
        self,
        analysis_id: str,
        results: Dict[str, Any],
        execution_time: float,
    ) -> None:
        status = self._active(analysis_id)
        if status is None:
            return
        status.status = AnalysisState.COMPLETED
        status.progress = 1.0
        status.current_type = None
        status.results = results
        status.execution_time = execution_time
        self._finish(status)
        self._persist(
            self._store.update_analysis_request if self._store else None,
            analysis_id,
            AnalysisState.COMPLETED.value,
            results,
            None,
            int(execution_time * 1000),
        )

    def fail(self, analysis_id: str, error: str, execution_time: Optional[float] = None) -> None:
        status = self._active(analysis_id)
        if status is None:
            return
        status.status = AnalysisState.FAILED
        status.progress = 0.0
        status.current_type = None
        status.error = error
        status.execution_time = execution_time
        self._finish(status)
        self._persist(
            self._store.update_analysis_request if self._store else None,
            analysis_id,
            AnalysisState.FAILED.value,
            None,
            error,
            int(execution_time * 1000) if execution_time is not None else None,
        )

    def close(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def _live(self, analysis_id: str) -> Optional[AnalysisStatus]:
        status = self._statuses.get(analysis_id)
        if status is None:
            return None
        if status.finished_at is not None and self._clock() - status.finished_at >= self.retention_seconds:
            self._evict(analysis_id)
            return None
        return status

    def _active(self, analysis_id: str) -> Optional[AnalysisStatus]:
        status = self._live(analysis_id)
        if status is None:
            logger.warning("Ignoring status update for unknown analysis %s", analysis_id)
            return None
        if status.status.terminal:
            logger.warning(
                "Ignoring status update for analysis %s already %s", analysis_id, status.status.value
            )
            return None
        return status

    def _finish(self, status: AnalysisStatus) -> None:
        status.finished_at = self._clock()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to own a timer; eviction happens on the next read.
            return
        self._timers[status.analysis_id] = loop.call_later(
            self.retention_seconds, self._evict, status.analysis_id
        )

    def _evict(self, analysis_id: str) -> None:
        self._statuses.pop(analysis_id, None)
        handle = self._timers.pop(analysis_id, None)
        if handle is not None:
            handle.cancel()
        logger.debug("Evicted status for analysis %s", analysis_id)

    def _persist(self, operation: Optional[Callable[..., Any]], *args: Any) -> None:
        if operation is None:
            return
        try:
            operation(*args)
        except PersistenceError as exc:
            logger.error("Failed to persist analysis record %s: %s", args[0], exc.message)
