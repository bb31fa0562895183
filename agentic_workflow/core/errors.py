"""Exception hierarchy shared by the orchestrator and the HTTP layer."""
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional


class AppException(Exception):
    """Base exception for application errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_envelope(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(AppException):
    """Raised when a request is malformed; never retried."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)


class NoAgentsAvailable(AppException):
    def __init__(self, requested: Iterable[str]) -> None:
        requested = list(requested)
        super().__init__(
            "No suitable agents found for the requested analysis types",
            code="NO_AGENTS_AVAILABLE",
            status_code=422,
            details={"analysisTypes": requested},
        )


class AgentBusyError(AppException):
    """Raised when an agent is invoked while a previous run is still in flight."""

    def __init__(self, agent_name: str) -> None:
        super().__init__(
            f"Agent {agent_name} is already running",
            code="AGENT_BUSY",
            status_code=409,
            details={"agent": agent_name},
        )


class AgentTimeout(AppException):
    def __init__(self, agent_name: str, timeout: float) -> None:
        super().__init__(
            f"Agent timeout after {timeout:g}s",
            code="AGENT_TIMEOUT",
            status_code=504,
            details={"agent": agent_name, "timeout": timeout},
        )


class AgentExecutionError(AppException):
    def __init__(self, agent_name: str, message: str) -> None:
        super().__init__(
            message,
            code="AGENT_EXECUTION_ERROR",
            status_code=500,
            details={"agent": agent_name},
        )


class RetriesExhausted(AppException):
    """An agent failed every attempt of its retry budget."""

    def __init__(self, agent_kind: str, attempts: int, last_error: Optional[str]) -> None:
        self.agent_kind = agent_kind
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Agent {agent_kind} failed after {attempts} attempts: {last_error or 'unknown error'}",
            code="RETRIES_EXHAUSTED",
            status_code=502,
            details={"agent": agent_kind, "attempts": attempts, "lastError": last_error},
        )


class AnalysisNotFound(AppException):
    def __init__(self, analysis_id: str) -> None:
        super().__init__(
            "Analysis not found",
            code="ANALYSIS_NOT_FOUND",
            status_code=404,
            details={"analysisId": analysis_id},
        )


class WorkflowNotFound(AppException):
    def __init__(self, workflow_name: str, available: Iterable[str]) -> None:
        super().__init__(
            f"Workflow {workflow_name} not found",
            code="WORKFLOW_NOT_FOUND",
            status_code=404,
            details={"availableWorkflows": sorted(available)},
        )


class PersistenceError(AppException):
    def __init__(self, message: str) -> None:
        super().__init__(message, code="DATABASE_ERROR", status_code=500)
