"""Named, independently invokable workflows."""
from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from agentic_workflow.core.errors import WorkflowNotFound
from agentic_workflow.core.models import WorkflowStatus

if TYPE_CHECKING:
    from agentic_workflow.orchestration.orchestrator import Orchestrator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WorkflowContext:
    """Input handed to ``Workflow.execute``."""

    workflow_input: Dict[str, Any]
    orchestrator: Optional[Orchestrator] = None
    user_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class WorkflowResult:
    status: WorkflowStatus
    data: Dict[str, Any] = field(default_factory=dict)
    execution_time: float = 0.0
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "status": self.status.value,
            "data": self.data,
            "executionTime": self.execution_time,
            "metadata": self.metadata,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


class Workflow(abc.ABC):
    """Base class for workflows; ``execute`` reports failures instead of raising."""

    def __init__(self, name: str, description: str, schedule_enabled: bool = False) -> None:
        self.name = name
        self.description = description
        self.schedule_enabled = schedule_enabled

    @abc.abstractmethod
    async def execute(self, context: WorkflowContext) -> WorkflowResult:
        """Run the workflow against ``context``."""

    def info(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "scheduleEnabled": self.schedule_enabled,
        }


def normalize_workflow_name(name: str) -> str:
    return name.strip().lower().replace("-", "_")


class WorkflowRegistry:
    """Lookup of workflows by name; ``customer-support`` and ``customer_support`` are the same."""

    def __init__(self, workflows: Iterable[Workflow] = ()) -> None:
        self._workflows: Dict[str, Workflow] = {}
        for workflow in workflows:
            self.register(workflow)

    def register(self, workflow: Workflow) -> None:
        self._workflows[normalize_workflow_name(workflow.name)] = workflow
        logger.info("Registered workflow %s", workflow.name)

    def get(self, name: str) -> Workflow:
        workflow = self._workflows.get(normalize_workflow_name(name))
        if workflow is None:
            raise WorkflowNotFound(name, self.names())
        return workflow

    def names(self) -> List[str]:
        return [workflow.name for workflow in self._workflows.values()]

    def __contains__(self, name: str) -> bool:
        return normalize_workflow_name(name) in self._workflows
