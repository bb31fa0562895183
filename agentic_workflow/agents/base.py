"""Base agent definition used by the orchestrator."""
from __future__ import annotations

import abc
import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from agentic_workflow.core.errors import (
    AgentBusyError,
    AgentExecutionError,
    AgentTimeout,
    AppException,
)
from agentic_workflow.core.models import (
    AgentCapability,
    AgentDescriptor,
    AgentResult,
    AgentType,
    PriorityLevel,
)

logger = logging.getLogger(__name__)

MAX_HISTORY = 50


@dataclass(slots=True)
class AgentMemory:
    """Bounded record of what an agent has seen and produced."""

    conversation_history: List[Dict[str, Any]] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)
    last_update: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)

    def remember(self, input_data: Dict[str, Any], result: AgentResult) -> None:
        now = datetime.now(timezone.utc)
        self.conversation_history.append(
            {"input": input_data, "output": result.to_dict(), "timestamp": now.isoformat()}
        )
        if len(self.conversation_history) > MAX_HISTORY:
            del self.conversation_history[:-MAX_HISTORY]
        self.context["last_input"] = input_data
        self.context["last_output"] = result.to_dict()
        self.last_update = now


class Agent(abc.ABC):
    """Abstract agent producing one AgentResult per invocation.

    ``run`` exposes a single in-flight slot: a second call made before the
    previous one settles raises ``AgentBusyError`` instead of queueing.
    """

    def __init__(
        self,
        descriptor: AgentDescriptor,
        memory: Optional[AgentMemory] = None,
    ) -> None:
        self.descriptor = descriptor
        self.memory = memory or AgentMemory()
        self.task_count = 0
        self._slot = asyncio.Lock()
        self._last_result: Optional[AgentResult] = None
        self._abandoned: Set[asyncio.Future] = set()

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def kind(self) -> AgentType:
        return self.descriptor.kind

    @property
    def capabilities(self) -> Tuple[AgentCapability, ...]:
        return self.descriptor.capabilities

    @property
    def priority(self) -> PriorityLevel:
        return self.descriptor.priority

    @property
    def running(self) -> bool:
        return self._slot.locked()

    @property
    def last_result(self) -> Optional[AgentResult]:
        return self._last_result

    def has_capability(self, capability: AgentCapability) -> bool:
        return capability in self.descriptor.capabilities

    async def initialize(self) -> None:
        """Prepare tools and memory before the first run."""
        logger.info("Initializing agent %s", self.name)
        await self.setup_tools()
        await self.load_memory()

    async def cleanup(self) -> None:
        """Wait for abandoned ``process`` calls, then release tools and memory."""
        logger.info("Cleaning up agent %s", self.name)
        if self._abandoned:
            await asyncio.gather(*self._abandoned, return_exceptions=True)
        await self.save_memory()
        await self.cleanup_tools()

    @abc.abstractmethod
    async def process(self, input_data: Dict[str, Any]) -> AgentResult:
        """Compute the analysis for ``input_data``."""

    async def run(
        self,
        input_data: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> AgentResult:
        """Run ``process`` with a timeout, never letting its exceptions escape.

        On timeout the ``process`` task is abandoned rather than cancelled;
        whatever it eventually produces is discarded.
        """
        if self._slot.locked():
            raise AgentBusyError(self.name)

        async with self._slot:
            started = time.perf_counter()
            task = asyncio.ensure_future(self.process(input_data))
            try:
                done, _ = await asyncio.wait({task}, timeout=timeout)
            except asyncio.CancelledError:
                task.cancel()
                raise

            try:
                if task not in done:
                    self._abandon(task)
                    raise AgentTimeout(self.name, timeout)
                if task.cancelled():
                    raise AgentExecutionError(self.name, f"{self.name}.process was cancelled")
                result = task.result()
                if not isinstance(result, AgentResult):
                    raise TypeError(f"{self.name}.process returned {type(result).__name__}")
            except Exception as exc:  # noqa: BLE001
                error = exc if isinstance(exc, AppException) else AgentExecutionError(
                    self.name, str(exc) or type(exc).__name__
                )
                logger.error("Agent %s error: %s", self.name, error.message)
                result = AgentResult.failure(
                    error.message,
                    execution_time=time.perf_counter() - started,
                    metadata={"errorCode": error.code},
                )
            else:
                result = dataclasses.replace(
                    result, execution_time=time.perf_counter() - started
                )
                if self.descriptor.memory_enabled:
                    self.memory.remember(input_data, result)

            self._last_result = result
            self.task_count += 1
            return result

    @property
    def abandoned(self) -> int:
        """Timed-out ``process`` calls that are still running."""
        return len(self._abandoned)

    def _abandon(self, task: asyncio.Future) -> None:
        self._abandoned.add(task)
        task.add_done_callback(self._discard_abandoned)

    def _discard_abandoned(self, task: asyncio.Future) -> None:
        self._abandoned.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("Abandoned %s task failed after timeout: %s", self.name, exc)

    async def setup_tools(self) -> None:
        return None

    async def cleanup_tools(self) -> None:
        return None

    async def load_memory(self) -> None:
        return None

    async def save_memory(self) -> None:
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.name,
            "kind": self.kind.value,
            "capabilities": [capability.value for capability in self.capabilities],
            "priority": self.priority.value,
            "enabled": self.descriptor.enabled,
            "memory": {
                "lastUpdate": self.memory.last_update.isoformat(),
                "contextSize": len(self.memory.context),
                "historySize": len(self.memory.conversation_history),
            },
            "taskCount": self.task_count,
            "isRunning": self.running,
        }
