"""Orchestrator resolving analysis kinds to agents and aggregating their results."""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from agentic_workflow.agents.base import Agent
from agentic_workflow.core.errors import (
    AgentBusyError,
    AppException,
    NoAgentsAvailable,
    PersistenceError,
    RetriesExhausted,
)
from agentic_workflow.core.models import (
    AgentResult,
    AgentType,
    AggregationMethod,
    AnalysisRequest,
    AnalysisResponse,
    AnalysisType,
    OrchestrationConfig,
)
from agentic_workflow.orchestration.cache import ResultCache
from agentic_workflow.orchestration.status import StatusTracker
from agentic_workflow.services.database import ExecutionStore

logger = logging.getLogger(__name__)


class Orchestrator:
    """Fan analysis requests out to registered agents and fold the results back in.

    A run is all-or-nothing: if any agent exhausts its retry budget the whole
    run fails, even when sibling agents succeeded.
    """

    def __init__(
        self,
        *,
        config: Optional[OrchestrationConfig] = None,
        agents: Iterable[Agent] = (),
        status_tracker: Optional[StatusTracker] = None,
        store: Optional[ExecutionStore] = None,
    ) -> None:
        self.config = config or OrchestrationConfig()
        self.status = status_tracker or StatusTracker()
        self._store = store
        self._agents: Dict[AgentType, Agent] = {}
        self._cache = ResultCache(self.config.cache_ttl_seconds)
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_agents)
        self._background: Set[asyncio.Task[None]] = set()
        for agent in agents:
            self.register_agent(agent)
        logger.info("Initialized orchestrator with %d agents", len(self._agents))

    def register_agent(self, agent: Agent) -> None:
        """Register ``agent`` under its kind, replacing any previous one."""
        self._agents[agent.kind] = agent
        logger.info("Registered agent %s for kind %s", agent.name, agent.kind.value)

    def get_agent(self, kind: AgentType) -> Optional[Agent]:
        return self._agents.get(kind)

    def list_agents(self) -> List[Agent]:
        return list(self._agents.values())

    async def initialize(self) -> None:
        await asyncio.gather(*(agent.initialize() for agent in self._agents.values()))
        logger.info("All agents initialized")

    async def cleanup(self) -> None:
        """Wait for detached runs, then release agent and cache resources."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        await asyncio.gather(
            *(agent.cleanup() for agent in self._agents.values()), return_exceptions=True
        )
        self._cache.clear()
        self.status.close()
        logger.info("All agents cleaned up")

    @staticmethod
    def new_analysis_id(project_id: str) -> str:
        return f"analysis_{int(time.time() * 1000)}_{project_id}_{uuid.uuid4().hex[:8]}"

    def get_cached_result(self, analysis_id: str) -> Optional[Dict[str, Any]]:
        return self._cache.get(analysis_id)

    def submit(self, request: AnalysisRequest) -> str:
        """Start a detached run and return its id; the outcome shows up only in ``status``."""
        analysis_id = self.new_analysis_id(request.project_id)
        self.status.create(analysis_id, request)
        task = asyncio.create_task(self._run_detached(request, analysis_id), name=analysis_id)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return analysis_id

    async def _run_detached(self, request: AnalysisRequest, analysis_id: str) -> None:
        try:
            await self.run_analysis(request, analysis_id)
        except AppException as exc:
            logger.error("Background analysis %s failed: %s", analysis_id, exc.message)
        except Exception:  # noqa: BLE001
            logger.exception("Background analysis %s crashed", analysis_id)

    async def run_analysis(
        self,
        request: AnalysisRequest,
        analysis_id: Optional[str] = None,
    ) -> AnalysisResponse:
        started = time.perf_counter()
        analysis_id = analysis_id or self.new_analysis_id(request.project_id)
        if analysis_id not in self.status:
            self.status.create(analysis_id, request)
        logger.info(
            "Starting analysis %s for project %s: %s",
            analysis_id,
            request.project_id,
            ", ".join(request.analysis_types),
        )

        try:
            agents = self._resolve_agents(request.known_types())
            if not agents:
                raise NoAgentsAvailable(request.analysis_types)

            kinds = list(agents)
            requested = [AnalysisType(kind.value) for kind in kinds]
            self.status.mark_processing(analysis_id, requested[0])

            outcomes = await asyncio.gather(
                *(
                    self._run_agent_with_retry(
                        agent,
                        self._prepare_agent_input(request),
                        timeout=request.timeout,
                        analysis_id=analysis_id,
                        requested=requested,
                    )
                    for agent in agents.values()
                ),
                return_exceptions=True,
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome

            results = self._aggregate(kinds, outcomes)
        except asyncio.CancelledError:
            self.status.fail(analysis_id, "Analysis cancelled", time.perf_counter() - started)
            logger.warning("Analysis %s cancelled", analysis_id)
            raise
        except Exception as exc:
            elapsed = time.perf_counter() - started
            message = exc.message if isinstance(exc, AppException) else str(exc)
            self.status.fail(analysis_id, message, elapsed)
            logger.error("Analysis %s failed for project %s: %s", analysis_id, request.project_id, message)
            raise

        if self.config.cache_enabled:
            self._cache.store(analysis_id, results)

        execution_time = time.perf_counter() - started
        self.status.complete(analysis_id, results, execution_time)
        logger.info("Analysis %s completed in %.3fs", analysis_id, execution_time)

        return AnalysisResponse(
            success=True,
            project_id=request.project_id,
            analysis_types=request.analysis_types,
            execution_time=execution_time,
            results=results,
            metadata={
                "analysisId": analysis_id,
                "agentsUsed": [kind.value for kind in kinds],
                "cacheTTL": self.config.cache_ttl_seconds if self.config.cache_enabled else 0,
                "priority": request.priority.value,
            },
        )

    async def _run_agent_with_retry(
        self,
        agent: Agent,
        agent_input: Dict[str, Any],
        *,
        timeout: float,
        analysis_id: str,
        requested: Sequence[AnalysisType],
    ) -> AgentResult:
        attempts = self.config.max_retries + 1
        last_error: Optional[str] = None

        for attempt in range(1, attempts + 1):
            logger.debug("Running agent %s, attempt %d/%d", agent.name, attempt, attempts)
            try:
                async with self._semaphore:
                    result = await agent.run(agent_input, timeout=timeout)
            except AgentBusyError as exc:
                last_error = exc.message
            else:
                if result.success:
                    await self._record_agent_execution(agent, analysis_id, agent_input, result)
                    self.status.record_progress(analysis_id, AnalysisType(agent.kind.value), requested)
                    return result
                last_error = result.error

            if attempt < attempts:
                logger.warning(
                    "Agent %s failed, retrying (%d/%d): %s", agent.name, attempt, attempts, last_error
                )
                await asyncio.sleep(self.config.retry_delay)

        failure = AgentResult.failure(last_error or "unknown error")
        await self._record_agent_execution(agent, analysis_id, agent_input, failure)
        raise RetriesExhausted(agent.kind.value, attempts, last_error)

    def _resolve_agents(self, analysis_types: Sequence[AnalysisType]) -> Dict[AgentType, Agent]:
        # Kinds without a registered, enabled agent are dropped silently.
        resolved: Dict[AgentType, Agent] = {}
        for analysis_type in analysis_types:
            agent = self._agents.get(analysis_type.agent_type)
            if agent is not None and agent.descriptor.enabled:
                resolved[agent.kind] = agent
        return resolved

    @staticmethod
    def _prepare_agent_input(request: AnalysisRequest) -> Dict[str, Any]:
        return {
            "project_id": request.project_id,
            "query_params": dict(request.query_params),
            "confidence_threshold": request.confidence_threshold,
            "priority": request.priority.value,
            "timeout": request.timeout,
        }

    def _aggregate(self, kinds: List[AgentType], results: Sequence[AgentResult]) -> Dict[str, Any]:
        method = self.config.result_aggregation
        if method is AggregationMethod.WEIGHTED:
            return self._weighted_aggregation(kinds, results)
        if method is AggregationMethod.CONFIDENCE:
            return self._confidence_aggregation(kinds, results)
        return self._simple_aggregation(kinds, results)

    @staticmethod
    def _simple_aggregation(kinds: List[AgentType], results: Sequence[AgentResult]) -> Dict[str, Any]:
        return {kind.value: result.data for kind, result in zip(kinds, results) if result.success}

    def _weighted_aggregation(self, kinds: List[AgentType], results: Sequence[AgentResult]) -> Dict[str, Any]:
        # No weighting formula is defined yet; behaves as simple aggregation.
        return self._simple_aggregation(kinds, results)

    def _confidence_aggregation(self, kinds: List[AgentType], results: Sequence[AgentResult]) -> Dict[str, Any]:
        # No confidence policy is defined yet; behaves as simple aggregation.
        return self._simple_aggregation(kinds, results)

    async def _record_agent_execution(
        self,
        agent: Agent,
        analysis_id: str,
        agent_input: Dict[str, Any],
        result: AgentResult,
    ) -> None:
        if self._store is None:
            return
        try:
            await asyncio.to_thread(
                self._store.record_agent_execution,
                agent.kind.value,
                "completed" if result.success else "failed",
                analysis_id=analysis_id,
                confidence=result.confidence,
                input_data=agent_input,
                output_data=result.data or None,
                error=result.error,
                execution_time_ms=int(result.execution_time * 1000),
            )
        except PersistenceError as exc:
            logger.error("Failed to record %s execution for %s: %s", agent.kind.value, analysis_id, exc.message)
