"""HTTP API exposing analysis runs, their status, and workflows."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Header, Response, status

from agentic_workflow.core.errors import PersistenceError
from agentic_workflow.core.models import AnalysisRequest, AnalysisResponse, WorkflowStatus
from agentic_workflow.orchestration.orchestrator import Orchestrator
from agentic_workflow.runtime import get_orchestrator, get_store, get_workflows
from agentic_workflow.services.database import ExecutionStore
from agentic_workflow.workflows.base import WorkflowContext, WorkflowRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/analyze", status_code=status.HTTP_202_ACCEPTED, tags=["analysis"])
async def analyze(
    request: AnalysisRequest,
    response: Response,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Start an analysis; ``streaming`` requests wait for the aggregate."""
    if not request.streaming:
        analysis_id = orchestrator.submit(request)
        accepted = AnalysisResponse(
            success=True,
            project_id=request.project_id,
            analysis_types=request.analysis_types,
            results={"analysisId": analysis_id},
            metadata={"status": "processing"},
        )
        return accepted.model_dump(mode="json", by_alias=True)

    result = await orchestrator.run_analysis(request)
    response.status_code = status.HTTP_200_OK
    return result.model_dump(mode="json", by_alias=True)


@router.get("/analyze/status/{analysis_id}", tags=["analysis"])
async def analysis_status(
    analysis_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    return orchestrator.status.lookup(analysis_id)


@router.post("/workflow/{workflow_name}", tags=["workflows"])
async def run_workflow(
    workflow_name: str,
    payload: Optional[Dict[str, Any]] = Body(None),
    x_user_id: Optional[str] = Header(None),
    workflows: WorkflowRegistry = Depends(get_workflows),
    orchestrator: Orchestrator = Depends(get_orchestrator),
    store: Optional[ExecutionStore] = Depends(get_store),
) -> Dict[str, Any]:
    workflow = workflows.get(workflow_name)
    workflow_input = payload or {}

    execution_id: Optional[int] = None
    if store is not None:
        execution_id = await asyncio.to_thread(
            store.record_workflow_execution,
            workflow.name,
            "running",
            user_id=x_user_id,
            input_data=workflow_input,
        )

    started = time.perf_counter()
    result = await workflow.execute(
        WorkflowContext(workflow_input=workflow_input, orchestrator=orchestrator, user_id=x_user_id)
    )
    elapsed_ms = int((time.perf_counter() - started) * 1000)

    if store is not None and execution_id is not None:
        try:
            await asyncio.to_thread(
                store.update_workflow_execution,
                execution_id,
                result.status.value,
                result.data,
                result.error,
                elapsed_ms,
            )
        except PersistenceError as exc:
            logger.error("Failed to update workflow execution %s: %s", execution_id, exc.message)

    if result.status is WorkflowStatus.FAILED:
        logger.warning("Workflow %s failed: %s", workflow.name, result.error)
    return result.to_dict()


@router.get("/workflows", tags=["workflows"])
async def list_workflows(workflows: WorkflowRegistry = Depends(get_workflows)) -> List[Dict[str, Any]]:
    return [workflows.get(name).info() for name in workflows.names()]


@router.get("/agents", tags=["agents"])
async def list_agents(orchestrator: Orchestrator = Depends(get_orchestrator)) -> List[Dict[str, Any]]:
    return [agent.to_dict() for agent in orchestrator.list_agents()]
