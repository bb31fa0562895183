"""FastAPI entry-point exposing analysis and workflow endpoints."""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware

from agentic_workflow.api.errors import error_response, register_exception_handlers
from agentic_workflow.api.routes import router
from agentic_workflow.config import Config, config
from agentic_workflow.logging_config import configure_logging
from agentic_workflow.orchestration.orchestrator import Orchestrator
from agentic_workflow.runtime import (
    build_orchestrator,
    build_workflow_registry,
    get_default_store,
    get_llm_pool,
)
from agentic_workflow.services.database import ExecutionStore
from agentic_workflow.workflows.base import WorkflowRegistry

logger = logging.getLogger(__name__)


def create_app(
    *,
    settings: Config = config,
    orchestrator: Optional[Orchestrator] = None,
    workflows: Optional[WorkflowRegistry] = None,
    store: Optional[ExecutionStore] = None,
) -> FastAPI:
    """Build an application with its own orchestrator, workflows and store."""
    if store is None and orchestrator is None:
        store = get_default_store()
    if orchestrator is None:
        orchestrator = build_orchestrator(settings, store=store, llm_pool=get_llm_pool())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        if app.state.store is not None:
            app.state.store.initialize()
        await app.state.orchestrator.initialize()
        logger.info("Agentic Workflow API %s started (%s)", settings.api_version, settings.environment)
        yield
        await app.state.orchestrator.cleanup()

    app = FastAPI(title="Agentic Workflow API", version=settings.api_version, lifespan=lifespan)
    app.state.orchestrator = orchestrator
    app.state.workflows = workflows or build_workflow_registry()
    app.state.store = store

    if settings.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def enforce_request_timeout(request: Request, call_next):
        try:
            return await asyncio.wait_for(call_next(request), settings.request_timeout_ms / 1000)
        except asyncio.TimeoutError:
            logger.warning("%s %s timed out after %dms", request.method, request.url.path, settings.request_timeout_ms)
            return error_response("Request timeout", "REQUEST_TIMEOUT", status.HTTP_408_REQUEST_TIMEOUT)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("%s %s %d - %.0fms", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    register_exception_handlers(app)
    app.include_router(router)

    @app.get("/")
    async def root() -> dict:
        return {
            "status": "online",
            "service": "Agentic Workflow API",
            "version": settings.api_version,
            "defaultAnalysisTypes": [kind.value for kind in settings.orchestration.analyze_by_default],
            "endpoints": {
                "analyze": "/analyze",
                "analyze/status": "/analyze/status/{analysis_id}",
                "workflow": "/workflow/{workflow_name}",
                "agents": "/agents",
                "health": "/health",
            },
        }

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "healthy",
            "details": {
                "api": "up",
                "agents": len(app.state.orchestrator.list_agents()),
                "database": "enabled" if app.state.store is not None else "disabled",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        }

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("agentic_workflow.main:app", host="0.0.0.0", port=config.port, log_level=config.log_level)


if __name__ == "__main__":
    run()
