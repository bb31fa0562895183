"""Application runtime composition helpers."""
from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from fastapi import Request

from agentic_workflow.agents.base import Agent
from agentic_workflow.agents.chat import ChatAgent
from agentic_workflow.agents.chat import default_descriptor as chat_descriptor
from agentic_workflow.agents.sentiment import SentimentAgent
from agentic_workflow.config import Config, config
from agentic_workflow.orchestration.orchestrator import Orchestrator
from agentic_workflow.orchestration.status import StatusTracker
from agentic_workflow.services.database import ExecutionStore
from agentic_workflow.services.llm_pool import LLMPool
from agentic_workflow.workflows.base import WorkflowRegistry
from agentic_workflow.workflows.customer_support import CustomerSupportWorkflow


@lru_cache
def get_default_store() -> Optional[ExecutionStore]:
    if not config.database_path:
        return None
    return ExecutionStore(config.database_path)


@lru_cache
def get_llm_pool() -> LLMPool:
    pool = LLMPool()
    if config.openai:
        pool.register_openai(config.openai.model, config.openai)
    return pool


def build_agents(settings: Config, llm_pool: Optional[LLMPool] = None) -> List[Agent]:
    agents: List[Agent] = [SentimentAgent()]
    if settings.openai and llm_pool is not None and settings.openai.model in llm_pool:
        agents.append(ChatAgent(llm_pool, chat_descriptor(settings.openai.model)))
    return agents


def build_orchestrator(
    settings: Config = config,
    store: Optional[ExecutionStore] = None,
    llm_pool: Optional[LLMPool] = None,
) -> Orchestrator:
    return Orchestrator(
        config=settings.orchestration,
        agents=build_agents(settings, llm_pool),
        status_tracker=StatusTracker(settings.status_retention_seconds, store=store),
        store=store,
    )


def build_workflow_registry() -> WorkflowRegistry:
    return WorkflowRegistry([CustomerSupportWorkflow()])


# FastAPI dependencies: each app instance carries its own services on app.state.

def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def get_workflows(request: Request) -> WorkflowRegistry:
    return request.app.state.workflows


def get_store(request: Request) -> Optional[ExecutionStore]:
    return request.app.state.store
