"""Tests for the agent base class and the built-in agents."""
from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, Dict

import pytest

from agentic_workflow.agents.base import MAX_HISTORY, Agent
from agentic_workflow.agents.chat import ChatAgent
from agentic_workflow.agents.sentiment import DEFAULT_CATEGORIES, SentimentAgent
from agentic_workflow.core.errors import AgentBusyError
from agentic_workflow.core.models import (
    AgentCapability,
    AgentDescriptor,
    AgentResult,
    AgentType,
)
from agentic_workflow.services.llm_pool import LLMPool


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class GatedAgent(Agent):
    """Waits on ``release`` before answering; records whether it ever finished."""

    def __init__(self, **descriptor: Any) -> None:
        super().__init__(
            AgentDescriptor(
                kind=AgentType.MARKET,
                capabilities=(AgentCapability.MARKET_ANALYSIS,),
                **descriptor,
            )
        )
        self.release = asyncio.Event()
        self.finished = False

    async def process(self, input_data: Dict[str, Any]) -> AgentResult:
        await self.release.wait()
        self.finished = True
        return AgentResult(success=True, confidence=0.9, data={"echo": input_data["project_id"]})


class BrokenAgent(Agent):
    def __init__(self) -> None:
        super().__init__(AgentDescriptor(kind=AgentType.PRICING))

    async def process(self, input_data: Dict[str, Any]) -> AgentResult:
        raise RuntimeError("pricing feed unavailable")


@pytest.mark.anyio
async def test_run_returns_result_with_execution_time() -> None:
    agent = GatedAgent()
    agent.release.set()

    result = await agent.run({"project_id": "p1"}, timeout=1)

    assert result.success
    assert result.data == {"echo": "p1"}
    assert result.execution_time >= 0
    assert agent.task_count == 1
    assert agent.last_result is result
    assert not agent.running


@pytest.mark.anyio
async def test_second_run_while_busy_is_rejected() -> None:
    agent = GatedAgent()
    first = asyncio.create_task(agent.run({"project_id": "p1"}, timeout=1))
    await asyncio.sleep(0)
    assert agent.running

    with pytest.raises(AgentBusyError):
        await agent.run({"project_id": "p2"}, timeout=1)

    agent.release.set()
    result = await first
    assert result.success
    assert agent.task_count == 1


@pytest.mark.anyio
async def test_timeout_yields_failure_and_abandons_process() -> None:
    agent = GatedAgent()

    result = await agent.run({"project_id": "p1"}, timeout=0.05)

    assert not result.success
    assert result.data == {}
    assert "timeout" in result.error.lower()
    assert result.metadata["errorCode"] == "AGENT_TIMEOUT"
    assert not agent.running

    # The abandoned process is not cancelled and may still finish on its own.
    agent.release.set()
    await asyncio.sleep(0.01)
    assert agent.finished


@pytest.mark.anyio
async def test_process_exception_becomes_failed_result() -> None:
    agent = BrokenAgent()

    result = await agent.run({"project_id": "p1"})

    assert not result.success
    assert result.error == "pricing feed unavailable"
    assert result.confidence == 0.0
    assert result.metadata == {"error": True, "errorCode": "AGENT_EXECUTION_ERROR"}
    assert agent.task_count == 1


def test_capabilities_and_descriptor_properties() -> None:
    agent = GatedAgent()

    assert agent.has_capability(AgentCapability.MARKET_ANALYSIS)
    assert not agent.has_capability(AgentCapability.CHAT)
    assert agent.kind is AgentType.MARKET
    assert agent.to_dict()["kind"] == "market"


@pytest.mark.anyio
async def test_memory_keeps_only_recent_history() -> None:
    agent = GatedAgent()
    agent.release.set()

    for index in range(MAX_HISTORY + 5):
        await agent.run({"project_id": f"p{index}"})

    history = agent.memory.conversation_history
    assert len(history) == MAX_HISTORY
    assert history[-1]["input"] == {"project_id": f"p{MAX_HISTORY + 4}"}
    assert agent.memory.context["last_output"]["data"] == {"echo": f"p{MAX_HISTORY + 4}"}


@pytest.mark.anyio
async def test_memory_disabled_leaves_history_empty() -> None:
    agent = GatedAgent(memory_enabled=False)
    agent.release.set()

    await agent.run({"project_id": "p1"})

    assert agent.memory.conversation_history == []


def test_failed_result_cannot_carry_data() -> None:
    with pytest.raises(ValueError):
        AgentResult(success=False, data={"partial": True}, error="boom")
    with pytest.raises(ValueError):
        AgentResult(success=True, confidence=1.5)


@pytest.mark.anyio
async def test_sentiment_agent_uses_default_categories() -> None:
    agent = SentimentAgent(latency=0)

    result = await agent.run({"project_id": "bistro", "query_params": {}})

    assert result.success
    assert result.confidence == 0.85
    assert result.data["overall_sentiment"]["score"] == 0.72
    assert [c["category"] for c in result.data["category_analysis"]] == DEFAULT_CATEGORIES


@pytest.mark.anyio
async def test_sentiment_agent_breaks_down_requested_sources() -> None:
    agent = SentimentAgent(latency=0)

    result = await agent.run(
        {
            "project_id": "bistro",
            "query_params": {
                "sources": [{"platform": "yelp"}, {"platform": "google"}],
                "categories": ["Service"],
            },
        }
    )

    assert [p["platform"] for p in result.data["platform_breakdown"]] == ["yelp", "google"]
    assert [c["category"] for c in result.data["category_analysis"]] == ["Service"]
    assert result.metadata["sources"] == ["yelp", "google"]


class FakeCompletions:
    def __init__(self) -> None:
        self.calls = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        message = SimpleNamespace(content="Fridays are the busiest day.")
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.mark.anyio
async def test_chat_agent_forwards_message_to_pooled_client() -> None:
    completions = FakeCompletions()
    pool = LLMPool()
    pool.register_client("gpt-4o", SimpleNamespace(chat=SimpleNamespace(completions=completions)))
    agent = ChatAgent(pool)

    result = await agent.run(
        {"project_id": "bistro", "query_params": {"message": "When are we busiest?"}}
    )

    assert result.success
    assert result.data == {"response": "Fridays are the busiest day.", "model": "gpt-4o"}
    assert completions.calls[0]["messages"][-1]["content"].endswith("When are we busiest?")


@pytest.mark.anyio
async def test_chat_agent_without_message_fails() -> None:
    agent = ChatAgent(LLMPool())

    result = await agent.run({"project_id": "bistro", "query_params": {}})

    assert not result.success
    assert "queryParams.message" in result.error


class SelfCancellingAgent(Agent):
    def __init__(self) -> None:
        super().__init__(AgentDescriptor(kind=AgentType.SALES))

    async def process(self, input_data: Dict[str, Any]) -> AgentResult:
        asyncio.current_task().cancel()
        await asyncio.sleep(0)
        return AgentResult(success=True, data={"unreachable": True})


@pytest.mark.anyio
async def test_process_cancelling_itself_becomes_failed_result() -> None:
    agent = SelfCancellingAgent()

    result = await agent.run({"project_id": "p1"}, timeout=1)

    assert not result.success
    assert "cancelled" in result.error
    assert result.metadata["errorCode"] == "AGENT_EXECUTION_ERROR"
    assert not agent.running


@pytest.mark.anyio
async def test_abandoned_process_is_tracked_until_cleanup() -> None:
    agent = GatedAgent()

    await agent.run({"project_id": "p1"}, timeout=0.01)
    assert agent.abandoned == 1

    asyncio.get_running_loop().call_later(0.02, agent.release.set)
    await agent.cleanup()

    assert agent.finished
    assert agent.abandoned == 0


@pytest.mark.anyio
async def test_sentiment_results_do_not_share_mutable_data() -> None:
    agent = SentimentAgent(latency=0)

    first = await agent.run({"project_id": "bistro"})
    first.data["topic_clusters"][0]["score"] = -1.0
    first.data["recommendations"].clear()
    second = await agent.run({"project_id": "bistro"})

    assert second.data["topic_clusters"][0]["score"] == 0.82
    assert len(second.data["recommendations"]) == 4
