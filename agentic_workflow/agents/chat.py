"""LLM-powered agent answering free-form questions about a project."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from agentic_workflow.agents.base import Agent, AgentMemory
from agentic_workflow.core.models import (
    AgentCapability,
    AgentDescriptor,
    AgentResult,
    AgentType,
    PriorityLevel,
)

if TYPE_CHECKING:
    from agentic_workflow.services.llm_pool import LLMPool

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an analyst assistant for restaurant and retail projects. "
    "Answer concisely using the project context you are given."
)


def default_descriptor(model: str = "gpt-4o") -> AgentDescriptor:
    return AgentDescriptor(
        kind=AgentType.CHAT,
        capabilities=(AgentCapability.CHAT,),
        priority=PriorityLevel.LOW,
        model=model,
    )


class ChatAgent(Agent):
    """Agent that forwards ``queryParams.message`` to a pooled LLM client."""

    def __init__(
        self,
        llm_pool: LLMPool,
        descriptor: Optional[AgentDescriptor] = None,
        memory: Optional[AgentMemory] = None,
    ) -> None:
        super().__init__(descriptor or default_descriptor(), memory)
        self._llm_pool = llm_pool

    async def process(self, input_data: Dict[str, Any]) -> AgentResult:
        params: Dict[str, Any] = input_data.get("query_params") or {}
        prompt = params.get("message") or params.get("prompt")
        if not prompt:
            raise ValueError("chat analysis requires queryParams.message")

        model = self.descriptor.model
        async with self._llm_pool.acquire(model) as client:
            response = await client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": f"Project {input_data['project_id']}: {prompt}"},
                ],
                temperature=self.descriptor.temperature,
                max_tokens=self.descriptor.max_tokens,
            )

        answer = response.choices[0].message.content
        return AgentResult(
            success=True,
            confidence=0.8,
            data={"response": answer, "model": model},
            metadata={"projectId": input_data["project_id"]},
        )
