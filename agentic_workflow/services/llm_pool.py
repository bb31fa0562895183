"""Shared LLM clients, one bounded slot pool per model name."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional

from openai import AsyncOpenAI

from agentic_workflow.config import OpenAIConfig

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _PoolEntry:
    slots: asyncio.Semaphore
    client: Any = None
    openai_config: Optional[OpenAIConfig] = None

    def ensure_client(self, model_name: str) -> Any:
        if self.client is None:
            config = self.openai_config
            self.client = AsyncOpenAI(api_key=config.api_key, base_url=config.base_url)
            logger.info("Created OpenAI client for model %s", model_name)
        return self.client


class LLMPool:
    """Hands out model clients while capping in-flight completions per model."""

    def __init__(self) -> None:
        self._entries: Dict[str, _PoolEntry] = {}

    def register_openai(self, name: str, config: OpenAIConfig) -> None:
        """Register an OpenAI model; its client is built on first ``acquire``."""
        self._entries[name] = _PoolEntry(
            slots=asyncio.Semaphore(config.max_concurrent), openai_config=config
        )

    def register_client(self, name: str, client: Any, max_concurrent: int = 5) -> None:
        """Register a ready client exposing ``chat.completions.create``."""
        self._entries[name] = _PoolEntry(slots=asyncio.Semaphore(max_concurrent), client=client)

    def __contains__(self, model_name: str) -> bool:
        return model_name in self._entries

    @asynccontextmanager
    async def acquire(self, model_name: str) -> AsyncIterator[Any]:
        entry = self._entries.get(model_name)
        if entry is None:
            raise KeyError(f"Model '{model_name}' not registered in LLM pool")
        async with entry.slots:
            yield entry.ensure_client(model_name)
