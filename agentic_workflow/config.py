"""Configuration management for the agentic workflow service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from agentic_workflow.core.models import AggregationMethod, AnalysisType, OrchestrationConfig


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} must be an integer, got {raw!r}") from exc


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_types(key: str, default: Tuple[AnalysisType, ...]) -> Tuple[AnalysisType, ...]:
    raw = os.getenv(key)
    if not raw:
        return default
    try:
        return tuple(AnalysisType(part.strip()) for part in raw.split(",") if part.strip())
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} lists an unknown analysis type") from exc


@dataclass(frozen=True)
class OpenAIConfig:
    """OpenAI service configuration."""

    api_key: str
    model: str = "gpt-4o"
    base_url: Optional[str] = None
    max_concurrent: int = 5


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment variables."""

    environment: str = "development"
    log_level: str = "info"
    api_version: str = "1.0.0"
    enable_cors: bool = True
    port: int = 8080
    request_timeout_ms: int = 60000
    status_retention_seconds: int = 3600
    database_path: Optional[str] = None
    orchestration: OrchestrationConfig = field(default_factory=OrchestrationConfig)
    openai: Optional[OpenAIConfig] = None

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables."""
        openai_key = os.getenv("OPENAI_API_KEY")
        openai_config = None
        if openai_key:
            openai_config = OpenAIConfig(
                api_key=openai_key,
                model=os.getenv("OPENAI_MODEL", "gpt-4o"),
                base_url=os.getenv("OPENAI_BASE_URL") or None,
                max_concurrent=_env_int("OPENAI_MAX_CONCURRENT", 5),
            )

        orchestration = OrchestrationConfig(
            max_concurrent_agents=_env_int("MAX_CONCURRENT_AGENTS", 5),
            agent_timeout_ms=_env_int("AGENT_TIMEOUT", 30000),
            max_retries=_env_int("MAX_RETRIES", 3),
            result_aggregation=AggregationMethod(os.getenv("RESULT_AGGREGATION", "simple")),
            cache_enabled=_env_bool("CACHE_ENABLED", True),
            cache_ttl_seconds=_env_int("CACHE_TTL", 3600),
            priority_enabled=_env_bool("PRIORITY_ENABLED", True),
            analyze_by_default=_env_types("ANALYZE_BY_DEFAULT", (AnalysisType.SENTIMENT,)),
        )

        return cls(
            environment=os.getenv("ENVIRONMENT", "development"),
            log_level=os.getenv("LOG_LEVEL", "info"),
            api_version=os.getenv("API_VERSION", "1.0.0"),
            enable_cors=_env_bool("ENABLE_CORS", True),
            port=_env_int("PORT", 8080),
            request_timeout_ms=_env_int("REQUEST_TIMEOUT", 60000),
            status_retention_seconds=_env_int("STATUS_RETENTION_SECONDS", 3600),
            database_path=os.getenv("DATABASE_PATH") or None,
            orchestration=orchestration,
            openai=openai_config,
        )


# Global config instance
config = Config.from_env()
