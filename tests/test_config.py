"""Tests for environment-driven configuration."""
from __future__ import annotations

import pytest

from agentic_workflow.config import Config
from agentic_workflow.core.models import AggregationMethod, AnalysisType, OrchestrationConfig

ENV_KEYS = (
    "OPENAI_API_KEY",
    "MAX_CONCURRENT_AGENTS",
    "AGENT_TIMEOUT",
    "MAX_RETRIES",
    "RESULT_AGGREGATION",
    "CACHE_ENABLED",
    "ANALYZE_BY_DEFAULT",
    "DATABASE_PATH",
    "REQUEST_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> None:
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    settings = Config.from_env()

    assert settings.openai is None
    assert settings.database_path is None
    assert settings.orchestration == OrchestrationConfig()
    assert settings.orchestration.retry_delay == 30.0
    assert settings.request_timeout_ms == 60000


def test_orchestration_values_from_env(monkeypatch) -> None:
    monkeypatch.setenv("MAX_CONCURRENT_AGENTS", "2")
    monkeypatch.setenv("AGENT_TIMEOUT", "500")
    monkeypatch.setenv("MAX_RETRIES", "0")
    monkeypatch.setenv("RESULT_AGGREGATION", "weighted")
    monkeypatch.setenv("CACHE_ENABLED", "false")
    monkeypatch.setenv("ANALYZE_BY_DEFAULT", "sentiment, market")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("REQUEST_TIMEOUT", "1500")

    settings = Config.from_env()

    orchestration = settings.orchestration
    assert orchestration.max_concurrent_agents == 2
    assert orchestration.retry_delay == 0.5
    assert orchestration.max_retries == 0
    assert orchestration.result_aggregation is AggregationMethod.WEIGHTED
    assert orchestration.cache_enabled is False
    assert orchestration.analyze_by_default == (AnalysisType.SENTIMENT, AnalysisType.MARKET)
    assert settings.openai.model == "gpt-4o"
    assert settings.request_timeout_ms == 1500


def test_invalid_number_names_the_variable(monkeypatch) -> None:
    monkeypatch.setenv("MAX_RETRIES", "many")

    with pytest.raises(ValueError, match="MAX_RETRIES"):
        Config.from_env()


@pytest.mark.parametrize(
    "overrides",
    [{"max_concurrent_agents": 0}, {"max_retries": -1}, {"agent_timeout_ms": -5}],
)
def test_orchestration_config_rejects_bad_values(overrides) -> None:
    with pytest.raises(ValueError):
        OrchestrationConfig(**overrides)
