"""Core data models shared across orchestrator components."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AgentType(str, Enum):
    """Kinds of agents the orchestrator can hold, one instance per kind."""

    MARKET = "market"
    INSIGHTS = "insights"
    PRICING = "pricing"
    SALES = "sales"
    SENTIMENT = "sentiment"
    SCRAPING = "scraping"
    TRAFFIC = "traffic"
    CHAT = "chat"


class AnalysisType(str, Enum):
    """Analysis kinds a caller may request."""

    MARKET = "market"
    INSIGHTS = "insights"
    PRICING = "pricing"
    SALES = "sales"
    SENTIMENT = "sentiment"
    TRAFFIC = "traffic"
    CHAT = "chat"

    @property
    def agent_type(self) -> AgentType:
        return AgentType(self.value)


class AgentCapability(str, Enum):
    MARKET_ANALYSIS = "market_analysis"
    INSIGHTS_GENERATION = "insights_generation"
    PRICING_OPTIMIZATION = "pricing_optimization"
    SALES_FORECASTING = "sales_forecasting"
    SENTIMENT_ANALYSIS = "sentiment_analysis"
    DATA_SCRAPING = "data_scraping"
    TRAFFIC_ANALYSIS = "traffic_analysis"
    CHAT = "chat"


class PriorityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AggregationMethod(str, Enum):
    SIMPLE = "simple"
    WEIGHTED = "weighted"
    CONFIDENCE = "confidence"


class AnalysisState(str, Enum):
    """Lifecycle states of a tracked analysis run."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (AnalysisState.COMPLETED, AnalysisState.FAILED)


class WorkflowStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass(frozen=True, slots=True)
class AgentDescriptor:
    """Static identity and tuning of an agent, fixed at process start."""

    kind: AgentType
    capabilities: Tuple[AgentCapability, ...] = ()
    priority: PriorityLevel = PriorityLevel.MEDIUM
    enabled: bool = True
    model: str = "gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 2000
    timeout_ms: int = 30000
    max_retries: int = 3
    memory_enabled: bool = True


@dataclass(frozen=True, slots=True)
class AgentResult:
    """Outcome of a single agent invocation."""

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    confidence: float = 0.0
    execution_time: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
        if not self.success and (self.data or not self.error):
            raise ValueError("a failed result must carry an error and no data")

    @classmethod
    def failure(
        cls,
        error: str,
        *,
        execution_time: float = 0.0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AgentResult:
        return cls(
            success=False,
            confidence=0.0,
            execution_time=execution_time,
            metadata={"error": True, **(metadata or {})},
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data,
            "confidence": self.confidence,
            "executionTime": self.execution_time,
            "metadata": self.metadata,
            "error": self.error,
        }


class AnalysisRequest(BaseModel):
    """Caller-supplied analysis request, validated at the HTTP boundary."""

    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(..., alias="projectId", min_length=1)
    # Tags outside AnalysisType are accepted here and dropped during resolution.
    analysis_types: List[str] = Field(..., alias="analysisTypes", min_length=1)
    query_params: Dict[str, Any] = Field(default_factory=dict, alias="queryParams")
    confidence_threshold: float = Field(default=0.7, alias="confidenceThreshold", ge=0.0, le=1.0)
    priority: PriorityLevel = PriorityLevel.MEDIUM
    timeout: float = Field(default=60, gt=0, description="Per-agent timeout in seconds")
    streaming: bool = False

    @field_validator("project_id")
    @classmethod
    def _project_id_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("projectId must not be blank")
        return value

    @field_validator("analysis_types", mode="before")
    @classmethod
    def _normalize_types(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        tags = []
        for item in value:
            tag = item.value if isinstance(item, Enum) else item
            if not isinstance(tag, str) or not tag.strip():
                raise ValueError("analysisTypes entries must be non-empty strings")
            tags.append(tag)
        return list(dict.fromkeys(tags))

    def known_types(self) -> List[AnalysisType]:
        """Requested tags equal to an AnalysisType value, in request order."""
        known = []
        for tag in self.analysis_types:
            try:
                known.append(AnalysisType(tag))
            except ValueError:
                continue
        return known


class AnalysisResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    project_id: str = Field(..., alias="projectId")
    analysis_types: List[str] = Field(..., alias="analysisTypes")
    timestamp: str = Field(default_factory=lambda: utc_now_iso())
    execution_time: float = Field(0.0, alias="executionTime")
    results: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)


@dataclass(slots=True)
class AnalysisStatus:
    """Mutable status record for one analysis id."""

    analysis_id: str
    status: AnalysisState = AnalysisState.PENDING
    progress: float = 0.0
    completed_types: List[AnalysisType] = field(default_factory=list)
    current_type: Optional[AnalysisType] = None
    results: Optional[Dict[str, Any]] = None
    execution_time: Optional[float] = None
    error: Optional[str] = None
    created_at: float = field(default_factory=time.monotonic)
    finished_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "analysisId": self.analysis_id,
            "status": self.status.value,
            "progress": self.progress,
            "completedTypes": [kind.value for kind in self.completed_types],
            "currentType": self.current_type.value if self.current_type else None,
        }
        if self.results is not None:
            payload["results"] = self.results
        if self.execution_time is not None:
            payload["executionTime"] = self.execution_time
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True, slots=True)
class OrchestrationConfig:
    """Tuning knobs for the orchestrator."""

    max_concurrent_agents: int = 5
    agent_timeout_ms: int = 30000
    max_retries: int = 3
    result_aggregation: AggregationMethod = AggregationMethod.SIMPLE
    cache_enabled: bool = True
    cache_ttl_seconds: int = 3600
    # Advisory only: dispatch never reorders by priority.
    priority_enabled: bool = True
    analyze_by_default: Tuple[AnalysisType, ...] = (AnalysisType.SENTIMENT,)

    def __post_init__(self) -> None:
        if self.max_concurrent_agents < 1:
            raise ValueError("max_concurrent_agents must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if self.agent_timeout_ms < 0:
            raise ValueError("agent_timeout_ms must not be negative")
        if self.cache_ttl_seconds < 0:
            raise ValueError("cache_ttl_seconds must not be negative")

    @property
    def retry_delay(self) -> float:
        """Flat pause between attempts, in seconds."""
        return self.agent_timeout_ms / 1000


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
