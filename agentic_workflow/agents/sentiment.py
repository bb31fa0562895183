"""Simulated review sentiment analysis agent."""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional

from agentic_workflow.agents.base import Agent, AgentMemory
from agentic_workflow.core.models import (
    AgentCapability,
    AgentDescriptor,
    AgentResult,
    AgentType,
    PriorityLevel,
)

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = ["Food Quality", "Service", "Ambiance", "Value", "Cleanliness"]

TOPIC_CLUSTERS = [
    {"name": "Customer Service", "score": 0.82, "volume": 120},
    {"name": "Food Quality", "score": 0.77, "volume": 95},
    {"name": "Atmosphere", "score": 0.68, "volume": 87},
    {"name": "Value", "score": 0.56, "volume": 76},
]

RECOMMENDATIONS = [
    "Improve response times to negative reviews to show customers you care",
    "Focus on addressing service speed during peak hours",
    "Highlight your popular dishes in marketing materials",
    "Consider training staff on customer service best practices",
]


def default_descriptor() -> AgentDescriptor:
    return AgentDescriptor(
        kind=AgentType.SENTIMENT,
        capabilities=(AgentCapability.SENTIMENT_ANALYSIS,),
        priority=PriorityLevel.MEDIUM,
    )


class SentimentAgent(Agent):
    """Summarizes review sentiment for a project from its configured sources."""

    def __init__(
        self,
        descriptor: Optional[AgentDescriptor] = None,
        memory: Optional[AgentMemory] = None,
        *,
        rng: Optional[random.Random] = None,
        latency: float = 0.05,
    ) -> None:
        super().__init__(descriptor or default_descriptor(), memory)
        self._rng = rng or random.Random()
        self._latency = latency

    async def process(self, input_data: Dict[str, Any]) -> AgentResult:
        project_id = input_data["project_id"]
        params: Dict[str, Any] = input_data.get("query_params") or {}
        sources: List[Dict[str, Any]] = params.get("sources") or []
        categories: List[str] = params.get("categories") or []

        logger.info("Starting sentiment analysis for project %s", project_id)
        await asyncio.sleep(self._latency)  # Simulate upstream model latency

        category_analysis = [self._analyze_category(name) for name in categories or DEFAULT_CATEGORIES]
        return AgentResult(
            success=True,
            confidence=0.85,
            data={
                "overall_sentiment": {"score": 0.72, "trend": "increasing", "confidence": 0.85},
                "category_analysis": category_analysis,
                "platform_breakdown": [
                    {
                        "platform": source.get("platform", "unknown"),
                        "sentiment_score": round(0.65 + self._rng.random() * 0.3, 3),
                        "review_count": source.get("reviewCount", 0),
                    }
                    for source in sources
                ],
                "topic_clusters": [dict(cluster) for cluster in TOPIC_CLUSTERS],
                "trending_phrases": {
                    "positive": ["delicious", "attentive", "clean", "friendly"],
                    "negative": ["slow", "expensive", "noisy", "crowded"],
                    "emerging": ["outdoor seating", "vegan options", "online ordering"],
                },
                "insights": [
                    "Customer satisfaction has increased 12% over the last quarter",
                    "Weekend evenings show the highest volume of negative reviews",
                    "Service speed is mentioned in 37% of negative reviews",
                ],
                "recommendations": list(RECOMMENDATIONS),
            },
            metadata={
                "projectId": project_id,
                "timeframe": params.get("timeframe"),
                "sources": [source.get("platform", "unknown") for source in sources],
                "categoriesAnalyzed": categories,
            },
        )

    def _analyze_category(self, name: str) -> Dict[str, Any]:
        phrases = ["good", "excellent", "poor", "needs improvement"]
        return {
            "category": name,
            "score": round(0.5 + self._rng.random() * 0.5, 3),
            "trend": "increasing" if self._rng.random() > 0.5 else "decreasing",
            "key_phrases": phrases[: 2 + self._rng.randrange(3)],
            "review_samples": [
                {"text": f"The {name.lower()} was excellent", "rating": 5},
                {"text": f"{name} needs some improvement", "rating": 3},
            ],
        }
