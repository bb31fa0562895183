"""CLI demonstration of an orchestrated analysis and a workflow run."""
from __future__ import annotations

import asyncio
import json

from agentic_workflow.agents.sentiment import SentimentAgent
from agentic_workflow.core.models import AnalysisRequest, OrchestrationConfig
from agentic_workflow.logging_config import configure_logging
from agentic_workflow.orchestration.orchestrator import Orchestrator
from agentic_workflow.workflows.base import WorkflowContext
from agentic_workflow.workflows.customer_support import CustomerSupportWorkflow


async def main() -> None:
    orchestrator = Orchestrator(
        config=OrchestrationConfig(max_retries=1, agent_timeout_ms=100),
        agents=[SentimentAgent()],
    )
    await orchestrator.initialize()

    analysis_id = orchestrator.submit(
        AnalysisRequest(
            project_id="demo-project",
            analysis_types=[kind.value for kind in orchestrator.config.analyze_by_default],
        )
    )
    print(f"Submitted analysis {analysis_id}")
    while not orchestrator.status.get(analysis_id).status.terminal:
        await asyncio.sleep(0.05)
    status = orchestrator.status.get(analysis_id)
    print(f"Analysis finished as {status.status.value}")
    print(json.dumps(status.results["sentiment"]["overall_sentiment"], indent=2))

    workflow = CustomerSupportWorkflow(processing_delay=0.1)
    result = await workflow.execute(
        WorkflowContext(workflow_input={"query": "My delivery is late", "customerId": "c-1"})
    )
    print(f"Workflow {workflow.name}: {result.status.value} -> {result.data['category']}")

    await orchestrator.cleanup()


def run() -> None:
    configure_logging("info")
    asyncio.run(main())


if __name__ == "__main__":
    run()
