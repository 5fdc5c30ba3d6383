"""Composable LLM workflows: chain, parallel, routing, orchestrator-workers, evaluator-optimizer."""

__version__ = "0.1.0"

from agent_workflows.errors import (
    DecodeFailure,
    InvalidRoute,
    InvocationFailure,
    IterationExhausted,
    WorkflowError,
)
from agent_workflows.llm import ChatClient, ModelInvoker
from agent_workflows.workflows import (
    ChainWorkflow,
    EvaluatorOptimizerWorkflow,
    OrchestratorWorkersWorkflow,
    ParallelWorkflow,
    RouteTable,
    RoutingWorkflow,
)

__all__ = [
    "__version__",
    "ChainWorkflow",
    "ChatClient",
    "DecodeFailure",
    "EvaluatorOptimizerWorkflow",
    "InvalidRoute",
    "InvocationFailure",
    "IterationExhausted",
    "ModelInvoker",
    "OrchestratorWorkersWorkflow",
    "ParallelWorkflow",
    "RouteTable",
    "RoutingWorkflow",
    "WorkflowError",
]
