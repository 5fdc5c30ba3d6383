"""Workflows sub-package – the five composition patterns.

Importing this module registers every workflow with the registry via the
``@registry.register`` decorators.
"""

from agent_workflows.workflows.base import Workflow
from agent_workflows.workflows.registry import registry
from agent_workflows.workflows.chain import ChainWorkflow
from agent_workflows.workflows.parallel import ParallelWorkflow
from agent_workflows.workflows.routing import RouteTable, RoutingWorkflow
from agent_workflows.workflows.orchestrator_workers import OrchestratorWorkersWorkflow
from agent_workflows.workflows.evaluator_optimizer import EvaluatorOptimizerWorkflow

__all__ = [
    "Workflow",
    "registry",
    "ChainWorkflow",
    "ParallelWorkflow",
    "RouteTable",
    "RoutingWorkflow",
    "OrchestratorWorkersWorkflow",
    "EvaluatorOptimizerWorkflow",
]
