"""Orchestrator-workers.

A central call analyses the task and decides, per input, which subtasks are
worth doing; workers then handle those subtasks concurrently.  Unlike the
parallel workflow the number of worker calls is not known until the
orchestrator has answered.
"""

from __future__ import annotations

import time

from agent_workflows.llm.base import ModelInvoker
from agent_workflows.models import FailurePolicy, OrchestratorResult, PromptTemplate, TaskDecomposition
from agent_workflows.utils.logging import get_logger
from agent_workflows.utils.prompts import ORCHESTRATOR_DECOMPOSE, WORKER_TASK
from agent_workflows.workflows.base import Workflow
from agent_workflows.workflows.parallel import ParallelWorkflow
from agent_workflows.workflows.registry import registry

logger = get_logger(__name__)


@registry.register("orchestrate")
class OrchestratorWorkersWorkflow(Workflow):
    """Decompose a task, fan the subtasks out to workers, bundle the results.

    ``orchestrator_prompt`` is rendered with ``task``; ``worker_prompt`` with
    ``original_task``, ``task_type`` and ``task_description``.
    """

    def __init__(
        self,
        invoker: ModelInvoker,
        orchestrator_prompt: PromptTemplate | str = ORCHESTRATOR_DECOMPOSE,
        worker_prompt: PromptTemplate | str = WORKER_TASK,
        parallel: ParallelWorkflow | None = None,
        system: str | None = None,
    ) -> None:
        super().__init__(invoker, system=system)
        self.orchestrator_prompt = PromptTemplate.of(orchestrator_prompt)
        self.worker_prompt = PromptTemplate.of(worker_prompt)
        self.parallel = parallel or ParallelWorkflow(
            invoker,
            failure_policy=FailurePolicy.FAIL_FAST,
            system=system,
        )

    async def decompose(self, task: str) -> TaskDecomposition:
        """Ask the orchestrator to break *task* into subtasks."""
        decomposition = await self._call_structured(
            self.orchestrator_prompt.render(task=task),
            TaskDecomposition,
            "orchestrator.decompose",
        )
        logger.info(
            "orchestrator.decomposed",
            subtasks=len(decomposition.tasks),
            types=[t.type for t in decomposition.tasks],
        )
        return decomposition

    async def run(self, task: str) -> OrchestratorResult:
        t0 = time.perf_counter()
        decomposition = await self.decompose(task)

        requests = [
            self.request(
                self.worker_prompt.render(
                    original_task=task,
                    task_type=subtask.type,
                    task_description=subtask.description,
                ),
                f"orchestrator.worker[{idx}]",
            )
            for idx, subtask in enumerate(decomposition.tasks)
        ]
        fanned = await self.parallel.map(requests)
        # Only a collect-mode fan-out passed in by the caller can leave gaps.
        worker_responses = [r if r is not None else "" for r in fanned.responses]
        if fanned.errors:
            logger.warning(
                "orchestrator.worker_errors",
                failed=[e.index for e in fanned.errors],
            )

        logger.info(
            "orchestrator.complete",
            workers=len(requests),
            secs=round(time.perf_counter() - t0, 2),
        )
        return OrchestratorResult(analysis=decomposition.analysis, worker_responses=worker_responses)
