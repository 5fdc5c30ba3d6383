"""Evaluator-optimizer loop.

One call generates a candidate, a second call judges it.  Rejected
candidates go back to the generator together with the feedback until the
evaluator answers PASS or the iteration bound is hit.

States::

    GENERATING ──▶ EVALUATING ──▶ ACCEPTED            (PASS)
        ▲              │
        └──────────────┤                               (reject, feedback carried)
                       └──────▶ EXHAUSTED              (bound hit while rejecting)
"""

from __future__ import annotations

import time

from agent_workflows.config import settings
from agent_workflows.errors import IterationExhausted
from agent_workflows.llm.base import ModelInvoker
from agent_workflows.models import (
    Attempt,
    EvaluationVerdict,
    Generation,
    LoopState,
    PromptTemplate,
    RefinedResponse,
)
from agent_workflows.utils.logging import get_logger
from agent_workflows.utils.prompts import EVALUATOR_TASK, GENERATOR_TASK
from agent_workflows.workflows.base import Workflow
from agent_workflows.workflows.registry import registry

logger = get_logger(__name__)


def build_feedback_context(previous: list[Generation], feedback: str) -> str:
    """Format what the generator sees on the next cycle."""
    lines = ["Previous attempts:"]
    lines.extend(f"- {g.response}" for g in previous)
    lines.append(f"Feedback: {feedback}")
    return "\n".join(lines)


@registry.register("evaluate-optimize")
class EvaluatorOptimizerWorkflow(Workflow):
    """Generate, evaluate, refine with feedback until accepted or out of iterations.

    ``generator_prompt`` is rendered with ``task`` and ``context`` (empty on
    the first cycle); ``evaluator_prompt`` with ``task`` and ``content``.
    """

    def __init__(
        self,
        invoker: ModelInvoker,
        generator_prompt: PromptTemplate | str = GENERATOR_TASK,
        evaluator_prompt: PromptTemplate | str = EVALUATOR_TASK,
        max_iterations: int | None = None,
        raise_on_exhaustion: bool = False,
        system: str | None = None,
    ) -> None:
        super().__init__(invoker, system=system)
        self.generator_prompt = PromptTemplate.of(generator_prompt)
        self.evaluator_prompt = PromptTemplate.of(evaluator_prompt)
        self.max_iterations = settings.max_iterations if max_iterations is None else max_iterations
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        self.raise_on_exhaustion = raise_on_exhaustion

    async def generate(self, task: str, context: str, iteration: int) -> Generation:
        return await self._call_structured(
            self.generator_prompt.render(task=task, context=context),
            Generation,
            f"evaluator.generate[{iteration}]",
        )

    async def evaluate(self, task: str, content: str, iteration: int) -> EvaluationVerdict:
        return await self._call_structured(
            self.evaluator_prompt.render(task=task, content=content),
            EvaluationVerdict,
            f"evaluator.evaluate[{iteration}]",
        )

    async def run(self, task: str) -> RefinedResponse:
        t0 = time.perf_counter()
        chain_of_thought: list[Generation] = []
        attempts: list[Attempt] = []
        context = ""
        state = LoopState.GENERATING

        for iteration in range(1, self.max_iterations + 1):
            generation = await self.generate(task, context, iteration)
            chain_of_thought.append(generation)
            state = self._transition(state, LoopState.EVALUATING, iteration)

            verdict = await self.evaluate(task, generation.response, iteration)
            attempts.append(Attempt(iteration=iteration, generation=generation, verdict=verdict))

            if verdict.accepted:
                state = self._transition(state, LoopState.ACCEPTED, iteration)
                break

            if iteration == self.max_iterations:
                state = self._transition(state, LoopState.EXHAUSTED, iteration)
                break

            context = build_feedback_context(chain_of_thought, verdict.feedback)
            state = self._transition(
                state,
                LoopState.GENERATING,
                iteration,
                evaluation=verdict.evaluation.value,
            )

        result = RefinedResponse(
            solution=chain_of_thought[-1].response,
            state=state,
            chain_of_thought=chain_of_thought,
            attempts=attempts,
        )
        logger.info(
            "evaluator.complete",
            state=state.value,
            iterations=len(attempts),
            secs=round(time.perf_counter() - t0, 2),
        )

        if state is LoopState.EXHAUSTED and self.raise_on_exhaustion:
            raise IterationExhausted(result, self.max_iterations, stage=f"evaluator[{self.max_iterations}]")
        return result

    @staticmethod
    def _transition(current: LoopState, target: LoopState, iteration: int, **extra: str) -> LoopState:
        logger.info(
            "evaluator.transition",
            iteration=iteration,
            source=current.value,
            target=target.value,
            **extra,
        )
        return target
