"""Prompt chaining.

Decomposes a task into a fixed sequence of steps where each call processes
the output of the previous one.  Latency is the sum of the step latencies;
in exchange each step gets a narrow, easy prompt.
"""

from __future__ import annotations

import time
from collections.abc import Sequence

from agent_workflows.llm.base import ModelInvoker
from agent_workflows.models import PromptTemplate
from agent_workflows.utils.logging import get_logger, truncate_for_log
from agent_workflows.workflows.base import Workflow
from agent_workflows.workflows.registry import registry

logger = get_logger(__name__)


@registry.register("chain")
class ChainWorkflow(Workflow):
    """Sequential prompts, each fed the previous step's output."""

    def __init__(
        self,
        invoker: ModelInvoker,
        steps: Sequence[PromptTemplate | str],
        system: str | None = None,
    ) -> None:
        if not steps:
            raise ValueError("A chain needs at least one step")
        super().__init__(invoker, system=system)
        self.steps: tuple[PromptTemplate, ...] = tuple(PromptTemplate.of(s) for s in steps)

    async def run(self, input: str) -> str:  # noqa: A002
        """Thread *input* through every step and return the last response.

        The first failing step aborts the chain; no partial output is returned.
        """
        t0 = time.perf_counter()
        response = input
        logger.info("chain.start", steps=len(self.steps))

        for idx, step in enumerate(self.steps):
            stage = f"chain[{idx}]"
            response = await self._call(self.request(step.render_input(response), stage))
            logger.info(
                "chain.step_done",
                step=idx,
                output=truncate_for_log(response, 200),
            )

        logger.info("chain.complete", steps=len(self.steps), secs=round(time.perf_counter() - t0, 2))
        return response
