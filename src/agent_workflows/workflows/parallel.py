"""Parallel fan-out.

Issues one model call per input, all gated by a semaphore so at most
``max_concurrency`` calls are in flight; the rest wait for a free slot.
Results are reassembled in input order regardless of completion order.

Failure handling is explicit:

* ``fail_fast`` – the first failure cancels every in-flight and queued
  sibling and is re-raised, tagged with its index.
* ``collect`` – every call runs to completion; failed slots are ``None``
  and described in ``ParallelResult.errors``.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence

from agent_workflows.config import settings
from agent_workflows.errors import InvocationFailure, WorkflowError
from agent_workflows.llm.base import ModelInvoker
from agent_workflows.models import (
    ErrorCategory,
    FailurePolicy,
    ItemFailure,
    ParallelResult,
    PromptRequest,
    PromptTemplate,
)
from agent_workflows.utils.logging import get_logger
from agent_workflows.workflows.base import Workflow
from agent_workflows.workflows.registry import registry

logger = get_logger(__name__)


@registry.register("parallel")
class ParallelWorkflow(Workflow):
    """One prompt over many independent inputs, run concurrently.

    Parameters
    ----------
    invoker : ModelInvoker
        Shared by every call; must tolerate concurrent use.
    max_concurrency : int | None
        Upper bound on in-flight calls.  Defaults to ``MAX_CONCURRENCY``.
    failure_policy : FailurePolicy | None
        ``fail_fast`` or ``collect``.  Defaults to ``FAILURE_POLICY``.
    call_timeout_secs : float | None
        Per-call timeout; a hung call becomes an ``InvocationFailure``.
        Defaults to ``CALL_TIMEOUT_SECS``; ``0`` disables it.
    """

    def __init__(
        self,
        invoker: ModelInvoker,
        max_concurrency: int | None = None,
        failure_policy: FailurePolicy | str | None = None,
        call_timeout_secs: float | None = None,
        system: str | None = None,
    ) -> None:
        super().__init__(invoker, system=system)
        self.max_concurrency = settings.max_concurrency if max_concurrency is None else max_concurrency
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        self.failure_policy = FailurePolicy(failure_policy or settings.failure_policy)
        timeout = settings.call_timeout_secs if call_timeout_secs is None else call_timeout_secs
        self.call_timeout_secs: float | None = timeout if timeout > 0 else None

    async def run(self, prompt: PromptTemplate | str, inputs: Sequence[str]) -> ParallelResult:  # type: ignore[override]
        """Render *prompt* once per input and fan the calls out."""
        template = PromptTemplate.of(prompt)
        requests = [
            self.request(template.render_input(item), f"parallel[{idx}]")
            for idx, item in enumerate(inputs)
        ]
        return await self.map(requests)

    async def map(self, requests: Sequence[PromptRequest]) -> ParallelResult:
        """Run pre-built requests concurrently, preserving their order."""
        t0 = time.perf_counter()
        result = ParallelResult(responses=[None] * len(requests))
        if not requests:
            return result

        semaphore = asyncio.Semaphore(self.max_concurrency)
        logger.info(
            "parallel.start",
            items=len(requests),
            max_concurrency=self.max_concurrency,
            policy=self.failure_policy.value,
        )

        tasks = [
            asyncio.ensure_future(self._run_item(semaphore, idx, request))
            for idx, request in enumerate(requests)
        ]

        if self.failure_policy is FailurePolicy.FAIL_FAST:
            try:
                responses = await asyncio.gather(*tasks)
            except BaseException as exc:
                # Also reached when the composing call itself is cancelled.
                cancelled = self._cancel_pending(tasks)
                await asyncio.gather(*tasks, return_exceptions=True)
                logger.error(
                    "parallel.aborted",
                    error=str(exc),
                    cancelled=cancelled,
                )
                raise
            result.responses = list(responses)
        else:
            try:
                outcomes = await asyncio.gather(*tasks, return_exceptions=True)
            except asyncio.CancelledError:
                self._cancel_pending(tasks)
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
            for idx, outcome in enumerate(outcomes):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    category = getattr(outcome, "category", ErrorCategory.UNKNOWN)
                    result.errors.append(ItemFailure(index=idx, error=str(outcome), category=category))
                else:
                    result.responses[idx] = outcome

        result.elapsed_secs = round(time.perf_counter() - t0, 3)
        logger.info(
            "parallel.complete",
            items=len(requests),
            errors=len(result.errors),
            secs=result.elapsed_secs,
        )
        return result

    async def _run_item(
        self,
        semaphore: asyncio.Semaphore,
        idx: int,
        request: PromptRequest,
    ) -> str:
        if not request.stage:
            request = request.model_copy(update={"stage": f"parallel[{idx}]"})

        async with semaphore:
            try:
                if self.call_timeout_secs is None:
                    return await self._call(request)
                return await asyncio.wait_for(self._call(request), timeout=self.call_timeout_secs)
            except asyncio.TimeoutError as exc:
                logger.error("parallel.item_timeout", index=idx, timeout_secs=self.call_timeout_secs)
                raise InvocationFailure(
                    f"Call timed out after {self.call_timeout_secs:g}s",
                    stage=request.stage,
                    category=ErrorCategory.TIMEOUT,
                ) from exc
            except WorkflowError as exc:
                logger.warning("parallel.item_failed", index=idx, error=str(exc))
                raise

    @staticmethod
    def _cancel_pending(tasks: list[asyncio.Future[str]]) -> int:
        cancelled = 0
        for task in tasks:
            if not task.done():
                task.cancel()
                cancelled += 1
        return cancelled
