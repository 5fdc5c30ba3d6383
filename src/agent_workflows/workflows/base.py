"""Abstract base class for all workflows.

A workflow owns a model invoker and nothing else mutable: every ``run`` builds
its own state, so two runs against identical invoker replies give identical
results.  The base class funnels every model call through ``_call`` which tags
failures with the stage that produced them.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, TypeVar

from pydantic import BaseModel

from agent_workflows.errors import InvocationFailure, WorkflowError
from agent_workflows.llm.base import ModelInvoker
from agent_workflows.models import PromptRequest
from agent_workflows.output import decode, response_schema
from agent_workflows.utils.logging import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class Workflow(ABC):
    """Control-flow wrapper around a :class:`ModelInvoker`."""

    name: str = ""

    def __init__(self, invoker: ModelInvoker, system: str | None = None) -> None:
        self.invoker = invoker
        self.system = system

    @abstractmethod
    async def run(self, *args: Any, **kwargs: Any) -> Any:
        """Execute the workflow end-to-end."""
        ...

    # ── model calls ──────────────────────────────────────────────────

    def request(self, prompt: str, stage: str, schema: type[BaseModel] | None = None) -> PromptRequest:
        return PromptRequest(
            prompt=prompt,
            system=self.system,
            response_schema=response_schema(schema) if schema is not None else None,
            stage=stage,
        )

    async def _call(self, request: PromptRequest) -> str:
        """Invoke the model once; failures come back as ``WorkflowError``."""
        t0 = time.perf_counter()
        try:
            text = await self.invoker.invoke(request)
        except WorkflowError as exc:
            exc.with_stage(request.stage)
            raise
        except Exception as exc:
            raise InvocationFailure(
                f"{type(exc).__name__}: {exc}",
                stage=request.stage,
            ) from exc
        logger.debug(
            "workflow.call_done",
            workflow=self.name,
            stage=request.stage,
            secs=round(time.perf_counter() - t0, 3),
        )
        return text

    async def _call_structured(self, prompt: str, schema: type[ModelT], stage: str) -> ModelT:
        """Invoke the model asking for *schema* and decode the reply."""
        raw = await self._call(self.request(prompt, stage, schema))
        return decode(raw, schema, stage=stage)
