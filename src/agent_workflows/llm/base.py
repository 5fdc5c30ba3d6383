"""The model invoker contract.

Workflows never talk to a provider directly; they depend on anything with an
``invoke`` coroutine that turns a :class:`PromptRequest` into response text.
Structured decoding happens on the workflow side, so scripted invokers used
in tests only need to return strings.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from agent_workflows.models import PromptRequest


@runtime_checkable
class ModelInvoker(Protocol):
    async def invoke(self, request: PromptRequest) -> str:
        """Return the model's text reply or raise on failure."""
        ...
