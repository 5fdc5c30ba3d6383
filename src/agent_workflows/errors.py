"""Exception hierarchy raised by the workflows and the chat client."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from agent_workflows.models import ErrorCategory

if TYPE_CHECKING:
    from agent_workflows.models import RefinedResponse


class WorkflowError(Exception):
    """Base class; ``stage`` names the step that failed (``chain[2]``, ...)."""

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(self, message: str, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def with_stage(self, stage: str) -> "WorkflowError":
        """Attach *stage* unless a more specific one is already set."""
        if not self.stage:
            self.stage = stage
        return self

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class InvocationFailure(WorkflowError):
    """The model invoker call failed (network, provider, quota, timeout)."""

    def __init__(
        self,
        message: str,
        stage: str | None = None,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, stage)
        self.category = category
        self.status_code = status_code


class DecodeFailure(WorkflowError):
    """A response could not be decoded into the expected schema."""

    category = ErrorCategory.DECODE

    def __init__(
        self,
        message: str,
        stage: str | None = None,
        schema_name: str = "",
        raw_preview: str = "",
    ) -> None:
        super().__init__(message, stage)
        self.schema_name = schema_name
        self.raw_preview = raw_preview


class InvalidRoute(WorkflowError):
    """The classifier selected a category outside the route table."""

    def __init__(self, selection: str, valid: Iterable[str], stage: str | None = None) -> None:
        self.selection = selection
        self.valid = tuple(valid)
        super().__init__(
            f"Unknown route {selection!r}; expected one of {list(self.valid)}",
            stage,
        )


class IterationExhausted(WorkflowError):
    """The evaluator-optimizer loop hit its bound without acceptance.

    ``result`` holds the last solution and the full attempt history so
    callers can still use the best-so-far output.
    """

    def __init__(self, result: "RefinedResponse", max_iterations: int, stage: str | None = None) -> None:
        self.result = result
        self.max_iterations = max_iterations
        super().__init__(
            f"No accepted solution after {max_iterations} iteration(s)",
            stage,
        )
