"""Pydantic domain models shared by every workflow."""

from __future__ import annotations

import string
from collections.abc import Iterable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ────────────────────────────────────────────────────────────────────
# Enums
# ────────────────────────────────────────────────────────────────────

class FailurePolicy(str, Enum):
    """How a fan-out reacts when one of its calls fails."""

    FAIL_FAST = "fail_fast"
    COLLECT = "collect"


class ErrorCategory(str, Enum):
    """Categories of invocation failures for structured error reporting."""

    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    API_ERROR = "api_error"
    CONNECTION = "connection"
    EMPTY_RESPONSE = "empty_response"
    DECODE = "decode"
    UNKNOWN = "unknown"


class Evaluation(str, Enum):
    PASS = "PASS"
    NEEDS_IMPROVEMENT = "NEEDS_IMPROVEMENT"
    FAIL = "FAIL"

    @classmethod
    def from_string(cls, value: str) -> "Evaluation":
        """Normalize string to Evaluation, defaulting to NEEDS_IMPROVEMENT."""
        normalized = value.strip().upper().replace(" ", "_").replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            if normalized in ("APPROVE", "APPROVED", "ACCEPT", "ACCEPTED", "OK"):
                return cls.PASS
            if normalized in ("REJECT", "REJECTED", "ERROR"):
                return cls.FAIL
            return cls.NEEDS_IMPROVEMENT


class LoopState(str, Enum):
    """States of the evaluator-optimizer loop."""

    GENERATING = "generating"
    EVALUATING = "evaluating"
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"


# ────────────────────────────────────────────────────────────────────
# Prompts
# ────────────────────────────────────────────────────────────────────

_FORMATTER = string.Formatter()


def template_fields(template: str) -> list[str]:
    """Placeholder names used by *template*.

    Raises ``ValueError`` on unbalanced braces, like :meth:`str.format`.
    """
    return [name for _, name, _, _ in _FORMATTER.parse(template) if name is not None]


def check_template(template: str, allowed: Iterable[str]) -> str:
    """Validate that *template* only uses plain ``{name}`` fields from *allowed*.

    Attribute or index lookups, conversions and nested format specs are
    rejected, as is any name outside *allowed*.
    """
    names = set(allowed)
    for _, name, spec, conversion in _FORMATTER.parse(template):
        if name is None:
            continue
        if name not in names:
            raise ValueError(
                f"Unknown placeholder {{{name}}}; allowed: {sorted(names)} "
                "(double literal braces)"
            )
        if conversion or (spec and "{" in spec):
            raise ValueError(f"Placeholder {{{name}}} must be a plain field")
    return template


class PromptTemplate(BaseModel):
    """An immutable text template with ``{name}`` placeholders.

    Rendering uses :meth:`str.format`, so literal braces must be doubled.
    """

    model_config = ConfigDict(frozen=True)

    template: str

    @property
    def accepts_input(self) -> bool:
        return "input" in template_fields(self.template)

    def render(self, **values: Any) -> str:
        return self.template.format(**values)

    def render_input(self, value: str) -> str:
        """Render with the running ``input``.

        Templates without an ``{input}`` placeholder get the value appended
        on its own line.
        """
        if self.accepts_input:
            return self.render(input=value)
        return f"{self.render()}\n{value}"

    @classmethod
    def of(cls, value: "PromptTemplate | str") -> "PromptTemplate":
        if isinstance(value, PromptTemplate):
            return value
        return cls(template=value)


class PromptRequest(BaseModel):
    """A single call to the model invoker."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    system: str | None = None
    response_schema: dict[str, Any] | None = None
    stage: str = ""


# ────────────────────────────────────────────────────────────────────
# Fan-out
# ────────────────────────────────────────────────────────────────────

class ItemFailure(BaseModel):
    """A failed slot in a collect-mode fan-out."""

    index: int
    error: str
    category: ErrorCategory = ErrorCategory.UNKNOWN


class ParallelResult(BaseModel):
    """Fan-out output; ``responses[i]`` always belongs to input ``i``."""

    responses: list[str | None] = Field(default_factory=list)
    errors: list[ItemFailure] = Field(default_factory=list)
    elapsed_secs: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.errors


# ────────────────────────────────────────────────────────────────────
# Routing
# ────────────────────────────────────────────────────────────────────

class RoutingDecision(BaseModel):
    """Structured output of the routing classifier."""

    reasoning: str = ""
    selection: str


class RoutedResponse(BaseModel):
    category: str
    output: str


# ────────────────────────────────────────────────────────────────────
# Orchestrator-workers
# ────────────────────────────────────────────────────────────────────

class Subtask(BaseModel):
    """One approach proposed by the orchestrator."""

    type: str
    description: str


class TaskDecomposition(BaseModel):
    """Structured output of the orchestrator call."""

    analysis: str = ""
    tasks: list[Subtask] = Field(default_factory=list)


class OrchestratorResult(BaseModel):
    analysis: str
    worker_responses: list[str] = Field(default_factory=list)


# ────────────────────────────────────────────────────────────────────
# Evaluator-optimizer
# ────────────────────────────────────────────────────────────────────

class Generation(BaseModel):
    """Structured output of the generator step."""

    thoughts: str = ""
    response: str


class EvaluationVerdict(BaseModel):
    """Structured output of the evaluator step."""

    evaluation: Evaluation
    feedback: str = ""

    @field_validator("evaluation", mode="before")
    @classmethod
    def _normalize_evaluation(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Evaluation.from_string(value)
        return value

    @property
    def accepted(self) -> bool:
        return self.evaluation is Evaluation.PASS


class Attempt(BaseModel):
    """One generate/evaluate cycle."""

    iteration: int
    generation: Generation
    verdict: EvaluationVerdict


class RefinedResponse(BaseModel):
    """Final solution plus the full trace of intermediate generations."""

    solution: str
    state: LoopState
    chain_of_thought: list[Generation] = Field(default_factory=list)
    attempts: list[Attempt] = Field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.state is LoopState.ACCEPTED
