"""Structured output helpers.

Models are asked to answer in JSON matching a pydantic schema.  The reply is
rarely clean: it may be wrapped in markdown fences, preceded by prose, or use
Python-style literals.  ``extract_json`` recovers the first usable object and
``decode`` validates it against the schema.
"""

from __future__ import annotations

import ast
import json
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from agent_workflows.errors import DecodeFailure

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", flags=re.IGNORECASE)

FORMAT_INSTRUCTIONS = """\
Your response should be in JSON format.
Do not include any explanations, only provide a RFC8259 compliant JSON response following this format without deviation.
Do not include markdown code blocks in your response.
Here is the JSON Schema instance your output must adhere to:
```{schema}```"""


def response_schema(schema: type[BaseModel]) -> dict[str, Any]:
    return schema.model_json_schema()


def format_instructions(schema: dict[str, Any]) -> str:
    """Return the instruction block appended to structured-output prompts."""
    return FORMAT_INSTRUCTIONS.format(schema=json.dumps(schema, indent=2))


def _try_load(candidate: str) -> dict[str, Any] | None:
    candidate = candidate.strip()
    if not candidate:
        return None
    try:
        loaded = json.loads(candidate)
        if isinstance(loaded, dict):
            return loaded
    except json.JSONDecodeError:
        pass
    # Python-style dict outputs (single quotes, True/False)
    try:
        loaded = ast.literal_eval(candidate)
        if isinstance(loaded, dict):
            return loaded
    except (SyntaxError, ValueError, TypeError, MemoryError, RecursionError):
        pass
    return None


def extract_json(text: str) -> dict[str, Any]:
    """Best-effort extraction of a JSON object from LLM output."""
    cleaned = text.strip()

    # 1) Prefer the first fenced object
    for match in _FENCE_RE.finditer(text):
        parsed = _try_load(match.group(1))
        if parsed is not None:
            return parsed

    # 2) Drop fence lines and try the full payload
    if cleaned.startswith("```"):
        lines = [line for line in cleaned.splitlines() if not line.strip().startswith("```")]
        cleaned = "\n".join(lines)

    parsed_full = _try_load(cleaned)
    if parsed_full is not None:
        return parsed_full

    # 3) First decodable object in concatenated content
    first_brace = cleaned.find("{")
    if first_brace != -1:
        try:
            obj, _ = json.JSONDecoder().raw_decode(cleaned[first_brace:])
            if isinstance(obj, dict):
                return obj
        except json.JSONDecodeError:
            pass

    # 4) Bounded braces snippet
    end = cleaned.rfind("}")
    if first_brace != -1 and end > first_brace:
        parsed_snippet = _try_load(cleaned[first_brace : end + 1])
        if parsed_snippet is not None:
            return parsed_snippet

    raise ValueError(f"Could not extract JSON from model output:\n{text[:300]}")


def decode(text: str, schema: type[ModelT], stage: str | None = None) -> ModelT:
    """Decode *text* into *schema*, raising :class:`DecodeFailure` on any error."""
    try:
        data = extract_json(text)
    except ValueError as exc:
        raise DecodeFailure(
            str(exc).splitlines()[0],
            stage=stage,
            schema_name=schema.__name__,
            raw_preview=text[:300],
        ) from exc
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise DecodeFailure(
            f"Response does not match {schema.__name__}: {exc.error_count()} validation error(s)",
            stage=stage,
            schema_name=schema.__name__,
            raw_preview=text[:300],
        ) from exc
