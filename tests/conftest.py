"""Shared fixtures: a scripted in-memory model invoker."""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Callable
from typing import Any

import pytest

from agent_workflows.models import PromptRequest

Reply = str | BaseException


def stage_index(request: PromptRequest) -> int:
    """Return the ``[n]`` index embedded in a request's stage label."""
    match = re.search(r"\[(\d+)\]", request.stage)
    assert match is not None, f"no index in stage {request.stage!r}"
    return int(match.group(1))


def as_json(**fields: Any) -> str:
    return json.dumps(fields)


class ScriptedInvoker:
    """Replays canned replies and records every request it receives.

    Replies come from *script* in call order, or from *handler* when the call
    order is not deterministic (fan-outs).  Exceptions in either are raised.
    """

    def __init__(
        self,
        script: list[Reply] | None = None,
        *,
        handler: Callable[[PromptRequest], Reply] | None = None,
        delay: Callable[[PromptRequest], float] | None = None,
    ) -> None:
        self._script: list[Reply] = list(script or [])
        self.handler = handler
        self.delay = delay
        self.calls: list[PromptRequest] = []
        self.active = 0
        self.max_active = 0
        self.cancelled = 0

    def load(self, script: list[Reply]) -> None:
        self._script = list(script)
        self.calls = []

    @property
    def prompts(self) -> list[str]:
        return [c.prompt for c in self.calls]

    @property
    def stages(self) -> list[str]:
        return [c.stage for c in self.calls]

    async def invoke(self, request: PromptRequest) -> str:
        self.calls.append(request)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay is not None:
                await asyncio.sleep(self.delay(request))
            if self.handler is not None:
                reply = self.handler(request)
            else:
                assert self._script, f"unexpected call at stage {request.stage!r}"
                reply = self._script.pop(0)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.active -= 1

        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def make_invoker() -> type[ScriptedInvoker]:
    return ScriptedInvoker
