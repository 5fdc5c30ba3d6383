"""Workflow Registry – plugin-style discovery by name.

Workflows self-register via the ``@registry.register`` decorator so that the
gateway can list what is available without hard-coded imports.

Usage in a workflow module::

    from agent_workflows.workflows.registry import registry

    @registry.register("chain")
    class ChainWorkflow(Workflow):
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from agent_workflows.utils.logging import get_logger

if TYPE_CHECKING:
    from agent_workflows.workflows.base import Workflow

logger = get_logger(__name__)


class WorkflowRegistry:
    """Singleton registry mapping workflow name → workflow class."""

    def __init__(self) -> None:
        self._workflows: dict[str, type[Workflow]] = {}

    def register(self, name: str):  # type: ignore[no-untyped-def]
        """Class decorator that registers a workflow under *name*."""

        def wrapper(cls: type[Workflow]) -> type[Workflow]:
            if name in self._workflows:
                logger.warning(
                    "registry.overwrite",
                    workflow=name,
                    old=self._workflows[name].__name__,
                    new=cls.__name__,
                )
            cls.name = name
            self._workflows[name] = cls
            return cls

        return wrapper

    def get(self, name: str) -> type[Workflow] | None:
        """Return the workflow class for *name*, or ``None``."""
        return self._workflows.get(name)

    def has(self, name: str) -> bool:
        return name in self._workflows

    def names(self) -> list[str]:
        return list(self._workflows)

    def describe(self) -> dict[str, str]:
        """Map each name to the first line of its class docstring."""
        described: dict[str, str] = {}
        for name, cls in self._workflows.items():
            lines = (cls.__doc__ or "").strip().splitlines()
            described[name] = lines[0] if lines else ""
        return described

    def __repr__(self) -> str:
        return f"WorkflowRegistry([{', '.join(self._workflows)}])"


registry = WorkflowRegistry()
