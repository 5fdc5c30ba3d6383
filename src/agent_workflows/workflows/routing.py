"""Routing.

Classifies an input into exactly one category of a fixed route table, then
answers it with that category's specialised prompt.  The classifier's answer
is validated against the closed set of keys; an unknown key is an
``InvalidRoute`` error rather than a guess.
"""

from __future__ import annotations

import enum
from collections.abc import Iterator, Mapping
from types import MappingProxyType

from agent_workflows.errors import InvalidRoute
from agent_workflows.llm.base import ModelInvoker
from agent_workflows.models import RoutedResponse, RoutingDecision
from agent_workflows.utils.logging import get_logger
from agent_workflows.utils.prompts import ROUTING_CLASSIFY, ROUTING_HANDLE
from agent_workflows.workflows.base import Workflow
from agent_workflows.workflows.registry import registry

logger = get_logger(__name__)


class RouteTable(Mapping[str, str]):
    """Read-only mapping of category key → handler prompt.

    ``categories`` is an ``Enum`` built from the keys, so once a raw
    classifier answer passes :meth:`resolve` the rest of the code deals with
    a closed set of values.
    """

    def __init__(self, routes: Mapping[str, str]) -> None:
        if not routes:
            raise ValueError("A route table needs at least one route")
        cleaned: dict[str, str] = {}
        for key, prompt in routes.items():
            name = key.strip()
            if not name:
                raise ValueError("Route keys must be non-empty")
            if name in cleaned:
                raise ValueError(f"Duplicate route key: {name!r}")
            cleaned[name] = prompt
        self._routes = MappingProxyType(cleaned)
        # Keys are arbitrary text, so members get positional names and carry the key as value.
        self.categories = enum.Enum(  # type: ignore[misc]
            "Category", [(f"ROUTE_{idx}", name) for idx, name in enumerate(cleaned)]
        )

    def resolve(self, selection: str) -> enum.Enum:
        """Validate a raw classifier answer against the known keys."""
        key = selection.strip()
        if key not in self._routes:
            raise InvalidRoute(selection, self._routes.keys())
        return self.categories(key)

    def prompt_for(self, category: enum.Enum) -> str:
        return self._routes[category.value]

    def __getitem__(self, key: str) -> str:
        return self._routes[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def __repr__(self) -> str:
        return f"RouteTable({list(self._routes)})"


@registry.register("route")
class RoutingWorkflow(Workflow):
    """Classify the input, then answer with the chosen route's prompt."""

    def __init__(
        self,
        invoker: ModelInvoker,
        routes: RouteTable | Mapping[str, str],
        system: str | None = None,
    ) -> None:
        super().__init__(invoker, system=system)
        self.routes = routes if isinstance(routes, RouteTable) else RouteTable(routes)

    async def route(self, input: str) -> enum.Enum:  # noqa: A002
        """Run the classification call and return the validated category."""
        prompt = ROUTING_CLASSIFY.format(options=list(self.routes), input=input)
        decision = await self._call_structured(prompt, RoutingDecision, "routing.classify")
        try:
            category = self.routes.resolve(decision.selection)
        except InvalidRoute as exc:
            logger.error(
                "routing.invalid",
                selection=decision.selection,
                valid=list(self.routes),
            )
            raise exc.with_stage("routing.classify")
        logger.info("routing.selected", category=category.value, reasoning=decision.reasoning[:200])
        return category

    async def run(self, input: str) -> RoutedResponse:  # noqa: A002
        category = await self.route(input)
        prompt = ROUTING_HANDLE.format(route_prompt=self.routes.prompt_for(category), input=input)
        output = await self._call(self.request(prompt, f"routing.handle[{category.value}]"))
        return RoutedResponse(category=category.value, output=output)
