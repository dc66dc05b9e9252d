"""validate -> build -> execute -> normalize.

A tool's ``build`` step never touches the network: it returns a *plan*
describing the external calls to make. ``execute`` runs the plan against an
:class:`~ads_mcp.gateway.AdsGateway`, and only then does the tool's
``normalize`` step shape the raw result for the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Type, Union

from .errors import ExternalCallError, InternalToolError, ToolError, UnknownToolError
from .gateway import AdsGateway
from .schema import ToolArgs, input_schema, validate_args

log = logging.getLogger(__name__)


# ---------- Plans ----------


@dataclass(frozen=True)
class Query:
    gaql: str
    customer_id: Optional[str] = None
    login_customer_id: Optional[str] = None


@dataclass(frozen=True)
class QueryBatch:
    """Several independent queries; the result is a dict keyed like ``queries``."""

    queries: Dict[str, Query]


@dataclass(frozen=True)
class Mutation:
    operations: List[Dict[str, Any]]


@dataclass(frozen=True)
class Lookup:
    """Run ``query`` and hand its rows to ``then`` for the follow-up plan."""

    query: Query
    then: Callable[[List[Dict[str, Any]]], "Plan"]


@dataclass(frozen=True)
class ListAccessibleCustomers:
    pass


Plan = Union[Query, QueryBatch, Mutation, Lookup, ListAccessibleCustomers]


@dataclass(frozen=True)
class ToolContext:
    customer_id: str


async def execute(plan: Plan, gateway: AdsGateway) -> Any:
    if isinstance(plan, Query):
        return await gateway.query(plan.gaql, plan.customer_id, plan.login_customer_id)
    if isinstance(plan, QueryBatch):
        results = {}
        for key, query in plan.queries.items():
            results[key] = await execute(query, gateway)
        return results
    if isinstance(plan, Mutation):
        return await gateway.mutate(plan.operations)
    if isinstance(plan, Lookup):
        rows = await execute(plan.query, gateway)
        return await execute(plan.then(rows), gateway)
    if isinstance(plan, ListAccessibleCustomers):
        return await gateway.list_accessible_customers()
    raise TypeError(f"Unsupported plan: {plan!r}")


# ---------- Tools ----------


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    args: Type[ToolArgs]
    build: Callable[[Any, ToolContext], Plan]
    normalize: Callable[[Any, Any], Any]
    failure: str

    def descriptor(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "inputSchema": input_schema(self.args)}

    async def run(self, raw_args: Any, gateway: AdsGateway) -> Any:
        args = validate_args(self.args, raw_args)
        plan = self.build(args, ToolContext(customer_id=gateway.customer_id))
        try:
            result = await execute(plan, gateway)
        except ToolError:
            raise
        except Exception as exc:
            raise ExternalCallError(f"{self.failure}: {exc}") from exc
        return self.normalize(args, result)


@dataclass
class ToolRegistry:
    """Immutable-after-startup catalogue of tools, in registration order."""

    _tools: Dict[str, Tool] = field(default_factory=dict)

    def register(self, tool: Tool) -> Tool:
        if tool.name in self._tools:
            raise ValueError(f"Duplicate tool name: {tool.name}")
        self._tools[tool.name] = tool
        return tool

    def extend(self, tools: Iterable[Tool]) -> "ToolRegistry":
        for tool in tools:
            self.register(tool)
        return self

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def list_tools(self) -> List[Dict[str, Any]]:
        return [t.descriptor() for t in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)


async def call_tool(registry: ToolRegistry, gateway: AdsGateway, name: Any, arguments: Any) -> Any:
    """Run one tool. Every failure surfaces as a :class:`ToolError`."""
    tool = registry.get(name) if isinstance(name, str) else None
    if tool is None:
        raise UnknownToolError(f"Unknown tool: {name}")
    try:
        return await tool.run(arguments, gateway)
    except ToolError:
        raise
    except Exception as exc:
        log.exception("tool %s raised unexpectedly", tool.name)
        raise InternalToolError(str(exc) or type(exc).__name__) from exc
