# tool_registry.py
# Name-keyed registry of tool descriptors.
#
# Constructed once at startup and handed to the runner explicitly. Register
# every tool before serving a run; the registry is read-only after that and
# carries no locking.

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from agent_engine import display
from agent_engine.models import ExecutionContext, ExecutionResult

if TYPE_CHECKING:
    from agent_engine.tool_builder import ApprovalSpec


class ToolNotFoundError(LookupError):
    """Raised when a tool name is absent from the registry."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Tool not found: {tool_name}")


@dataclass(frozen=True)
class Tool:
    """
    A named, schema-described action the model may request.

    `execute` is the gated entry point built by `define_tool`: it validates,
    enforces approval, and only then calls the real handler.
    """

    name: str
    description: str
    parameters: dict[str, Any]
    execute: Callable[[dict[str, Any], ExecutionContext], ExecutionResult]
    hidden: bool = False
    approval: "ApprovalSpec | None" = None

    @property
    def requires_approval(self) -> bool:
        return self.approval is not None

    def declaration(self) -> dict[str, Any]:
        """Model-facing function declaration."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def register(self, tool: Tool) -> None:
        """Insert or overwrite. Last registration under a name wins."""
        self._tools[tool.name] = tool

    def register_all(self, tools: Iterable[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def resolve(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    def list_tools(self, include_hidden: bool = True) -> list[str]:
        return [
            name for name, tool in self._tools.items() if include_hidden or not tool.hidden
        ]

    def with_follow_ups(self, names: Iterable[str]) -> list[str]:
        """
        `names` plus the follow-up tool bound to each approval tool among
        them, so an agent permitted a proposer may also commit it.
        """
        permitted: list[str] = []
        for name in names:
            if name not in permitted:
                permitted.append(name)
            follow_up = getattr(self.resolve(name).approval, "follow_up", None)
            if follow_up is not None and follow_up.tool_name not in permitted:
                permitted.append(follow_up.tool_name)
        return permitted

    def declarations(self, names: Iterable[str] | None = None) -> list[dict[str, Any]]:
        """
        Function declarations built from the registry as it stands now.

        With no names, every visible tool is declared. An explicit name list
        declares exactly those tools, in that order, hidden ones included.
        """
        if names is None:
            return [tool.declaration() for tool in self._tools.values() if not tool.hidden]
        return [self.resolve(name).declaration() for name in names]

    def dispatch(
        self, name: str, args: dict[str, Any], context: ExecutionContext
    ) -> ExecutionResult:
        """
        Resolve `name` and run its gated entry point.

        Raises ToolNotFoundError for unknown names. Handler exceptions are
        reported and re-raised unchanged.
        """
        tool = self.resolve(name)
        start = time.perf_counter()
        try:
            result = tool.execute(args, context)
        except Exception as exc:
            display.tool_raised(name, _elapsed_ms(start), str(exc))
            raise
        display.tool_executed(name, _elapsed_ms(start), result)
        return result


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
