from __future__ import annotations

import logging
import math
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from ..models.tool_result import ToolResult
from ..models.tool_spec import ToolDefinition, ToolParameters

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[ToolResult]]


class ToolRegistryError(RuntimeError):
    pass


def number_param(params: dict[str, Any], key: str, default: float) -> float:
    """A numeric tool argument; numeric strings are accepted, anything else falls back to `default`."""

    value = params.get(key)
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return default
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return default
    return int(value) if float(value).is_integer() else float(value)


@runtime_checkable
class Tool(Protocol):
    @property
    def definition(self) -> ToolDefinition: ...

    async def execute(self, params: dict[str, Any]) -> ToolResult: ...


@dataclass(frozen=True, slots=True)
class FunctionTool:
    """A tool backed by a plain async function."""

    definition: ToolDefinition
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def app_id(self) -> str | None:
        return self.definition.app_id

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        return await self.handler(dict(params or {}))


class ToolRegistry:
    """
    Name -> tool table.

    Registering a name that already exists replaces the previous tool; application surfaces
    re-register their tool sets whenever they mount.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        name = tool.definition.name
        with self._lock:
            if name in self._tools:
                logger.debug("replacing tool %s", name)
            self._tools[name] = tool

    def register_all(self, tools: list[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def unregister(self, name: str) -> None:
        with self._lock:
            self._tools.pop(name, None)

    def get(self, name: str) -> Tool | None:
        with self._lock:
            return self._tools.get(name)

    def require(self, name: str) -> Tool:
        tool = self.get(name)
        if tool is None:
            raise ToolRegistryError(f"Tool not found: {name}")
        return tool

    def all_tools(self) -> list[Tool]:
        with self._lock:
            return list(self._tools.values())

    def tools_for_app(self, app_id: str) -> list[Tool]:
        return [t for t in self.all_tools() if t.definition.app_id == app_id]

    def definitions_for_model(self) -> list[dict[str, Any]]:
        """Wire descriptors (name, description, parameters, appId); executables stay local."""

        return [t.definition.to_wire() for t in self.all_tools()]

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)


def define_tool(
    *,
    name: str,
    description: str,
    app_id: str | None,
    properties: dict[str, dict[str, Any]],
    required: list[str] | tuple[str, ...] = (),
    handler: ToolHandler,
) -> FunctionTool:
    definition = ToolDefinition(
        name=name,
        description=description,
        app_id=app_id,
        parameters=ToolParameters.model_validate({"properties": properties, "required": list(required)}),
    )
    return FunctionTool(definition=definition, handler=handler)
