"""MCP server adapter: exposes resolved schema routes as FastMCP tools over stdio.

Each route becomes one tool whose argument schema is built from the route's
user parameters. Calls go back through the execution engine, so hooks and the
response cache behave exactly as for ``flowmcp call``.

Example:
    >>> specs = tool_specs(services.engine, active.schemas, env, env_path)
    >>> await MCPServer("flowmcp-research", specs).run_async()

Requires: pip install flowmcp-cli[mcp]
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Awaitable, Callable

import orjson

from flowmcp_cli.catalog import LoadedSchema, extract_parameters, to_json_schema, tools_of
from flowmcp_cli.foundation.errors import JsonDict
from flowmcp_cli.observability import get_logger

if TYPE_CHECKING:
    from flowmcp_cli.catalog import ResolvedTool
    from flowmcp_cli.runtime import ExecutionEngine

log = get_logger("mcp.server")

Invoke = Callable[[dict[str, Any]], Awaitable[JsonDict]]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Transport-independent description of one served tool."""

    name: str
    description: str
    parameters: JsonDict
    invoke: Invoke


def _invoker(engine: ExecutionEngine, tool: ResolvedTool, env: Mapping[str, str], env_path: str) -> Invoke:
    async def invoke(arguments: dict[str, Any]) -> JsonDict:
        result = await engine.execute(tool, arguments, env, env_path)
        return result.match(lambda ok: ok, lambda err: err.to_result())
    return invoke


def tool_specs(engine: ExecutionEngine, schemas: Iterable[LoadedSchema], env: Mapping[str, str],
               env_path: str) -> list[ToolSpec]:
    """One spec per route of the given schemas, in resolution order."""
    return [
        ToolSpec(
            name=tool.name,
            description=tool.route.description,
            parameters=to_json_schema(extract_parameters(tool.route.parameters)),
            invoke=_invoker(engine, tool, env, env_path),
        )
        for schema in schemas for tool in tools_of(schema)
    ]


def render_content(content: Any) -> str:
    return content if isinstance(content, str) else orjson.dumps(content, default=str).decode()


# ═══════════════════════════════════════════════════════════════════════════════
# FastMCP Adapter
# ═══════════════════════════════════════════════════════════════════════════════


@lru_cache(maxsize=1)
def _route_tool_class() -> type:
    """FastMCP Tool subclass forwarding raw arguments to a ToolSpec."""
    from fastmcp.exceptions import ToolError
    from fastmcp.tools.tool import Tool, ToolResult
    from pydantic import Field

    class RouteTool(Tool):
        spec: Any = Field(default=None, exclude=True)

        async def run(self, arguments: dict[str, Any]) -> ToolResult:
            result = await self.spec.invoke(arguments)
            if not result.get("status"):
                raise ToolError(result.get("error") or "Tool execution failed")
            return ToolResult(content=render_content(result.get("content")))

    return RouteTool


class MCPServer:
    """FastMCP-backed stdio server for MCP clients.

    Example:
        >>> server = MCPServer("flowmcp-agent", specs)
        >>> server.tool_names
        ['ping_demo']
    """

    __slots__ = ("_name", "_specs", "_mcp")

    def __init__(self, name: str, specs: list[ToolSpec]) -> None:
        self._name = name
        self._specs = specs
        self._mcp = self._create_server()

    def _create_server(self) -> Any:
        try:
            from fastmcp import FastMCP
        except ImportError as e:
            raise ImportError(
                "MCP serving requires fastmcp. "
                "Install with: pip install flowmcp-cli[mcp]"
            ) from e

        mcp = FastMCP(self._name)
        tool_cls = _route_tool_class()
        for spec in self._specs:
            mcp.add_tool(tool_cls(name=spec.name, description=spec.description, parameters=spec.parameters,
                                  spec=spec))
        return mcp

    @property
    def name(self) -> str:
        return self._name

    @property
    def tool_names(self) -> list[str]:
        return [spec.name for spec in self._specs]

    @property
    def fastmcp(self) -> Any:
        """Access underlying FastMCP instance."""
        return self._mcp

    async def run_async(self) -> None:
        """Serve on stdio until the client disconnects."""
        log.info("server starting", server=self._name, tools=len(self._specs), transport="stdio")
        await self._mcp.run_async(transport="stdio")
        log.info("server stopped", server=self._name)
