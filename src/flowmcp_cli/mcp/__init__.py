"""Serve active tools to MCP clients. Requires the ``mcp`` extra (fastmcp)."""

from .server import MCPServer, ToolSpec, render_content, tool_specs

__all__ = ["MCPServer", "ToolSpec", "tool_specs", "render_content"]
