"""Public operations of the FlowMCP CLI.

Every method returns a JSON-ready dict: ``{"status": True, ...}`` on success
or ``{"status": False, "error": ..., "fix"?: ...}`` on failure. No exception
crosses this boundary.

Example:
    >>> flow = FlowMcp()
    >>> await flow.group_append("research", "demo/ping.py::ping", cwd=Path.cwd())
    {'status': True, 'group': 'research', 'toolCount': 1, ...}
    >>> await flow.call_tool("ping_demo", None, cwd=Path.cwd())
    {'status': True, 'toolName': 'ping_demo', 'content': {...}}
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from flowmcp_cli.foundation.config import FlowmcpSettings
from flowmcp_cli.foundation.errors import JsonDict, guarded
from flowmcp_cli.observability import get_logger
from flowmcp_cli.runtime import SchemaRuntime

from . import agent, groups, health, serve, setup, tools, validation
from .context import Services
from .validation import RunScope

log = get_logger("flowmcp")


class FlowMcp:
    """Facade over config, catalog, resolution and execution.

    Args:
        settings: Process settings; defaults to the cached FLOWMCP_ environment settings
        runtime: Schema runtime performing outbound calls; defaults to plain HTTP
    """

    __slots__ = ("_services",)

    def __init__(self, settings: FlowmcpSettings | None = None, runtime: SchemaRuntime | None = None) -> None:
        self._services = Services.create(settings, runtime)

    @property
    def services(self) -> Services:
        return self._services

    @property
    def settings(self) -> FlowmcpSettings:
        return self._services.settings

    # ─────────────────────────────────────────────────────────────────
    # Setup
    # ─────────────────────────────────────────────────────────────────

    @guarded(log)
    async def init(self, env_path: str | Path, cwd: Path | str | None = None) -> JsonDict:
        return setup.init(self._services, env_path, cwd)

    @guarded(log)
    async def schemas(self) -> JsonDict:
        return setup.schemas(self._services)

    @guarded(log)
    async def status(self, cwd: Path | str) -> JsonDict:
        return health.status(self._services, cwd)

    # ─────────────────────────────────────────────────────────────────
    # Groups
    # ─────────────────────────────────────────────────────────────────

    @guarded(log)
    async def group_append(self, name: str | None, tools: str | Sequence[str] | None, cwd: Path | str) -> JsonDict:
        return groups.group_append(self._services, cwd, name, tools)

    @guarded(log)
    async def group_remove(self, name: str | None, tools: str | Sequence[str] | None, cwd: Path | str) -> JsonDict:
        return groups.group_remove(self._services, cwd, name, tools)

    @guarded(log)
    async def group_list(self, cwd: Path | str) -> JsonDict:
        return groups.group_list(self._services, cwd)

    @guarded(log)
    async def group_set_default(self, name: str | None, cwd: Path | str) -> JsonDict:
        return groups.group_set_default(self._services, cwd, name)

    # ─────────────────────────────────────────────────────────────────
    # Validation and live tests
    # ─────────────────────────────────────────────────────────────────

    @guarded(log)
    async def validate(self, cwd: Path | str, schema_path: str | Path | None = None,
                       group: str | None = None) -> JsonDict:
        return validation.validate(self._services, cwd, schema_path, group)

    @guarded(log)
    async def test(self, cwd: Path | str, scope: RunScope | None = None, schema_path: str | Path | None = None,
                   route: str | None = None, group: str | None = None) -> JsonDict:
        """Live-test routes. ``scope``: ``single`` (path), ``project`` (group) or ``user`` (all sources)."""
        return await validation.run_tests(self._services, cwd, scope, schema_path, route, group)

    # ─────────────────────────────────────────────────────────────────
    # Tools
    # ─────────────────────────────────────────────────────────────────

    @guarded(log)
    async def resolve_active_tools(self, cwd: Path | str, group: str | None = None) -> JsonDict:
        return tools.resolve_active_tools(self._services, cwd, group)

    @guarded(log)
    async def call_tool(self, name: str | None, args: str | Mapping[str, Any] | None, cwd: Path | str,
                        group: str | None = None, no_cache: bool = False, refresh: bool = False) -> JsonDict:
        return await tools.call_tool(self._services, name, args, cwd, group, no_cache=no_cache, refresh=refresh)

    @guarded(log)
    async def run(self, cwd: Path | str, group: str | None = None) -> JsonDict:
        """Serve the active tools over stdio until the client disconnects."""
        return await serve.run(self._services, cwd, group)

    # ─────────────────────────────────────────────────────────────────
    # Agent mode
    # ─────────────────────────────────────────────────────────────────

    @guarded(log)
    async def search(self, query: str | None) -> JsonDict:
        return agent.search(self._services, query)

    @guarded(log)
    async def add(self, name: str | None, cwd: Path | str) -> JsonDict:
        return agent.add(self._services, name, cwd)

    @guarded(log)
    async def remove(self, name: str | None, cwd: Path | str) -> JsonDict:
        return agent.remove(self._services, name, cwd)

    @guarded(log)
    async def list_tools(self, cwd: Path | str) -> JsonDict:
        return agent.list_tools(self._services, cwd)

    @guarded(log)
    async def set_mode(self, mode: str | None, cwd: Path | str) -> JsonDict:
        return agent.set_mode(self._services, mode, cwd)

    @guarded(log)
    async def get_mode(self, cwd: Path | str) -> JsonDict:
        return agent.get_mode(self._services, cwd)

    # ─────────────────────────────────────────────────────────────────
    # Cache
    # ─────────────────────────────────────────────────────────────────

    @guarded(log)
    async def cache_status(self) -> JsonDict:
        return tools.cache_status(self._services)

    @guarded(log)
    async def cache_clear(self, namespace: str | None = None) -> JsonDict:
        return tools.cache_clear(self._services, namespace)
