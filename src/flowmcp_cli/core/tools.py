"""Tool listing and invocation against the project's active tool set.

The active set is the agent-mode tool list or a group (see ``context``). A
call walks the active schemas in order and executes the first tool whose
canonical name matches. When nothing matches, the catalog of every source is
consulted to tell an unknown tool from one that merely is not active here.

Example:
    >>> await call_tool(services, "ping_demo", '{"limit": 5}', cwd)
    {'status': True, 'toolName': 'ping_demo', 'content': {...}}
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import orjson

from flowmcp_cli.catalog import ROUTE_SEPARATOR, tools_of
from flowmcp_cli.foundation.config import CLI_COMMAND, missing_params
from flowmcp_cli.foundation.errors import ErrorCode, FlowError, FlowException, JsonDict
from flowmcp_cli.observability import get_logger

from .context import ActiveSet, Services, expect, load_env, resolve_active

log = get_logger("core.tools")


@dataclass(frozen=True, slots=True)
class AvailableTool:
    """One route of any source, as offered by search and add."""

    ref: str
    name: str
    schema_ref: str
    route_name: str
    namespace: str
    description: str
    tags: tuple[str, ...]
    schema_name: str


def list_available_tools(services: Services) -> list[AvailableTool]:
    """Every route of every valid schema in every source, in catalog order."""
    tools: list[AvailableTool] = []
    for source in services.catalog.list_sources():
        for info in source.schemas:
            schema = services.catalog.load_ref(info.ref)
            if schema.definition is None:
                continue
            for tool in tools_of(schema):
                tools.append(AvailableTool(
                    ref=f"{info.ref}{ROUTE_SEPARATOR}{tool.route_name}",
                    name=tool.name,
                    schema_ref=info.ref,
                    route_name=tool.route_name,
                    namespace=schema.namespace,
                    description=tool.route.description,
                    tags=schema.definition.tags,
                    schema_name=schema.definition.name,
                ))
    return tools


def find_available(services: Services, name: str) -> AvailableTool | None:
    return next((t for t in list_available_tools(services) if t.name == name), None)


# ═══════════════════════════════════════════════════════════════════════════════
# Active tools
# ═══════════════════════════════════════════════════════════════════════════════


def resolve_active_tools(services: Services, cwd: Path | str, group: str | None = None) -> JsonDict:
    """Tools of the active set with their route descriptions."""
    config = services.require_init()
    active = expect(resolve_active(services, cwd, group))
    expect(load_env(config))
    tools = [
        {"toolName": t.name, "namespace": t.namespace, "routeName": t.route_name, "description": t.route.description}
        for t in services.resolver.iter_tools(active.schemas)
    ]
    return {"status": True, "group": active.label, "toolCount": len(tools), "tools": tools}


def missing_env_report(active: ActiveSet, env: Mapping[str, str]) -> list[JsonDict]:
    """``{namespace, params}`` for every active schema lacking env vars."""
    return [
        {"namespace": s.namespace, "params": missing}
        for s in active.schemas if (missing := missing_params(env, s.required_server_params))
    ]


# ═══════════════════════════════════════════════════════════════════════════════
# Calls
# ═══════════════════════════════════════════════════════════════════════════════


def parse_args(name: str, args: str | Mapping[str, Any] | None) -> dict[str, Any]:
    """Caller arguments from a JSON object string or a mapping."""
    if args is None or args == "":
        return {}
    if isinstance(args, Mapping):
        return dict(args)
    try:
        parsed = orjson.loads(args)
    except orjson.JSONDecodeError:
        parsed = None
    if not isinstance(parsed, dict):
        raise FlowException.create(
            "Invalid JSON argument.",
            ErrorCode.INVALID_INPUT,
            fix=f"Provide valid JSON: {CLI_COMMAND} call {name} '{{\"param\": \"value\"}}'",
        )
    return parsed


def not_found(services: Services, name: str, active: ActiveSet) -> FlowError:
    """Tells an empty active set, a known-but-inactive tool and an unknown name apart."""
    listing = f"{CLI_COMMAND} list" if active.agent else f"{CLI_COMMAND} call list-tools"
    if not any(True for _ in services.resolver.iter_tools(active.schemas)):
        return FlowError.create(
            "No active tools." if active.agent else f'No active tools in group "{active.label}".',
            ErrorCode.NOT_FOUND,
            fix=f"Use {CLI_COMMAND} add <tool-name> to activate tools." if active.agent
            else f"Run {CLI_COMMAND} group append {active.label} --tools <source/file.py::route>.",
        )
    if (known := find_available(services, name)) is not None:
        where = "active tools" if active.agent else f'group "{active.label}"'
        fix = (f"Activate it with: {CLI_COMMAND} add {name}" if active.agent
               else f'Add it with: {CLI_COMMAND} group append {active.label} --tools "{known.ref}"')
        return FlowError.create(f'Tool "{name}" not recognized in {where}.', ErrorCode.NOT_FOUND, fix=fix)
    return FlowError.create(f'Tool "{name}" not recognized.', ErrorCode.NOT_FOUND,
                            fix=f"Run {listing} to see available tool names.")


async def call_tool(
    services: Services,
    name: str | None,
    args: str | Mapping[str, Any] | None,
    cwd: Path | str,
    group: str | None = None,
    *,
    no_cache: bool = False,
    refresh: bool = False,
) -> JsonDict:
    """Execute one active tool by canonical name."""
    config = services.require_init()
    if not name or not name.strip():
        raise FlowException.create(
            "Missing tool name.",
            ErrorCode.INVALID_INPUT,
            fix=f"Provide: {CLI_COMMAND} call <tool-name> [json]. "
                f"Run {CLI_COMMAND} call list-tools to see available tools.",
        )
    active = expect(resolve_active(services, cwd, group))
    env = expect(load_env(config))
    params = parse_args(name, args)
    tool = services.resolver.find(name, active.schemas)
    if tool is None:
        raise FlowException(not_found(services, name, active))
    log.debug("calling tool", tool=name, group=active.label, no_cache=no_cache, refresh=refresh)
    return expect(await services.engine.execute(tool, params, env, config.env_path,
                                                no_cache=no_cache, refresh=refresh))


# ═══════════════════════════════════════════════════════════════════════════════
# Cache administration
# ═══════════════════════════════════════════════════════════════════════════════


def cache_status(services: Services) -> JsonDict:
    return services.engine.cache.status()


def cache_clear(services: Services, namespace: str | None = None) -> JsonDict:
    return services.engine.cache.clear(namespace or None)
