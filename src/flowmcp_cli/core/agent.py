"""Agent mode: keyword search over every source and a per-project active tool list.

In agent mode the project config carries ``mode: "agent"`` and a flat
``tools`` list of ``source/file.py::route`` references. ``add`` also writes a
descriptor ``.flowmcp/tools/<name>.json`` (``{name, description, parameters}``)
that ``remove`` deletes again.

Search scoring, per lowercased query token:

    namespace equals token        +20
    tool name segment equals      +15
    tag equals                    +12
    whole word in schema name      +8
    whole word in description      +5

Every token must score unless the schema is selected by a shared alias list
(country codes and the like), which also adds +10.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from flowmcp_cli.catalog import load_module, parameters_dict
from flowmcp_cli.foundation.config import (
    CLI_COMMAND,
    LOCAL_CONFIG_DIR,
    MODE_AGENT,
    MODE_DEV,
    group_refs,
    write_json,
)
from flowmcp_cli.foundation.errors import ErrorCode, FlowException, JsonDict
from flowmcp_cli.observability import get_logger

from .context import Services
from .groups import DEFAULT_ROOT
from .tools import AvailableTool, find_available, list_available_tools

log = get_logger("core.agent")

MAX_RESULTS = 10
TOOLS_DIR = "tools"

SCORE_NAMESPACE = 20
SCORE_NAME_SEGMENT = 15
SCORE_TAG = 12
SCORE_SCHEMA_NAME = 8
SCORE_DESCRIPTION = 5
SCORE_SHARED = 10


def descriptor_path(cwd: Path | str, name: str) -> Path:
    return Path(cwd) / LOCAL_CONFIG_DIR / TOOLS_DIR / f"{name}.json"


def _missing_name(command: str, hint: str) -> FlowException:
    return FlowException.create("Missing tool name.", ErrorCode.INVALID_INPUT,
                                fix=f"Provide: {CLI_COMMAND} {command} <tool-name>. {hint}")


# ═══════════════════════════════════════════════════════════════════════════════
# Search
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class AliasList:
    """Search terms of one shared list and the schemas that use it."""

    file: str
    terms: tuple[str, ...]
    schema_refs: tuple[str, ...]

    def matches(self, tokens: list[str]) -> bool:
        return any(token in term for token in tokens for term in self.terms)


def _alias_terms(items: list[Any]) -> list[str]:
    terms: list[str] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        alias = item.get("alias") or item.get("code") or item.get("alpha2") or ""
        name = item.get("name") or ""
        terms += [str(value).lower() for value in (alias, name) if value]
    return terms


def load_alias_index(services: Services) -> list[AliasList]:
    """Alias lists declared under ``shared`` in each source's registry manifest."""
    index: list[AliasList] = []
    for source in services.catalog.source_names():
        if (manifest := services.catalog.registry(source)) is None:
            continue
        for shared in manifest.shared:
            try:
                module = load_module(services.catalog.root / source / shared.file, prefix="flowmcp_shared")
            except Exception as e:  # third-party list module
                log.debug("shared list failed to load", source=source, file=shared.file,
                          code=ErrorCode.SHARED_LIST_FAILURE.value, error=str(e))
                continue
            items = next((v for k, v in vars(module).items() if not k.startswith("__") and isinstance(v, list)), None)
            if items is None:
                continue
            refs = tuple(f"{source}/{e.file}" for e in manifest.schemas if shared.file in e.shared)
            index.append(AliasList(shared.file, tuple(_alias_terms(items)), refs))
    return index


def score(tool: AvailableTool, tokens: list[str], shared_refs: set[str]) -> int:
    """Relevance of a tool for the query tokens; 0 means no match."""
    namespace = tool.namespace.lower()
    segments = tool.name.lower().split("_")
    tags = [t.lower() for t in tool.tags]
    schema_name = tool.schema_name.lower()
    description = tool.description.lower()

    total = 0
    all_match = True
    for token in tokens:
        word = re.compile(rf"\b{re.escape(token)}\b")
        points = (
            (SCORE_NAMESPACE if namespace == token else 0)
            + (SCORE_NAME_SEGMENT if token in segments else 0)
            + (SCORE_TAG if token in tags else 0)
            + (SCORE_SCHEMA_NAME if word.search(schema_name) else 0)
            + (SCORE_DESCRIPTION if word.search(description) else 0)
        )
        total += points
        if not points:
            all_match = False
            break
    shared = tool.schema_ref in shared_refs
    if not all_match and not shared:
        return 0
    return total + (SCORE_SHARED if shared else 0)


def search(services: Services, query: str | None) -> JsonDict:
    services.require_init()
    if not query or not query.strip():
        raise FlowException.create("Missing search query.", ErrorCode.INVALID_INPUT,
                                   fix=f"Provide: {CLI_COMMAND} search <query>")
    tokens = query.lower().split()
    shared_refs = {ref for alias in load_alias_index(services) if alias.matches(tokens) for ref in alias.schema_refs}

    scored = [
        {"name": t.name, "description": t.description, "namespace": t.namespace, "tags": list(t.tags),
         "score": s, "add": f"{CLI_COMMAND} add {t.name}"}
        for t in list_available_tools(services) if (s := score(t, tokens, shared_refs)) > 0
    ]
    scored.sort(key=lambda entry: entry["score"], reverse=True)
    result: JsonDict = {
        "status": True,
        "query": query,
        "matchCount": len(scored),
        "showing": min(len(scored), MAX_RESULTS),
        "tools": scored[:MAX_RESULTS],
    }
    if not scored:
        result["hint"] = "No matches. Try broader terms or single keywords."
    elif len(scored) > MAX_RESULTS:
        result["hint"] = (f"{len(scored)} matches found, showing top {MAX_RESULTS} by relevance. "
                          f'Refine with: {CLI_COMMAND} search "more specific query"')
    return result


# ═══════════════════════════════════════════════════════════════════════════════
# Active tool list
# ═══════════════════════════════════════════════════════════════════════════════


def _parameters(services: Services, tool: AvailableTool) -> dict[str, Any]:
    route = services.catalog.load_ref(tool.schema_ref).routes.get(tool.route_name)
    return parameters_dict(route.parameters) if route is not None else {}


def add(services: Services, name: str | None, cwd: Path | str) -> JsonDict:
    """Activate a tool for agent mode, switching the project to agent mode if it has no mode yet."""
    services.require_init()
    if not name or not name.strip():
        raise _missing_name("add", f"Use {CLI_COMMAND} search <query> to find tools.")
    tool = find_available(services, name)
    if tool is None:
        raise FlowException.create(f'Tool "{name}" not found in available schemas.', ErrorCode.NOT_FOUND,
                                   fix=f"Use {CLI_COMMAND} search <query> to find available tools.")
    parameters = _parameters(services, tool)

    config = services.store.read_local_raw(cwd)
    if config is None:
        config = {"mode": MODE_AGENT, "root": DEFAULT_ROOT, "tools": [tool.ref]}
    else:
        if not config.get("mode"):
            config["mode"] = MODE_AGENT
        if not isinstance(config.get("tools"), list):
            config["tools"] = []
        if tool.ref in config["tools"]:
            return {"status": True, "added": name, "message": "Tool was already active.", "parameters": parameters}
        config["tools"].append(tool.ref)

    services.store.write_local(cwd, config)
    write_json(descriptor_path(cwd, name), {"name": name, "description": tool.description, "parameters": parameters})
    log.debug("tool added", tool=name, ref=tool.ref)
    return {"status": True, "added": name, "parameters": parameters}


def remove(services: Services, name: str | None, cwd: Path | str) -> JsonDict:
    services.require_init()
    if not name or not name.strip():
        raise _missing_name("remove", f"Use {CLI_COMMAND} list to see active tools.")
    config = services.store.read_local_raw(cwd)
    active = config.get("tools") if config is not None else None
    if not isinstance(active, list) or not active:
        raise FlowException.create("No active tools found.", ErrorCode.NOT_FOUND,
                                   fix=f"Use {CLI_COMMAND} add <tool-name> to activate tools first.")
    tool = find_available(services, name)
    if tool is None:
        raise FlowException.create(f'Tool "{name}" not recognized.', ErrorCode.NOT_FOUND,
                                   fix=f"Use {CLI_COMMAND} list to see active tools.")
    remaining = [ref for ref in active if ref != tool.ref]
    if len(remaining) == len(active):
        raise FlowException.create(f'Tool "{name}" is not in active tools list.', ErrorCode.NOT_FOUND,
                                   fix=f"Use {CLI_COMMAND} list to see active tools.")
    config["tools"] = remaining
    services.store.write_local(cwd, config)
    descriptor_path(cwd, name).unlink(missing_ok=True)
    return {"status": True, "removed": name}


def list_tools(services: Services, cwd: Path | str) -> JsonDict:
    """Active agent tools, falling back to the default group's tools."""
    services.require_init()
    config = services.store.read_local_raw(cwd) or {}
    refs: list[str] = []
    if isinstance(config.get("tools"), list) and config["tools"]:
        refs = [r for r in config["tools"] if isinstance(r, str)]
    elif isinstance(default := config.get("defaultGroup"), str) and isinstance(config.get("groups"), dict):
        refs = group_refs(config["groups"].get(default))

    schemas = services.resolver.resolve(refs) if refs else []
    tools = [
        {"name": t.name, "description": t.route.description,
         "schema": f"{LOCAL_CONFIG_DIR}/{TOOLS_DIR}/{t.name}.json"}
        for t in services.resolver.iter_tools(schemas)
    ]
    return {"status": True, "toolCount": len(tools), "tools": tools}


# ═══════════════════════════════════════════════════════════════════════════════
# Mode
# ═══════════════════════════════════════════════════════════════════════════════


def set_mode(services: Services, mode: str | None, cwd: Path | str) -> JsonDict:
    if mode not in (MODE_AGENT, MODE_DEV):
        raise FlowException.create(f'Invalid mode "{mode}".', ErrorCode.INVALID_INPUT,
                                   fix=f"Use: {CLI_COMMAND} mode agent  or  {CLI_COMMAND} mode dev")
    config = services.store.read_local_raw(cwd)
    if config is None:
        config = {"mode": mode, "root": DEFAULT_ROOT}
        if mode == MODE_AGENT:
            config["tools"] = []
    else:
        config["mode"] = mode
    services.store.write_local(cwd, config)
    return {"status": True, "mode": mode}


def get_mode(services: Services, cwd: Path | str) -> JsonDict:
    local = services.local(cwd)
    return {"status": True, "mode": local.mode if local is not None else None}
