"""Group CRUD on the project config.

Groups are edited on the raw document so unknown keys survive a write. The
first group ever created becomes the default. Legacy ``schemas`` arrays are
read as ``tools`` and written back as ``tools``.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from flowmcp_cli.foundation.config import CLI_COMMAND, LOCAL_CONFIG_DIR, group_refs
from flowmcp_cli.foundation.errors import ErrorCode, FlowError, FlowException, JsonDict
from flowmcp_cli.observability import get_logger

from .context import Services, group_not_found

log = get_logger("core.groups")

TOOLS_EXAMPLE = '"source/file.py::route1,source/file.py::route2"'
DEFAULT_ROOT = f"~/{LOCAL_CONFIG_DIR}"


# ─────────────────────────────────────────────────────────────────────────────
# Input validation
# ─────────────────────────────────────────────────────────────────────────────


def _name_messages(name: Any) -> list[str]:
    if name is None:
        return ["name: Missing value. Provide a group name."]
    if not isinstance(name, str):
        return ["name: Must be a string."]
    return ["name: Must not be empty."] if not name.strip() else []


def _tools_messages(tools: Any) -> list[str]:
    if tools is None:
        return [f"tools: Missing value. Provide --tools {TOOLS_EXAMPLE}."]
    if isinstance(tools, str):
        return ["tools: Must not be empty."] if not tools.strip() else []
    if isinstance(tools, Sequence) and all(isinstance(t, str) for t in tools):
        return ["tools: Must not be empty."] if not any(t.strip() for t in tools) else []
    return ["tools: Must be a string."]


def invalid_input(messages: list[str], fix: str) -> FlowException:
    return FlowException.create("; ".join(messages), ErrorCode.INVALID_INPUT, fix=fix,
                                details={"messages": messages})


def _checked(name: Any, tools: Any, command: str) -> tuple[str, list[str]]:
    if messages := _name_messages(name) + _tools_messages(tools):
        raise invalid_input(messages, f"Provide: {CLI_COMMAND} group {command} <name> --tools {TOOLS_EXAMPLE}")
    return name, split_refs(tools)


def split_refs(tools: str | Sequence[str]) -> list[str]:
    """Comma-separated (or listed) references, trimmed, empties dropped."""
    parts = tools.split(",") if isinstance(tools, str) else [p for t in tools for p in t.split(",")]
    return [p.strip() for p in parts if p.strip()]


def _dedupe(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


# ─────────────────────────────────────────────────────────────────────────────
# Operations
# ─────────────────────────────────────────────────────────────────────────────


def group_append(services: Services, cwd: Path | str, name: str | None,
                 tools: str | Sequence[str] | None) -> JsonDict:
    services.require_init()
    name, refs = _checked(name, tools, "append")
    if invalid := [ref for ref in refs if not services.resolver.check_ref(ref)]:
        raise FlowException.create(
            f"Tools not found: {', '.join(invalid)}",
            ErrorCode.NOT_FOUND,
            fix=f"Run {CLI_COMMAND} call list-tools to see available tool references.",
        )

    config = services.store.read_local_raw(cwd) or {"root": DEFAULT_ROOT}
    if not isinstance(config.get("groups"), dict):
        config["groups"] = {}
    current = config["groups"].get(name)
    existing = group_refs(current)
    merged = _dedupe(existing + refs)
    added = _dedupe([ref for ref in refs if ref not in existing])
    description = current.get("description", "") if isinstance(current, dict) else ""
    config["groups"][name] = {"description": description if isinstance(description, str) else "", "tools": merged}
    if not config.get("defaultGroup"):
        config["defaultGroup"] = name
    services.store.write_local(cwd, config)
    log.debug("group appended", group=name, added=len(added))
    return {
        "status": True,
        "group": name,
        "toolCount": len(merged),
        "tools": merged,
        "added": added,
        "isDefault": config["defaultGroup"] == name,
    }


def group_remove(services: Services, cwd: Path | str, name: str | None,
                 tools: str | Sequence[str] | None) -> JsonDict:
    services.require_init()
    name, refs = _checked(name, tools, "remove")
    config = services.store.read_local_raw(cwd)
    if config is None:
        raise FlowException.create("No local config found.", ErrorCode.NOT_FOUND,
                                   fix=f"Run {CLI_COMMAND} init first.")
    groups = config.get("groups")
    if not isinstance(groups, dict) or not isinstance(groups.get(name), dict):
        raise FlowException(group_not_found(name))

    group = groups[name]
    existing = group_refs(group)
    drop = set(refs)
    remaining = [ref for ref in existing if ref not in drop]
    group["tools"] = remaining
    group.pop("schemas", None)
    services.store.write_local(cwd, config)
    return {
        "status": True,
        "group": name,
        "toolCount": len(remaining),
        "tools": remaining,
        "removed": [ref for ref in refs if ref in existing],
    }


def group_list(services: Services, cwd: Path | str) -> JsonDict:
    services.require_init()
    config = services.store.read_local_raw(cwd)
    groups = config.get("groups") if config is not None else None
    if not isinstance(groups, dict):
        return {"status": True, "defaultGroup": None, "groups": {}}
    default = config.get("defaultGroup") if config is not None else None
    return {
        "status": True,
        "defaultGroup": default or None,
        "groups": {
            name: {
                "description": data.get("description", "") if isinstance(data, dict) else "",
                "toolCount": len(group_refs(data)),
            }
            for name, data in groups.items()
        },
    }


def group_set_default(services: Services, cwd: Path | str, name: str | None) -> JsonDict:
    services.require_init()
    if messages := _name_messages(name):
        raise invalid_input(messages, f"Provide: {CLI_COMMAND} group set-default <name>")
    config = services.store.read_local_raw(cwd)
    if config is None:
        raise FlowException(FlowError.create("No local config found.", ErrorCode.NOT_FOUND,
                                             fix=f"Ask the user to run: {CLI_COMMAND} init"))
    groups = config.get("groups")
    if not isinstance(groups, dict) or name not in groups:
        raise FlowException(group_not_found(str(name)))
    config["defaultGroup"] = name
    services.store.write_local(cwd, config)
    return {"status": True, "defaultGroup": name}
