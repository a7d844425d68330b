"""Layered health report over config, env file, sources and groups.

Checks run in levels; a missing or uninitialized global config stops the
report after level 1. Each check is ``{level, name, ok, ...}`` with an optional
``path``, ``detail``, ``fix`` and ``warnings``. The report is healthy when
every check is ok.

    1  globalConfig   global config exists and is well-formed
    2  envFile        the env file named by the global config exists
    3  schemas        at least one schema source is present
    3  envParams      every registry-declared server param has a value
    4  localConfig    project config exists and is well-formed
    5  groups         groups exist and the default group resolves
"""

from __future__ import annotations

from pathlib import Path

from flowmcp_cli.foundation.config import (
    CLI_COMMAND,
    global_warnings,
    group_refs,
    group_warnings,
    local_warnings,
    read_env_file,
)
from flowmcp_cli.foundation.errors import JsonDict
from flowmcp_cli.observability import get_logger

from .context import Services

log = get_logger("core.health")

Check = JsonDict


def _check(level: int, name: str, ok: bool, **fields: object) -> Check:
    return {"level": level, "name": name, "ok": ok, **{k: v for k, v in fields.items() if v is not None}}


# ═══════════════════════════════════════════════════════════════════════════════
# Checks
# ═══════════════════════════════════════════════════════════════════════════════


def _env_params_check(services: Services, env: dict[str, str], env_path: str) -> Check:
    needed: dict[str, list[str]] = {}
    for source in services.catalog.source_names():
        if (manifest := services.catalog.registry(source)) is None:
            continue
        for entry in manifest.schemas:
            for param in entry.required_server_params:
                namespaces = needed.setdefault(param, [])
                if entry.namespace and entry.namespace not in namespaces:
                    namespaces.append(entry.namespace)
    missing = [p for p in needed if not env.get(p, "").strip()]
    total = len(needed)
    return _check(
        3, "envParams", not missing,
        detail=f"{len(missing)}/{total} env var(s) missing" if missing else f"{total} env var(s) verified",
        fix=f"Add missing env vars to {env_path}: {', '.join(missing)}" if missing else None,
        warnings=[f'Missing "{p}" (needed by: {", ".join(needed[p])})' for p in missing] or None,
    )


def _groups_check(raw: JsonDict) -> Check:
    groups = raw.get("groups") if isinstance(raw.get("groups"), dict) else {}
    default = raw.get("defaultGroup")
    warnings: list[str] = []
    if isinstance(default, str) and default and default not in groups:
        warnings.append(f'Default group "{default}" does not exist')
    warnings += group_warnings(groups)
    has_groups = len(groups) > 0
    has_default = isinstance(default, str) and default in groups
    return _check(
        5, "groups", has_groups and has_default and not warnings,
        detail=f"default: {default if has_default else 'none'}" if has_groups else "no groups",
        fix=warnings[0] if warnings else f'Run: {CLI_COMMAND} group append <name> --tools "source/file.py::route,..."',
        warnings=warnings or None,
    )


def health_checks(services: Services, cwd: Path | str) -> list[Check]:
    """Run every check level and return the list in order."""
    store = services.store
    raw = store.read_global_raw()
    if raw is None or not raw.get("initialized"):
        return [_check(1, "globalConfig", False, path=str(store.global_path), fix=f"Run: {CLI_COMMAND} init")]
    warnings = global_warnings(raw)
    checks = [_check(1, "globalConfig", not warnings, path=str(store.global_path),
                     fix=warnings[0] if warnings else f"Run: {CLI_COMMAND} init", warnings=warnings or None)]

    env_path = raw.get("envPath") if isinstance(raw.get("envPath"), str) else ""
    env = read_env_file(env_path)
    checks.append(_check(2, "envFile", env is not None, path=env_path,
                         fix=f"Ensure .env file exists at: {env_path}"))

    count = len(services.catalog.source_names())
    checks.append(_check(3, "schemas", count > 0, path=str(services.catalog.root), detail=f"{count} source(s)",
                         fix=f"Run: {CLI_COMMAND} import <github-url>"))
    if env is not None and count > 0:
        checks.append(_env_params_check(services, env, env_path))

    local_path = store.local_path(cwd)
    local = store.read_local_raw(cwd)
    if local is None:
        checks.append(_check(4, "localConfig", False, path=str(local_path),
                             fix=f"Run: {CLI_COMMAND} init (in project directory)"))
        return checks
    warnings = local_warnings(local)
    checks.append(_check(4, "localConfig", not warnings, path=str(local_path),
                         fix=warnings[0] if warnings else None, warnings=warnings or None))
    checks.append(_groups_check(local))
    return checks


# ═══════════════════════════════════════════════════════════════════════════════
# Status
# ═══════════════════════════════════════════════════════════════════════════════


def status(services: Services, cwd: Path | str) -> JsonDict:
    """Health report plus a summary of the global and project configuration."""
    checks = health_checks(services, cwd)
    healthy = all(c["ok"] for c in checks)
    config = services.store.load_global()
    local = services.store.read_local_raw(cwd)
    groups = local.get("groups") if local is not None and isinstance(local.get("groups"), dict) else {}
    default = local.get("defaultGroup") if local is not None else None
    log.debug("status", healthy=healthy, checks=len(checks))
    return {
        "status": True,
        "healthy": healthy,
        "checks": checks,
        "config": {
            "envPath": config.env_path,
            "envExists": read_env_file(config.env_path) is not None,
            "flowmcpCore": config.flowmcp_core.model_dump(by_alias=True) if config.flowmcp_core else None,
            "initialized": config.initialized,
        } if config is not None else None,
        "sources": {name: {"schemaCount": src.schema_count} for name, src in config.sources.items()}
        if config is not None else {},
        "groups": {name: {"toolCount": len(group_refs(data))} for name, data in groups.items()},
        "defaultGroup": default if isinstance(default, str) and default else None,
    }
