"""Two-level configuration store: global (per user) and local (per project).

Nothing is cached between calls. Every read goes back to disk and returns an
immutable snapshot, so a source imported or a group edited by another process
is visible to the very next operation.

Structural problems never raise. ``global_warnings``/``local_warnings`` list
them in a ``path: reason`` form for the health view, and the typed snapshot is
salvaged from whatever parts of the document are well-formed.

Example:
    >>> store = ConfigStore(get_settings())
    >>> store.require_init().is_ok()
    True
    >>> store.load_local(Path.cwd()).default_group
    'research'
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson
from pydantic import ValidationError

from flowmcp_cli.foundation.errors import Err, ErrorCode, FlowError, JsonDict, Ok, Result
from flowmcp_cli.observability import get_logger

from .models import GlobalConfig, GroupConfig, LocalConfig, SourceConfig
from .settings import CLI_COMMAND, FlowmcpSettings, local_config_path

log = get_logger("config")


def read_json(path: Path) -> JsonDict | None:
    """Read a JSON object from disk. Missing, unreadable or non-object files yield None."""
    try:
        data = orjson.loads(path.read_bytes())
    except (OSError, orjson.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None


def write_json(path: Path, data: JsonDict) -> None:
    """Write a JSON document, creating parent directories on demand."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2) + b"\n")


def group_refs(group: Any) -> list[str]:
    """Tool references of a raw group entry, honouring the legacy ``schemas`` key."""
    if not isinstance(group, dict):
        return []
    refs = group.get("tools", group.get("schemas"))
    return [r for r in refs if isinstance(r, str)] if isinstance(refs, list) else []


def migrate_legacy_groups(data: JsonDict) -> JsonDict:
    """Rename every group's legacy ``schemas`` array to ``tools``, keeping element order."""
    groups = data.get("groups")
    if not isinstance(groups, dict):
        return data
    for group in groups.values():
        if isinstance(group, dict) and "schemas" in group:
            legacy = group.pop("schemas")
            group.setdefault("tools", legacy)
    return data


class ConfigStore:
    """Reads and writes the global and project configuration documents."""

    __slots__ = ("_settings",)

    def __init__(self, settings: FlowmcpSettings) -> None:
        self._settings = settings

    @property
    def global_path(self) -> Path:
        return self._settings.config_path

    @staticmethod
    def local_path(cwd: Path | str) -> Path:
        return local_config_path(cwd)

    # ─────────────────────────────────────────────────────────────────
    # Raw documents
    # ─────────────────────────────────────────────────────────────────

    def read_global_raw(self) -> JsonDict | None:
        return read_json(self.global_path)

    def read_local_raw(self, cwd: Path | str) -> JsonDict | None:
        return read_json(self.local_path(cwd))

    def write_global(self, data: JsonDict) -> None:
        write_json(self.global_path, data)
        log.debug("global config written", path=str(self.global_path))

    def write_local(self, cwd: Path | str, data: JsonDict) -> None:
        """Persist the project config; legacy ``schemas`` arrays are migrated on the way out."""
        write_json(self.local_path(cwd), migrate_legacy_groups(data))
        log.debug("local config written", path=str(self.local_path(cwd)))

    # ─────────────────────────────────────────────────────────────────
    # Typed snapshots
    # ─────────────────────────────────────────────────────────────────

    def load_global(self) -> GlobalConfig | None:
        if (raw := self.read_global_raw()) is None:
            return None
        try:
            return GlobalConfig.model_validate(raw)
        except ValidationError:
            return _salvage_global(raw)

    def load_local(self, cwd: Path | str) -> LocalConfig | None:
        if (raw := self.read_local_raw(cwd)) is None:
            return None
        try:
            return LocalConfig.model_validate(raw)
        except ValidationError:
            return _salvage_local(raw)

    def require_init(self) -> Result[GlobalConfig, FlowError]:
        """The global config, or the NotInitialized failure shared by every command needing it."""
        config = self.load_global()
        if config is None or not config.initialized:
            return Err(FlowError.create(
                f"Not initialized. Run: {CLI_COMMAND} init",
                ErrorCode.NOT_INITIALIZED,
                fix=f"Ask the user to run: {CLI_COMMAND} init",
            ))
        return Ok(config)


# ═══════════════════════════════════════════════════════════════════════════════
# Structural validation (health view)
# ═══════════════════════════════════════════════════════════════════════════════


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and len(value) > 0


def global_warnings(raw: JsonDict) -> list[str]:
    """Structural warnings for the global config document."""
    warnings: list[str] = []
    if not _is_text(raw.get("envPath")):
        warnings.append("envPath: Missing or not a non-empty string")
    if not isinstance(raw.get("initialized"), str):
        warnings.append("initialized: Missing or not a string")
    core = raw.get("flowmcpCore")
    if not isinstance(core, dict):
        warnings.append("flowmcpCore: Missing or not an object")
    else:
        warnings += [f"flowmcpCore.{key}: Missing or not a string"
                     for key in ("version", "schemaSpec") if not isinstance(core.get(key), str)]
    if "sources" in raw and not isinstance(raw["sources"], dict):
        warnings.append("sources: Must be an object when present")
    return warnings


def local_warnings(raw: JsonDict) -> list[str]:
    """Structural warnings for a project config document, including a dangling defaultGroup."""
    warnings: list[str] = []
    if not _is_text(raw.get("root")):
        warnings.append("root: Missing or not a non-empty string")
    groups = raw.get("groups")
    if "groups" in raw:
        if not isinstance(groups, dict):
            warnings.append("groups: Must be an object when present")
        else:
            warnings += group_warnings(groups)
    if "defaultGroup" in raw:
        default = raw["defaultGroup"]
        if not isinstance(default, str):
            warnings.append("defaultGroup: Must be a string")
        elif isinstance(groups, dict) and default not in groups:
            warnings.append(f'defaultGroup: "{default}" does not reference an existing group')
    return warnings


def group_warnings(groups: JsonDict) -> list[str]:
    warnings: list[str] = []
    for name, group in groups.items():
        if not isinstance(group, dict):
            warnings.append(f"groups.{name}: Must be an object")
            continue
        items = group.get("tools", group.get("schemas"))
        if not isinstance(items, list):
            warnings.append(f'groups.{name}: Must have "tools" or "schemas" array')
            continue
        warnings += [f"groups.{name}.tools[{i}]: Must be a string" for i, item in enumerate(items) if not isinstance(item, str)]
    return warnings


# ═══════════════════════════════════════════════════════════════════════════════
# Salvage: best-effort snapshots of malformed documents
# ═══════════════════════════════════════════════════════════════════════════════


def _salvage_global(raw: JsonDict) -> GlobalConfig:
    log.debug("global config malformed, salvaging", code=ErrorCode.CONFIG_MALFORMED.value)
    sources = raw.get("sources") if isinstance(raw.get("sources"), dict) else {}
    return GlobalConfig.model_construct(
        env_path=raw["envPath"] if isinstance(raw.get("envPath"), str) else "",
        flowmcp_core=None,
        initialized=raw["initialized"] if isinstance(raw.get("initialized"), str) else None,
        sources={k: v for k, v in ((name, _try(SourceConfig, data)) for name, data in sources.items()) if v},
    )


def _salvage_local(raw: JsonDict) -> LocalConfig:
    log.debug("local config malformed, salvaging", code=ErrorCode.CONFIG_MALFORMED.value)
    groups = raw.get("groups") if isinstance(raw.get("groups"), dict) else {}
    parsed = {name: group for name, data in groups.items() if (group := _try(GroupConfig, _clean_group(data)))}
    tools = raw.get("tools")
    return LocalConfig.model_construct(
        root=raw["root"] if isinstance(raw.get("root"), str) else None,
        default_group=raw["defaultGroup"] if isinstance(raw.get("defaultGroup"), str) else None,
        groups=parsed,
        mode=raw["mode"] if raw.get("mode") in ("agent", "dev") else None,
        tools=tuple(t for t in tools if isinstance(t, str)) if isinstance(tools, list) else None,
    )


def _clean_group(data: Any) -> Any:
    if not isinstance(data, dict):
        return None
    desc = data.get("description")
    return {"description": desc if isinstance(desc, str) else "", "tools": group_refs(data)}


def _try(model: Any, data: Any) -> Any:
    if data is None:
        return None
    try:
        return model.model_validate(data)
    except ValidationError:
        return None
