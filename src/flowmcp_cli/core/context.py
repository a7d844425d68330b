"""Shared wiring and the resolution steps every operation starts from.

``Services`` bundles the stateless components built from one settings object.
The helpers below turn config snapshots into the active tool set of a project:

    agent mode (local ``mode: "agent"``) and no explicit group
        -> the local ``tools`` list
    otherwise
        -> the explicit group, else the project's default group

Failures are raised as FlowException and converted to results by the facade.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

from flowmcp_cli.catalog import LoadedSchema, SchemaCatalog, ToolReferenceResolver
from flowmcp_cli.foundation.config import (
    CLI_COMMAND,
    ConfigStore,
    FlowmcpSettings,
    GlobalConfig,
    LocalConfig,
    check_env_params,
    combine_env_errors,
    env_unreadable,
    get_settings,
    read_env_file,
)
from flowmcp_cli.foundation.errors import (
    Err,
    ErrorCode,
    FlowError,
    FlowException,
    Ok,
    Result,
    collect_results,
)
from flowmcp_cli.runtime import ExecutionEngine, FileCache, HandlerResolver, HttpSchemaRuntime, SchemaRuntime

T = TypeVar("T")

AGENT_LABEL = "_agent"


def expect(result: Result[T, FlowError]) -> T:
    """Ok value, or raise the FlowError for the operation boundary to render."""
    if result.is_err():
        raise FlowException(result.unwrap_err())
    return result.unwrap()


@dataclass(frozen=True, slots=True)
class Services:
    settings: FlowmcpSettings
    store: ConfigStore
    catalog: SchemaCatalog
    resolver: ToolReferenceResolver
    engine: ExecutionEngine

    @classmethod
    def create(cls, settings: FlowmcpSettings | None = None, runtime: SchemaRuntime | None = None) -> Services:
        settings = settings or get_settings()
        store = ConfigStore(settings)
        catalog = SchemaCatalog(settings, store)
        engine = ExecutionEngine(
            runtime or HttpSchemaRuntime(timeout=settings.http_timeout),
            HandlerResolver(debug=settings.debug),
            FileCache(settings.cache_dir),
        )
        return cls(settings, store, catalog, ToolReferenceResolver(catalog), engine)

    def require_init(self) -> GlobalConfig:
        return expect(self.store.require_init())

    def local(self, cwd: Path | str) -> LocalConfig | None:
        return self.store.load_local(cwd)


@dataclass(frozen=True, slots=True)
class ActiveSet:
    """Tool references active for one call and the schemas they resolve to.

    Attributes:
        label: Group name, or ``_agent`` for the agent-mode tool list
        agent: Whether the set came from the agent-mode tool list
        refs: References in stored order
        schemas: Resolved schemas, first-seen file order
    """

    label: str
    agent: bool
    refs: tuple[str, ...]
    schemas: list[LoadedSchema]


# ═══════════════════════════════════════════════════════════════════════════════
# Group resolution
# ═══════════════════════════════════════════════════════════════════════════════


def group_not_found(name: str) -> FlowError:
    return FlowError.create(
        f'Group "{name}" not found.',
        ErrorCode.NOT_FOUND,
        fix=f"Run {CLI_COMMAND} group list to see available groups.",
    )


def resolve_group_name(local: LocalConfig | None, group: str | None) -> Result[str, FlowError]:
    if group:
        return Ok(group)
    if local is None or not local.default_group:
        return Err(FlowError.create(
            "No default group set.",
            ErrorCode.NOT_FOUND,
            fix=f"Run {CLI_COMMAND} group set-default <name> or use --group <name>.",
        ))
    return Ok(local.default_group)


def group_refs_of(local: LocalConfig | None, name: str) -> Result[tuple[str, ...], FlowError]:
    group = local.group(name) if local is not None else None
    return Ok(group.tools) if group is not None else Err(group_not_found(name))


def default_group_refs(local: LocalConfig | None) -> Result[tuple[str, ...], FlowError]:
    """References of the default group, for commands run without an explicit path."""
    if local is None or not local.default_group:
        return Err(FlowError.create(
            "No default group set. Provide a schema path or set a default group.", ErrorCode.NOT_FOUND,
        ))
    group = local.group(local.default_group)
    if group is None:
        return Err(FlowError.create(f'Default group "{local.default_group}" not found.', ErrorCode.NOT_FOUND))
    return Ok(group.tools)


def resolve_active(services: Services, cwd: Path | str, group: str | None = None) -> Result[ActiveSet, FlowError]:
    """The project's active tool set: agent tools or the named/default group."""
    local = services.local(cwd)
    if local is not None and local.is_agent and not group:
        if not local.tools:
            return Err(FlowError.create(
                "No active tools.",
                ErrorCode.NOT_FOUND,
                fix=f"Use {CLI_COMMAND} add <tool-name> to activate tools.",
            ))
        return Ok(ActiveSet(AGENT_LABEL, True, local.tools, services.resolver.resolve(local.tools)))
    return resolve_group_name(local, group).flat_map(
        lambda name: group_refs_of(local, name).map(
            lambda refs: ActiveSet(name, False, refs, services.resolver.resolve(refs))
        )
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Environment
# ═══════════════════════════════════════════════════════════════════════════════


def load_env(config: GlobalConfig) -> Result[dict[str, str], FlowError]:
    """Variables of the env file named by the global config. A missing file is an error."""
    env = read_env_file(config.env_path)
    return Ok(env) if env is not None else Err(env_unreadable(config.env_path))


def check_schemas_env(schemas: list[LoadedSchema], env: Mapping[str, str], env_path: str) -> Result[None, FlowError]:
    """One aggregated EnvMissing failure naming every schema with absent variables."""
    checks: list[Result[None, FlowError]] = []
    for schema in schemas:
        error = check_env_params(env, schema.required_server_params, schema.namespace, env_path)
        checks.append(Err(error) if error is not None else Ok(None))
    return collect_results(checks).map(lambda _: None).map_err(combine_env_errors)
