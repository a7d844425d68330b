"""Typed snapshots of the global and project configuration documents.

Both documents are JSON files with camelCase keys. The models accept either the
camelCase alias or the snake_case field name and are frozen: callers receive an
immutable snapshot of what was on disk at read time.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, model_validator

SourceType = Literal["builtin", "local", "github", "registry"]
Mode = Literal["agent", "dev"]

MODE_AGENT: Mode = "agent"
MODE_DEV: Mode = "dev"


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")


class CoreInfo(_Snapshot):
    version: str = ""
    commit: str | None = None
    schema_spec: str = Field(default="", alias="schemaSpec")


class SourceConfig(_Snapshot):
    type: SourceType = "builtin"
    schema_count: NonNegativeInt = Field(default=0, alias="schemaCount")
    repository: str | None = None


class GlobalConfig(_Snapshot):
    """Machine-wide settings written by ``flowmcp init`` and source imports."""

    env_path: str = Field(default="", alias="envPath")
    flowmcp_core: CoreInfo | None = Field(default=None, alias="flowmcpCore")
    initialized: str | None = None
    sources: dict[str, SourceConfig] = Field(default_factory=dict)


class GroupConfig(_Snapshot):
    """Named, ordered list of tool references. Legacy ``schemas`` is read as ``tools``."""

    description: str = ""
    tools: tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _migrate_schemas(cls, data: Any) -> Any:
        if isinstance(data, dict) and "tools" not in data and "schemas" in data:
            return {**{k: v for k, v in data.items() if k != "schemas"}, "tools": data["schemas"]}
        return data


class LocalConfig(_Snapshot):
    """Per-project settings stored in ``{cwd}/.flowmcp/config.json``."""

    root: str | None = None
    default_group: str | None = Field(default=None, alias="defaultGroup")
    groups: dict[str, GroupConfig] = Field(default_factory=dict)
    mode: Mode | None = None
    tools: tuple[str, ...] | None = None

    def group(self, name: str) -> GroupConfig | None:
        return self.groups.get(name)

    @property
    def is_agent(self) -> bool:
        return self.mode == MODE_AGENT
