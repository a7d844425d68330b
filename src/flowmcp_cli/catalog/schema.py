"""Declarative schema models.

A schema module exports ``main``, a mapping shaped like ``SchemaDefinition``.
Keys are camelCase in the module (``requiredServerParams``) and snake_case on
the model. Validation reports ``loc: message`` strings instead of raising, so a
broken schema file never takes down a listing.

Example ``main``:
    main = {
        "namespace": "demo",
        "name": "Ping Demo",
        "root": "https://httpbin.org",
        "routes": {
            "ping": {"method": "GET", "path": "/get", "parameters": []},
        },
    }
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    ValidationError,
    field_validator,
)

from flowmcp_cli.foundation.config import USER_PARAM

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
ParamLocation = Literal["query", "body", "insert", "header"]

NAMESPACE_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9]*$")
_ROUTE_NAME = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow", str_strip_whitespace=True)


class ParamPosition(_Model):
    key: str = Field(min_length=1)
    value: str
    location: ParamLocation = "query"


class ParamType(_Model):
    """Declarative type annotation such as ``number()`` with options like ``default(10)``."""

    primitive: str = "string()"
    options: tuple[str, ...] = ()


class ParamSpec(_Model):
    position: ParamPosition
    z: ParamType | None = None

    @property
    def is_user_param(self) -> bool:
        return self.position.value == USER_PARAM


class Preload(_Model):
    enabled: bool = False
    ttl: PositiveInt = 300


class RouteDefinition(_Model):
    """One callable operation. ``requestMethod``/``route`` are accepted as legacy spellings."""

    method: HttpMethod = Field(default="GET", validation_alias=AliasChoices("method", "requestMethod"))
    path: str = Field(default="/", validation_alias=AliasChoices("path", "route"))
    description: str = ""
    parameters: tuple[ParamSpec, ...] = ()
    preload: Preload | None = None
    tests: tuple[dict[str, Any], ...] = ()

    @field_validator("method", mode="before")
    @classmethod
    def _upper(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("path")
    @classmethod
    def _leading_slash(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("must start with '/'")
        return v

    @property
    def cacheable(self) -> bool:
        return self.preload is not None and self.preload.enabled

    @property
    def cache_ttl(self) -> int:
        return self.preload.ttl if self.preload is not None else 0

    @property
    def user_params(self) -> tuple[ParamSpec, ...]:
        return tuple(p for p in self.parameters if p.is_user_param)


class SchemaDefinition(_Model):
    namespace: str
    name: str = Field(min_length=1)
    description: str = ""
    version: str = ""
    docs: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    root: str
    headers: dict[str, str] = Field(default_factory=dict)
    required_server_params: tuple[str, ...] = Field(default=(), alias="requiredServerParams")
    required_libraries: tuple[str, ...] = Field(default=(), alias="requiredLibraries")
    shared_lists: tuple[str, ...] = Field(default=(), alias="sharedLists")
    routes: dict[str, RouteDefinition] = Field(min_length=1)

    @field_validator("namespace")
    @classmethod
    def _namespace(cls, v: str) -> str:
        if not NAMESPACE_PATTERN.match(v):
            raise ValueError("must start with a letter and contain only letters and digits")
        return v

    @field_validator("root")
    @classmethod
    def _root(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return v.rstrip("/")

    @field_validator("routes")
    @classmethod
    def _route_names(cls, v: dict[str, RouteDefinition]) -> dict[str, RouteDefinition]:
        if bad := [name for name in v if not _ROUTE_NAME.match(name)]:
            raise ValueError(f"invalid route name(s): {', '.join(bad)}")
        return v


def validate_definition(main: Any) -> tuple[SchemaDefinition | None, tuple[str, ...]]:
    """Validate a ``main`` export. Returns the model or the list of ``loc: message`` issues."""
    if not isinstance(main, Mapping):
        return None, (f'main: Must be a mapping, got {type(main).__name__}',)
    try:
        return SchemaDefinition.model_validate(dict(main)), ()
    except ValidationError as e:
        return None, tuple(_format_error(err) for err in e.errors())


def _format_error(err: Mapping[str, Any]) -> str:
    loc = ".".join(str(part) for part in err.get("loc", ())) or "main"
    return f"{loc}: {err.get('msg', 'invalid')}"
