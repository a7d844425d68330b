"""Structural extraction of user parameters from a route definition.

Only parameters whose position value is ``{{USER_PARAM}}`` are exposed to the
caller; the rest are filled from server params or constants by the schema
runtime. The ``z`` annotation is read as text (``enum(a,b)``, ``number()``,
``default(10)``) and never evaluated.

Example:
    >>> extract_parameters(route.parameters)
    {'limit': ParameterDescriptor(name='limit', type='number', required=False, default=10)}
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from .schema import ParamSpec

ParamKind = Literal["string", "number", "boolean", "array", "enum"]

_PRIMITIVE_PREFIXES: tuple[tuple[str, ParamKind], ...] = (
    ("number(", "number"),
    ("boolean(", "boolean"),
    ("array(", "array"),
)
_JSON_TYPES: dict[ParamKind, str] = {"string": "string", "number": "number", "boolean": "boolean",
                                     "array": "array", "enum": "string"}


class ParameterDescriptor(BaseModel):
    """Normalized, typed description of one user parameter."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: ParamKind = "string"
    required: bool = True
    default: Any = None
    values: tuple[str, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Listing form: ``{type, required, default?, values?}``."""
        out: dict[str, Any] = {"type": self.type, "required": self.required}
        if self.values is not None:
            out["values"] = list(self.values)
        if self.default is not None:
            out["default"] = self.default
        return out


def _parse_default(raw: str) -> Any:
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw


def describe(param: ParamSpec) -> ParameterDescriptor:
    """Descriptor for a single user parameter. No annotation means a required string."""
    name = param.position.key
    if param.z is None:
        return ParameterDescriptor(name=name)
    primitive = param.z.primitive.strip()
    kind: ParamKind = "string"
    values: tuple[str, ...] | None = None
    if primitive.startswith("enum(") and primitive.endswith(")"):
        kind, values = "enum", tuple(v.strip() for v in primitive[5:-1].split(","))
    else:
        kind = next((k for prefix, k in _PRIMITIVE_PREFIXES if primitive.startswith(prefix)), "string")
    options = [o.strip() for o in param.z.options]
    default_opt = next((o for o in options if o.startswith("default(") and o.endswith(")")), None)
    return ParameterDescriptor(
        name=name,
        type=kind,
        required=not ("optional()" in options or default_opt is not None),
        default=_parse_default(default_opt[8:-1]) if default_opt else None,
        values=values,
    )


def extract_parameters(parameters: Iterable[ParamSpec]) -> dict[str, ParameterDescriptor]:
    """Descriptors keyed by parameter name, in declaration order."""
    return {p.position.key: describe(p) for p in parameters if p.is_user_param}


def parameters_dict(parameters: Iterable[ParamSpec]) -> dict[str, dict[str, Any]]:
    return {name: d.to_dict() for name, d in extract_parameters(parameters).items()}


def to_json_schema(descriptors: dict[str, ParameterDescriptor]) -> dict[str, Any]:
    """JSON-schema ``object`` for a tool's arguments, as handed to the server transport."""
    properties: dict[str, Any] = {}
    for name, d in descriptors.items():
        prop: dict[str, Any] = {"type": _JSON_TYPES[d.type]}
        if d.type == "array":
            prop["items"] = {}
        if d.values is not None:
            prop["enum"] = list(d.values)
        if d.default is not None:
            prop["default"] = d.default
        properties[name] = prop
    return {
        "type": "object",
        "properties": properties,
        "required": [name for name, d in descriptors.items() if d.required],
    }
