"""Tool references and canonical tool names.

A tool reference is ``source/relative/file.py`` (every route of the file) or
``source/relative/file.py::routeName`` (one route). A canonical tool name is
the snake_cased route followed by the snake_cased namespace:

    >>> parse_ref("demo/ping.py::getStatus")
    ToolRef(schema_ref='demo/ping.py', route='getStatus')
    >>> to_canonical_name("getStatus", "callapi")
    'get_status_callapi'

When a name is matched against an active reference list, the list is walked in
stored order and the first match wins; names are not de-duplicated.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from flowmcp_cli.observability import get_logger

from .catalog import SchemaCatalog
from .loader import LoadedSchema
from .schema import RouteDefinition

log = get_logger("catalog.refs")

ROUTE_SEPARATOR = "::"
MAX_TOOL_NAME = 63

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")


@dataclass(frozen=True, slots=True)
class ToolRef:
    schema_ref: str
    route: str | None = None

    @property
    def source(self) -> str:
        return self.schema_ref.split("/", 1)[0]

    @property
    def file(self) -> str:
        return self.schema_ref.split("/", 1)[1]

    def __str__(self) -> str:
        return f"{self.schema_ref}{ROUTE_SEPARATOR}{self.route}" if self.route is not None else self.schema_ref


def parse_ref(text: str) -> ToolRef:
    """Split a reference at the first ``::``. Everything after it is the route name.

    Raises:
        ValueError: If the source or file part is empty
    """
    schema_ref, sep, route = text.strip().partition(ROUTE_SEPARATOR)
    source, slash, file = schema_ref.partition("/")
    if not source or not slash or not file:
        raise ValueError(f'Invalid tool reference "{text}". Expected "source/file{ROUTE_SEPARATOR}route".')
    return ToolRef(schema_ref=schema_ref, route=route if sep else None)


def _snake(text: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"\1_\2", text).lower()


def to_canonical_name(route: str, namespace: str) -> str:
    """``routeName`` + ``namespace`` -> ``route_name_namespace``, at most 63 characters."""
    name = f"{_snake(route)}_{_snake(namespace)}"[:MAX_TOOL_NAME]
    return name.replace(":", "").replace("-", "_").replace("/", "_")


# ═══════════════════════════════════════════════════════════════════════════════
# Resolution
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ResolvedTool:
    """One executable route of a loaded schema."""

    name: str
    schema: LoadedSchema
    route_name: str
    route: RouteDefinition

    @property
    def ref(self) -> str:
        return f"{self.schema.ref}{ROUTE_SEPARATOR}{self.route_name}"

    @property
    def namespace(self) -> str:
        return self.schema.namespace


def tools_of(schema: LoadedSchema) -> Iterator[ResolvedTool]:
    """Every route of a valid schema as a ResolvedTool, in declaration order."""
    for route_name, route in schema.routes.items():
        yield ResolvedTool(to_canonical_name(route_name, schema.namespace), schema, route_name, route)


class ToolReferenceResolver:
    """Turns reference lists into loaded, route-filtered schemas and finds tools by name."""

    __slots__ = ("_catalog",)

    def __init__(self, catalog: SchemaCatalog) -> None:
        self._catalog = catalog

    def resolve(self, refs: Iterable[str]) -> list[LoadedSchema]:
        """Group references by schema file (first-seen order) and load each file once.

        A file referenced at least once without ``::`` keeps all its routes;
        otherwise only the named routes survive. Unparseable references and
        unloadable files come back as entries carrying ``load_error``.
        """
        wanted: dict[str, list[str] | None] = {}
        invalid: list[str] = []
        for text in refs:
            try:
                ref = parse_ref(text)
            except ValueError:
                invalid.append(text)
                continue
            if ref.route is None:
                wanted[ref.schema_ref] = None
            elif (routes := wanted.setdefault(ref.schema_ref, [])) is not None and ref.route not in routes:
                routes.append(ref.route)
        resolved: list[LoadedSchema] = []
        for schema_ref, routes in wanted.items():
            schema = self._catalog.load_ref(schema_ref)
            resolved.append(schema.with_routes(routes) if routes is not None else schema)
        for text in invalid:
            resolved.append(LoadedSchema(file=text, path=self._catalog.root / text,
                                         load_error=f'Invalid tool reference "{text}"'))
        log.debug("references resolved", files=len(resolved), invalid=len(invalid))
        return resolved

    @staticmethod
    def iter_tools(schemas: Iterable[LoadedSchema]) -> Iterator[ResolvedTool]:
        for schema in schemas:
            yield from tools_of(schema)

    def find(self, name: str, schemas: Iterable[LoadedSchema]) -> ResolvedTool | None:
        """First tool whose canonical name equals ``name``, in resolution order."""
        return next((tool for tool in self.iter_tools(schemas) if tool.name == name), None)

    def check_ref(self, text: str) -> bool:
        """Whether a reference names an existing file (and route, when given)."""
        try:
            ref = parse_ref(text)
        except ValueError:
            return False
        if not self._catalog.path_of(ref.schema_ref).is_file():
            return False
        if ref.route is None:
            return True
        return ref.route in self._catalog.load_ref(ref.schema_ref).routes
