"""Schema catalog: sources, schema modules, parameters and tool references.

Quick Start:
    >>> from flowmcp_cli.catalog import SchemaCatalog, ToolReferenceResolver
    >>> catalog = SchemaCatalog(settings, store)
    >>> resolver = ToolReferenceResolver(catalog)
    >>> schemas = resolver.resolve(["demo/ping.py::ping"])
    >>> resolver.find("ping_demo", schemas).route.path
    '/get'
"""

from .catalog import (
    RegistryEntry,
    RegistryManifest,
    SchemaCatalog,
    SchemaInfo,
    SharedEntry,
    SourceEntry,
    list_schema_files,
)
from .loader import LoadedSchema, load_module, load_schema
from .parameters import ParameterDescriptor, describe, extract_parameters, parameters_dict, to_json_schema
from .refs import (
    MAX_TOOL_NAME,
    ROUTE_SEPARATOR,
    ResolvedTool,
    ToolRef,
    ToolReferenceResolver,
    parse_ref,
    to_canonical_name,
    tools_of,
)
from .schema import (
    NAMESPACE_PATTERN,
    ParamPosition,
    ParamSpec,
    ParamType,
    Preload,
    RouteDefinition,
    SchemaDefinition,
    validate_definition,
)

__all__ = [
    # Catalog
    "SchemaCatalog", "SourceEntry", "SchemaInfo", "RegistryManifest", "RegistryEntry", "SharedEntry",
    "list_schema_files",
    # Loading
    "LoadedSchema", "load_module", "load_schema",
    # Models
    "SchemaDefinition", "RouteDefinition", "ParamSpec", "ParamPosition", "ParamType", "Preload",
    "validate_definition", "NAMESPACE_PATTERN",
    # Parameters
    "ParameterDescriptor", "describe", "extract_parameters", "parameters_dict", "to_json_schema",
    # References
    "ToolRef", "parse_ref", "to_canonical_name", "ResolvedTool", "ToolReferenceResolver", "tools_of",
    "ROUTE_SEPARATOR", "MAX_TOOL_NAME",
]
