"""Tests for source enumeration, schema loading, tool references and parameters."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import orjson
import pytest

from flowmcp_cli.catalog import (
    SchemaCatalog,
    ToolReferenceResolver,
    extract_parameters,
    parameters_dict,
    parse_ref,
    to_canonical_name,
    to_json_schema,
    validate_definition,
)
from flowmcp_cli.foundation.config import ConfigStore, FlowmcpSettings
from flowmcp_cli.tests.helpers import make_main, user_param

WriteSchema = Callable[..., Path]


@pytest.fixture
def catalog(settings: FlowmcpSettings) -> SchemaCatalog:
    return SchemaCatalog(settings, ConfigStore(settings))


@pytest.fixture
def resolver(catalog: SchemaCatalog) -> ToolReferenceResolver:
    return ToolReferenceResolver(catalog)


def _two_routes() -> dict[str, Any]:
    return {
        "getStatus": {"method": "GET", "path": "/status", "parameters": []},
        "listItems": {"method": "GET", "path": "/items", "parameters": [user_param("limit", "number()", "default(10)")]},
    }


# ═════════════════════════════════════════════════════════════════════════════
# Sources
# ═════════════════════════════════════════════════════════════════════════════


def test_no_schemas_directory(catalog: SchemaCatalog) -> None:
    assert catalog.source_names() == []
    assert catalog.list_sources() == []


def test_scan_skips_underscore_entries(catalog: SchemaCatalog, write_schema: WriteSchema) -> None:
    """Without a registry a source is scanned recursively, ignoring ``_`` names."""
    write_schema("demo", "ping.py", make_main())
    write_schema("demo", "nested/deep.py", make_main("deep"))
    write_schema("demo", "_helpers.py", make_main("helper"))
    write_schema("demo", "_lists/codes.py", make_main("codes"))
    (catalog.root / "demo" / "notes.txt").write_text("ignored", encoding="utf-8")

    [source] = catalog.list_sources()
    assert source.name == "demo"
    assert [s.ref for s in source.schemas] == ["demo/nested/deep.py", "demo/ping.py"]
    assert source.to_dict()["schemaCount"] == 2


def test_registry_is_authoritative(catalog: SchemaCatalog, write_schema: WriteSchema) -> None:
    """A manifest decides membership and order of a source's files."""
    write_schema("acme", "b.py", make_main("bravo"))
    write_schema("acme", "a.py", make_main("alpha"))
    (catalog.root / "acme" / "_registry.json").write_bytes(orjson.dumps({
        "name": "acme", "schemas": [{"file": "b.py", "namespace": "bravo", "name": "Bravo",
                                     "requiredServerParams": ["BRAVO_KEY"]}],
    }))
    [source] = catalog.list_sources()
    assert [s.file for s in source.schemas] == ["b.py"]
    assert source.schemas[0].required_server_params == ("BRAVO_KEY",)


def test_malformed_registry_counts_as_absent(catalog: SchemaCatalog, write_schema: WriteSchema) -> None:
    write_schema("acme", "a.py", make_main("alpha"))
    (catalog.root / "acme" / "_registry.json").write_bytes(orjson.dumps({"schemas": "nope"}))
    assert catalog.registry("acme") is None
    assert [s.file for s in catalog.list_sources()[0].schemas] == ["a.py"]


def test_source_type_from_global_config(catalog: SchemaCatalog, initialized: Path, write_schema: WriteSchema) -> None:
    write_schema("demo", "ping.py", make_main())
    assert catalog.list_sources()[0].type == "builtin"


# ═════════════════════════════════════════════════════════════════════════════
# Loading
# ═════════════════════════════════════════════════════════════════════════════


def test_load_valid_schema(catalog: SchemaCatalog, write_schema: WriteSchema) -> None:
    write_schema("demo", "ping.py", make_main())
    schema = catalog.load_ref("demo/ping.py")
    assert schema.loaded and schema.valid
    assert schema.ref == "demo/ping.py"
    assert schema.namespace == "demo"
    assert list(schema.routes) == ["ping"]


def test_load_error_is_scoped_to_file(catalog: SchemaCatalog, settings: FlowmcpSettings) -> None:
    """A module that raises, or lacks ``main``, carries a load error instead of raising."""
    path = settings.schemas_dir / "demo" / "broken.py"
    path.parent.mkdir(parents=True)
    path.write_text("raise RuntimeError('boom')\n", encoding="utf-8")
    broken = catalog.load_ref("demo/broken.py")
    assert not broken.loaded
    assert "boom" in broken.messages[0]

    path.write_text("value = 1\n", encoding="utf-8")
    assert 'missing "main" export' in catalog.load_ref("demo/broken.py").messages[0]


def test_invalid_schema_exposes_no_routes(catalog: SchemaCatalog, write_schema: WriteSchema) -> None:
    """Validation issues are reported and the schema contributes no tools."""
    write_schema("demo", "bad.py", {"namespace": "bad-ns", "name": "Bad", "root": "ftp://x", "routes": {}})
    schema = catalog.load_ref("demo/bad.py")
    assert schema.loaded and not schema.valid
    assert schema.routes == {}
    assert schema.namespace == "bad-ns"
    assert any(m.startswith("namespace:") for m in schema.messages)
    assert any(m.startswith("root:") for m in schema.messages)


def test_schema_edits_are_picked_up(catalog: SchemaCatalog, write_schema: WriteSchema) -> None:
    """Nothing is cached between loads."""
    write_schema("demo", "ping.py", make_main())
    assert list(catalog.load_ref("demo/ping.py").routes) == ["ping"]
    write_schema("demo", "ping.py", make_main(routes=_two_routes()))
    assert list(catalog.load_ref("demo/ping.py").routes) == ["getStatus", "listItems"]


def test_legacy_route_spellings() -> None:
    """``requestMethod`` and ``route`` are accepted."""
    definition, issues = validate_definition(make_main(routes={
        "legacy": {"requestMethod": "post", "route": "/legacy", "parameters": []}}))
    assert issues == ()
    assert definition is not None
    assert definition.routes["legacy"].method == "POST"
    assert definition.routes["legacy"].path == "/legacy"


def test_main_must_be_a_mapping() -> None:
    definition, issues = validate_definition(["not", "a", "dict"])
    assert definition is None
    assert issues == ("main: Must be a mapping, got list",)


def test_load_from_path(catalog: SchemaCatalog, tmp_path: Path) -> None:
    """A directory yields its sorted non-underscore schema files."""
    folder = tmp_path / "schemas"
    folder.mkdir()
    for name, ns in (("b.py", "bravo"), ("a.py", "alpha"), ("_skip.py", "skip")):
        (folder / name).write_text(f"main = {make_main(ns)!r}\n", encoding="utf-8")
    (folder / "readme.md").write_text("", encoding="utf-8")

    schemas = catalog.load_from_path(folder).unwrap()
    assert [s.namespace for s in schemas] == ["alpha", "bravo"]
    assert catalog.load_from_path(folder / "a.py").unwrap()[0].namespace == "alpha"
    assert catalog.load_from_path(tmp_path / "nope").unwrap_err().message == f"Path not found: {tmp_path / 'nope'}"


def test_load_from_empty_directory(catalog: SchemaCatalog, tmp_path: Path) -> None:
    assert "No schema files" in catalog.load_from_path(tmp_path).unwrap_err().message


# ═════════════════════════════════════════════════════════════════════════════
# References and names
# ═════════════════════════════════════════════════════════════════════════════


def test_parse_ref() -> None:
    ref = parse_ref("demo/nested/ping.py::getStatus")
    assert (ref.source, ref.file, ref.route) == ("demo", "nested/ping.py", "getStatus")
    assert parse_ref("demo/ping.py").route is None
    assert str(parse_ref(" demo/ping.py::ping ")) == "demo/ping.py::ping"
    with pytest.raises(ValueError):
        parse_ref("ping.py")


def test_canonical_names() -> None:
    """Route and namespace are snake_cased and joined."""
    assert to_canonical_name("getStatus", "callapi") == "get_status_callapi"
    assert to_canonical_name("ping", "demo") == "ping_demo"
    assert to_canonical_name("getHTTPStatus2", "myApi") == "get_httpstatus2_my_api"
    assert len(to_canonical_name("a" * 80, "demo")) == 63


def test_resolve_filters_routes(resolver: ToolReferenceResolver, write_schema: WriteSchema) -> None:
    """Route refs narrow a file; a bare file ref keeps every route."""
    write_schema("demo", "api.py", make_main(routes=_two_routes()))
    [narrowed] = resolver.resolve(["demo/api.py::listItems"])
    assert list(narrowed.routes) == ["listItems"]
    [whole] = resolver.resolve(["demo/api.py::listItems", "demo/api.py"])
    assert list(whole.routes) == ["getStatus", "listItems"]


def test_resolve_keeps_declaration_order(resolver: ToolReferenceResolver, write_schema: WriteSchema) -> None:
    write_schema("demo", "api.py", make_main(routes=_two_routes()))
    [schema] = resolver.resolve(["demo/api.py::listItems", "demo/api.py::getStatus"])
    assert [t.name for t in resolver.iter_tools([schema])] == ["get_status_demo", "list_items_demo"]


def test_resolve_reports_bad_refs(resolver: ToolReferenceResolver) -> None:
    missing, invalid = resolver.resolve(["demo/missing.py", "nonsense"])
    assert not missing.loaded
    assert invalid.messages == ['Invalid tool reference "nonsense"']


def test_find_first_match_wins(resolver: ToolReferenceResolver, write_schema: WriteSchema) -> None:
    """Two files exposing the same name: the earlier reference wins."""
    write_schema("one", "ping.py", make_main())
    write_schema("two", "ping.py", make_main())
    schemas = resolver.resolve(["two/ping.py", "one/ping.py"])
    tool = resolver.find("ping_demo", schemas)
    assert tool is not None
    assert tool.schema.ref == "two/ping.py"
    assert tool.ref == "two/ping.py::ping"
    assert resolver.find("missing_demo", schemas) is None


def test_check_ref(resolver: ToolReferenceResolver, write_schema: WriteSchema) -> None:
    write_schema("demo", "ping.py", make_main())
    assert resolver.check_ref("demo/ping.py")
    assert resolver.check_ref("demo/ping.py::ping")
    assert not resolver.check_ref("demo/ping.py::pong")
    assert not resolver.check_ref("demo/other.py")
    assert not resolver.check_ref("bad")


# ═════════════════════════════════════════════════════════════════════════════
# Parameters
# ═════════════════════════════════════════════════════════════════════════════


def _params(*specs: dict[str, Any]) -> Any:
    definition, _ = validate_definition(make_main(routes={"r": {"method": "GET", "path": "/", "parameters": list(specs)}}))
    assert definition is not None
    return definition.routes["r"].parameters


def test_extract_user_parameters_only() -> None:
    """Fixed and server-param positions are not exposed."""
    params = _params(
        user_param("q"),
        user_param("limit", "number()", "min(1)", "default(10)"),
        user_param("sort", "enum(asc,desc)", "optional()"),
        {"position": {"key": "apikey", "value": "{{API_KEY}}", "location": "query"}},
    )
    assert parameters_dict(params) == {
        "q": {"type": "string", "required": True},
        "limit": {"type": "number", "required": False, "default": 10},
        "sort": {"type": "enum", "required": False, "values": ["asc", "desc"]},
    }


def test_unannotated_user_param_is_required_string() -> None:
    params = _params({"position": {"key": "id", "value": "{{USER_PARAM}}", "location": "insert"}})
    descriptor = extract_parameters(params)["id"]
    assert descriptor.type == "string" and descriptor.required


def test_json_schema() -> None:
    params = _params(user_param("q"), user_param("tags", "array()", "optional()"),
                     user_param("sort", "enum(asc,desc)", "default(asc)"))
    assert to_json_schema(extract_parameters(params)) == {
        "type": "object",
        "properties": {
            "q": {"type": "string"},
            "tags": {"type": "array", "items": {}},
            "sort": {"type": "string", "enum": ["asc", "desc"], "default": "asc"},
        },
        "required": ["q"],
    }
