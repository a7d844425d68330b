"""Tests for agent mode: search, add, remove, list and mode switching."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import orjson
import pytest

from flowmcp_cli import FlowMcp
from flowmcp_cli.tests.helpers import make_main, user_param

WriteSchema = Callable[..., Path]


@pytest.fixture
def catalog_schemas(initialized: Path, write_schema: WriteSchema) -> None:
    write_schema("demo", "ping.py", make_main())
    write_schema("demo", "weather.py", make_main("weather", name="Weather Service", tags=["forecast"], routes={
        "getForecast": {"method": "GET", "path": "/forecast", "description": "Daily weather forecast by city",
                        "parameters": [user_param("city"), user_param("days", "number()", "default(3)")]},
        "getAlerts": {"method": "GET", "path": "/alerts", "description": "Severe weather alerts"},
    }))


# ═════════════════════════════════════════════════════════════════════════════
# Search
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_search_scores_and_sorts(flow: FlowMcp, catalog_schemas: None) -> None:
    """Namespace, name segment, tag, schema name and description all contribute."""
    result = await flow.search("weather")
    assert result["matchCount"] == 2
    forecast, alerts = result["tools"]
    assert forecast["name"] == "get_forecast_weather"
    # namespace 20 + segment 15 + schema name 8 + description 5
    assert forecast["score"] == 48
    assert alerts["score"] == 48
    assert forecast["add"] == "flowmcp add get_forecast_weather"


@pytest.mark.asyncio
async def test_search_requires_every_token(flow: FlowMcp, catalog_schemas: None) -> None:
    result = await flow.search("forecast city")
    assert [t["name"] for t in result["tools"]] == ["get_forecast_weather"]
    assert (await flow.search("forecast banana"))["matchCount"] == 0


@pytest.mark.asyncio
async def test_search_without_matches(flow: FlowMcp, catalog_schemas: None) -> None:
    result = await flow.search("zebra")
    assert result["tools"] == []
    assert result["hint"] == "No matches. Try broader terms or single keywords."


@pytest.mark.asyncio
async def test_search_caps_results(flow: FlowMcp, initialized: Path, write_schema: WriteSchema) -> None:
    routes = {f"item{i}": {"method": "GET", "path": f"/item/{i}", "description": "bulk item"} for i in range(12)}
    write_schema("demo", "bulk.py", make_main("bulk", routes=routes))
    result = await flow.search("bulk")
    assert result["matchCount"] == 12
    assert result["showing"] == 10
    assert len(result["tools"]) == 10
    assert result["hint"].startswith("12 matches found, showing top 10")


@pytest.mark.asyncio
async def test_search_by_shared_alias(flow: FlowMcp, initialized: Path, write_schema: WriteSchema,
                                      settings: Any) -> None:
    """A shared alias list selects the schemas that declare it."""
    write_schema("acme", "weather.py", make_main("weather", routes={
        "now": {"method": "GET", "path": "/now", "description": "Current conditions"}}))
    lists = settings.schemas_dir / "acme" / "_lists"
    lists.mkdir()
    (lists / "countries.py").write_text(
        'countries = [{"alpha2": "DE", "name": "Germany"}, {"alpha2": "FR", "name": "France"}]\n', encoding="utf-8")
    (settings.schemas_dir / "acme" / "_registry.json").write_bytes(orjson.dumps({
        "name": "acme",
        "schemas": [{"file": "weather.py", "namespace": "weather", "shared": ["_lists/countries.py"]}],
        "shared": [{"file": "_lists/countries.py"}],
    }))
    result = await flow.search("germany")
    assert [(t["name"], t["score"]) for t in result["tools"]] == [("now_weather", 10)]


@pytest.mark.asyncio
async def test_search_needs_query(flow: FlowMcp, initialized: Path) -> None:
    assert (await flow.search("  "))["error"] == "Missing search query."


# ═════════════════════════════════════════════════════════════════════════════
# Add, remove, list
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_add_switches_to_agent_mode(flow: FlowMcp, project: Path, catalog_schemas: None, read_local) -> None:
    """The first add creates the config in agent mode and writes a descriptor."""
    result = await flow.add("get_forecast_weather", project)
    assert result == {"status": True, "added": "get_forecast_weather", "parameters": {
        "city": {"type": "string", "required": True},
        "days": {"type": "number", "required": False, "default": 3},
    }}
    assert read_local() == {"mode": "agent", "root": "~/.flowmcp", "tools": ["demo/weather.py::getForecast"]}
    descriptor = orjson.loads((project / ".flowmcp" / "tools" / "get_forecast_weather.json").read_bytes())
    assert descriptor["description"] == "Daily weather forecast by city"

    again = await flow.add("get_forecast_weather", project)
    assert again["message"] == "Tool was already active."


@pytest.mark.asyncio
async def test_add_keeps_existing_mode(flow: FlowMcp, project: Path, catalog_schemas: None,
                                       write_local: Callable[..., Path], read_local) -> None:
    write_local({"root": "~/.flowmcp", "mode": "dev", "groups": {}})
    await flow.add("ping_demo", project)
    assert read_local()["mode"] == "dev"
    assert read_local()["tools"] == ["demo/ping.py::ping"]


@pytest.mark.asyncio
async def test_add_unknown_tool(flow: FlowMcp, project: Path, catalog_schemas: None) -> None:
    result = await flow.add("nope_demo", project)
    assert result["error"] == 'Tool "nope_demo" not found in available schemas.'
    assert (await flow.add(None, project))["error"] == "Missing tool name."


@pytest.mark.asyncio
async def test_agent_mode_call_cycle(flow: FlowMcp, project: Path, catalog_schemas: None) -> None:
    """Added tools are callable; removed ones are not."""
    await flow.add("ping_demo", project)
    assert (await flow.call_tool("ping_demo", "{}", project))["status"] is True
    assert await flow.list_tools(project) == {"status": True, "toolCount": 1, "tools": [
        {"name": "ping_demo", "description": "Simple ping endpoint", "schema": ".flowmcp/tools/ping_demo.json"}]}

    inactive = await flow.call_tool("get_alerts_weather", None, project)
    assert inactive == {"status": False, "error": 'Tool "get_alerts_weather" not recognized in active tools.',
                        "fix": "Activate it with: flowmcp add get_alerts_weather"}

    assert await flow.remove("ping_demo", project) == {"status": True, "removed": "ping_demo"}
    assert not (project / ".flowmcp" / "tools" / "ping_demo.json").exists()
    empty = await flow.call_tool("ping_demo", None, project)
    assert empty == {"status": False, "error": "No active tools.",
                     "fix": "Use flowmcp add <tool-name> to activate tools."}


@pytest.mark.asyncio
async def test_agent_mode_explicit_group_wins(flow: FlowMcp, project: Path, catalog_schemas: None,
                                              write_local: Callable[..., Path]) -> None:
    write_local({"root": "~/.flowmcp", "mode": "agent", "tools": [],
                 "groups": {"weather": {"description": "", "tools": ["demo/weather.py"]}}})
    assert (await flow.call_tool("get_alerts_weather", None, project, group="weather"))["status"] is True


@pytest.mark.asyncio
async def test_remove_errors(flow: FlowMcp, project: Path, catalog_schemas: None) -> None:
    assert (await flow.remove("ping_demo", project))["error"] == "No active tools found."
    await flow.add("ping_demo", project)
    assert (await flow.remove("nope_demo", project))["error"] == 'Tool "nope_demo" not recognized.'
    assert (await flow.remove("get_alerts_weather", project))["error"] == \
        'Tool "get_alerts_weather" is not in active tools list.'


@pytest.mark.asyncio
async def test_list_falls_back_to_default_group(flow: FlowMcp, project: Path, ping_project: None) -> None:
    result = await flow.list_tools(project)
    assert [t["name"] for t in result["tools"]] == ["ping_demo"]


# ═════════════════════════════════════════════════════════════════════════════
# Mode
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_mode_switching(flow: FlowMcp, project: Path, read_local) -> None:
    assert await flow.get_mode(project) == {"status": True, "mode": None}
    assert await flow.set_mode("agent", project) == {"status": True, "mode": "agent"}
    assert read_local() == {"mode": "agent", "root": "~/.flowmcp", "tools": []}
    await flow.set_mode("dev", project)
    assert await flow.get_mode(project) == {"status": True, "mode": "dev"}


@pytest.mark.asyncio
async def test_invalid_mode(flow: FlowMcp, project: Path) -> None:
    result = await flow.set_mode("turbo", project)
    assert result == {"status": False, "error": 'Invalid mode "turbo".',
                      "fix": "Use: flowmcp mode agent  or  flowmcp mode dev"}
