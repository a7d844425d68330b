"""Tests for init, the source listing and the status/health report."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import orjson
import pytest

from flowmcp_cli import FlowMcp
from flowmcp_cli.foundation.config import FlowmcpSettings
from flowmcp_cli.tests.helpers import FakeRuntime, make_main


def _checks(result: dict[str, Any]) -> dict[str, dict[str, Any]]:
    return {c["name"]: c for c in result["checks"]}


# ═════════════════════════════════════════════════════════════════════════════
# init
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_init_fresh(flow: FlowMcp, settings: FlowmcpSettings, project: Path, env_path: Path,
                          read_local) -> None:
    """Global config, env file, demo source and project config are created."""
    result = await flow.init(env_path, project)
    assert result["status"] is True
    assert result["healthy"] is False
    assert result["config"]["envPath"] == str(env_path)
    assert result["config"]["flowmcpCore"] == {"version": "2.0.0", "commit": None, "schemaSpec": "2.0.0"}

    assert env_path.is_file()
    assert (settings.schemas_dir / "demo" / "ping.py").is_file()
    assert read_local() == {"root": "~/.flowmcp"}
    stored = orjson.loads(settings.config_path.read_bytes())
    assert stored["sources"] == {"demo": {"type": "builtin", "schemaCount": 1}}


@pytest.mark.asyncio
async def test_init_merges_existing_config(flow: FlowMcp, settings: FlowmcpSettings, project: Path,
                                           env_path: Path, tmp_path: Path) -> None:
    """A re-run keeps existing keys and replaces only the env path."""
    first = await flow.init(env_path, project)
    other_env = tmp_path / "other.env"
    other_env.write_text("KEEP=1\n", encoding="utf-8")
    second = await flow.init(other_env)
    assert second["config"]["initialized"] == first["config"]["initialized"]
    assert second["config"]["envPath"] == str(other_env)
    assert other_env.read_text(encoding="utf-8") == "KEEP=1\n"


@pytest.mark.asyncio
async def test_init_keeps_existing_sources(flow: FlowMcp, settings: FlowmcpSettings, env_path: Path,
                                           write_schema: Callable[..., Path]) -> None:
    write_schema("acme", "api.py", make_main("acme"))
    await flow.init(env_path)
    assert not (settings.schemas_dir / "demo").exists()


@pytest.mark.asyncio
async def test_init_then_call_demo(flow: FlowMcp, project: Path, env_path: Path, runtime: FakeRuntime) -> None:
    """The demo schema is usable right after init."""
    await flow.init(env_path, project)
    appended = await flow.group_append("dev", "demo/ping.py::ping", project)
    assert appended["isDefault"] is True
    result = await flow.call_tool("ping_demo", None, project)
    assert result["status"] is True
    assert runtime.requests[0].schema.root == "https://httpbin.org"
    assert (await flow.status(project))["healthy"] is True


# ═════════════════════════════════════════════════════════════════════════════
# schemas
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_schemas_listing(flow: FlowMcp, initialized: Path, write_schema: Callable[..., Path]) -> None:
    write_schema("demo", "ping.py", make_main())
    result = await flow.schemas()
    assert result == {"status": True, "sources": [{
        "name": "demo", "type": "builtin", "repository": None, "schemaCount": 1,
        "schemas": [{"ref": "demo/ping.py", "file": "ping.py", "namespace": "demo", "name": "ping.py",
                     "requiredServerParams": []}],
    }]}


@pytest.mark.asyncio
async def test_schemas_requires_init(flow: FlowMcp) -> None:
    assert (await flow.schemas())["status"] is False


# ═════════════════════════════════════════════════════════════════════════════
# status
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_status_not_initialized(flow: FlowMcp, project: Path) -> None:
    """Level 1 failing stops the report."""
    result = await flow.status(project)
    assert result["status"] is True
    assert result["healthy"] is False
    assert [c["name"] for c in result["checks"]] == ["globalConfig"]
    assert result["checks"][0]["fix"] == "Run: flowmcp init"
    assert result["config"] is None


@pytest.mark.asyncio
async def test_status_healthy_project(flow: FlowMcp, project: Path, ping_project: None, env_path: Path) -> None:
    result = await flow.status(project)
    assert result["healthy"] is True
    assert [c["name"] for c in result["checks"]] == ["globalConfig", "envFile", "schemas", "envParams",
                                                     "localConfig", "groups"]
    assert result["config"]["envPath"] == str(env_path)
    assert result["config"]["envExists"] is True
    assert result["sources"] == {"demo": {"schemaCount": 1}}
    assert result["groups"] == {"dev": {"toolCount": 1}}
    assert result["defaultGroup"] == "dev"
    assert _checks(result)["groups"]["detail"] == "default: dev"


@pytest.mark.asyncio
async def test_status_dangling_default_group(flow: FlowMcp, project: Path, initialized: Path,
                                             write_local: Callable[..., Path],
                                             write_schema: Callable[..., Path]) -> None:
    """A default naming no group is reported, not raised."""
    write_schema("demo", "ping.py", make_main())
    write_local({"root": "~/.flowmcp", "defaultGroup": "gone",
                 "groups": {"dev": {"description": "", "tools": ["demo/ping.py"]}}})
    result = await flow.status(project)
    checks = _checks(result)
    assert result["healthy"] is False
    assert checks["localConfig"]["ok"] is False
    assert checks["groups"]["warnings"] == ['Default group "gone" does not exist']
    assert result["defaultGroup"] == "gone"


@pytest.mark.asyncio
async def test_status_missing_env_file(flow: FlowMcp, project: Path, ping_project: None, env_path: Path) -> None:
    env_path.unlink()
    checks = _checks(await flow.status(project))
    assert checks["envFile"]["ok"] is False
    assert "envParams" not in checks


@pytest.mark.asyncio
async def test_status_env_params_from_registry(flow: FlowMcp, project: Path, ping_project: None,
                                               settings: FlowmcpSettings, write_env: Callable[..., Path]) -> None:
    (settings.schemas_dir / "demo" / "_registry.json").write_bytes(orjson.dumps({"schemas": [
        {"file": "ping.py", "namespace": "demo", "requiredServerParams": ["API_KEY", "SECOND_KEY"]},
    ]}))
    write_env(API_KEY="set")
    check = _checks(await flow.status(project))["envParams"]
    assert check["ok"] is False
    assert check["detail"] == "1/2 env var(s) missing"
    assert check["warnings"] == ['Missing "SECOND_KEY" (needed by: demo)']

    write_env(API_KEY="set", SECOND_KEY="also")
    check = _checks(await flow.status(project))["envParams"]
    assert check == {"level": 3, "name": "envParams", "ok": True, "detail": "2 env var(s) verified"}


@pytest.mark.asyncio
async def test_status_without_local_config(flow: FlowMcp, project: Path, initialized: Path) -> None:
    result = await flow.status(project)
    checks = _checks(result)
    assert checks["localConfig"]["ok"] is False
    assert "groups" not in checks
    assert result["groups"] == {}
    assert result["defaultGroup"] is None
