"""Shared fixtures: an isolated FlowMCP home, a recording schema runtime and schema writers."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import orjson
import pytest

from flowmcp_cli import FlowMcp
from flowmcp_cli.foundation.config import FlowmcpSettings
from flowmcp_cli.tests.helpers import FakeRuntime, make_main


@pytest.fixture
def settings(tmp_path: Path) -> FlowmcpSettings:
    return FlowmcpSettings(_env_file=None, home=tmp_path / "home", test_delay=0, log_format="none")


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def flow(settings: FlowmcpSettings, runtime: FakeRuntime) -> FlowMcp:
    return FlowMcp(settings, runtime)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def env_path(settings: FlowmcpSettings) -> Path:
    return settings.home / ".env"


@pytest.fixture
def write_env(env_path: Path) -> Callable[..., Path]:
    def write(**values: str) -> Path:
        env_path.parent.mkdir(parents=True, exist_ok=True)
        env_path.write_text("".join(f"{k}={v}\n" for k, v in values.items()), encoding="utf-8")
        return env_path
    return write


@pytest.fixture
def initialized(settings: FlowmcpSettings, env_path: Path, write_env: Callable[..., Path]) -> Path:
    """Global config pointing at an empty env file. Returns the env file path."""
    settings.home.mkdir(parents=True, exist_ok=True)
    settings.config_path.write_bytes(orjson.dumps({
        "envPath": str(env_path),
        "flowmcpCore": {"version": "2.0.0", "commit": None, "schemaSpec": "2.0.0"},
        "initialized": "2024-01-01T00:00:00.000Z",
        "sources": {"demo": {"type": "builtin", "schemaCount": 1}},
    }))
    return write_env()


@pytest.fixture
def write_schema(settings: FlowmcpSettings) -> Callable[..., Path]:
    """Write ``main`` (plus optional module source) to ``<home>/schemas/<source>/<file>``."""
    def write(source: str, file: str, main: Any, extra_source: str = "") -> Path:
        path = settings.schemas_dir / source / file
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"main = {main!r}\n{extra_source}", encoding="utf-8")
        return path
    return write


@pytest.fixture
def write_local(project: Path) -> Callable[[dict[str, Any]], Path]:
    def write(config: dict[str, Any]) -> Path:
        path = project / ".flowmcp" / "config.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(orjson.dumps(config))
        return path
    return write


@pytest.fixture
def read_local(project: Path) -> Callable[[], dict[str, Any]]:
    def read() -> dict[str, Any]:
        return orjson.loads((project / ".flowmcp" / "config.json").read_bytes())
    return read


@pytest.fixture
def ping_project(initialized: Path, write_schema: Callable[..., Path],
                 write_local: Callable[[dict[str, Any]], Path]) -> None:
    """``demo/ping.py`` in a ``dev`` group that is the project's default."""
    write_schema("demo", "ping.py", make_main())
    write_local({"root": "~/.flowmcp", "defaultGroup": "dev",
                 "groups": {"dev": {"description": "", "tools": ["demo/ping.py::ping"]}}})
