"""Tests for settings, the two-level config store and env file handling."""

from __future__ import annotations

from pathlib import Path

import orjson
import pytest

from flowmcp_cli.foundation.config import (
    ConfigStore,
    FlowmcpSettings,
    build_server_params,
    check_env_params,
    combine_env_errors,
    global_warnings,
    local_warnings,
    read_env_file,
)
from flowmcp_cli.foundation.errors import ErrorCode


# ═════════════════════════════════════════════════════════════════════════════
# Settings
# ═════════════════════════════════════════════════════════════════════════════


def test_settings_expand_home() -> None:
    """A ``~`` home is expanded and derived paths hang off it."""
    settings = FlowmcpSettings(_env_file=None, home="~/flowmcp-test")
    assert settings.home == Path.home() / "flowmcp-test"
    assert settings.config_path == settings.home / "config.json"
    assert settings.schemas_dir == settings.home / "schemas"
    assert settings.cache_dir == settings.home / "cache"


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """FLOWMCP_ variables configure the settings."""
    monkeypatch.setenv("FLOWMCP_HOME", str(tmp_path))
    monkeypatch.setenv("FLOWMCP_DEBUG", "true")
    monkeypatch.setenv("FLOWMCP_LOG_LEVEL", "debug")
    settings = FlowmcpSettings(_env_file=None)
    assert settings.home == tmp_path
    assert settings.debug is True
    assert settings.log_level == "DEBUG"


# ═════════════════════════════════════════════════════════════════════════════
# Global config
# ═════════════════════════════════════════════════════════════════════════════


def test_require_init_without_config(settings: FlowmcpSettings) -> None:
    """Missing global config is the NotInitialized failure."""
    error = ConfigStore(settings).require_init().unwrap_err()
    assert error.code == ErrorCode.NOT_INITIALIZED
    assert error.message == "Not initialized. Run: flowmcp init"
    assert error.fix == "Ask the user to run: flowmcp init"


def test_require_init_needs_initialized_timestamp(settings: FlowmcpSettings) -> None:
    """A config file without ``initialized`` still counts as not initialized."""
    store = ConfigStore(settings)
    store.write_global({"envPath": "/tmp/.env"})
    assert store.require_init().is_err()


def test_require_init_returns_snapshot(settings: FlowmcpSettings, initialized: Path) -> None:
    """An initialized config loads as a typed snapshot."""
    config = ConfigStore(settings).require_init().unwrap()
    assert config.env_path == str(initialized)
    assert config.flowmcp_core is not None and config.flowmcp_core.schema_spec == "2.0.0"
    assert config.sources["demo"].schema_count == 1


def test_global_warnings() -> None:
    """Structural problems are reported, never raised."""
    warnings = global_warnings({"envPath": "", "flowmcpCore": {"version": 2}, "sources": []})
    assert "envPath: Missing or not a non-empty string" in warnings
    assert "initialized: Missing or not a string" in warnings
    assert "flowmcpCore.version: Missing or not a string" in warnings
    assert "sources: Must be an object when present" in warnings


def test_malformed_global_is_salvaged(settings: FlowmcpSettings) -> None:
    """A wrongly typed field does not hide the well-formed ones."""
    store = ConfigStore(settings)
    store.write_global({"envPath": "/tmp/.env", "initialized": "2024-01-01", "flowmcpCore": "bad",
                        "sources": {"demo": {"type": "builtin", "schemaCount": 1}, "broken": {"schemaCount": -1}}})
    config = store.load_global()
    assert config is not None
    assert config.env_path == "/tmp/.env"
    assert config.flowmcp_core is None
    assert list(config.sources) == ["demo"]


# ═════════════════════════════════════════════════════════════════════════════
# Local config
# ═════════════════════════════════════════════════════════════════════════════


def test_missing_local_config(settings: FlowmcpSettings, project: Path) -> None:
    assert ConfigStore(settings).load_local(project) is None


def test_legacy_schemas_key_is_read_as_tools(settings: FlowmcpSettings, project: Path, write_local) -> None:
    """Groups written with ``schemas`` resolve exactly like ``tools``."""
    write_local({"root": "~/.flowmcp", "defaultGroup": "old",
                 "groups": {"old": {"description": "legacy", "schemas": ["demo/ping.py", "demo/other.py"]}}})
    local = ConfigStore(settings).load_local(project)
    assert local is not None
    group = local.group("old")
    assert group is not None
    assert group.tools == ("demo/ping.py", "demo/other.py")


def test_write_local_migrates_legacy_groups(settings: FlowmcpSettings, project: Path, read_local) -> None:
    """Writing the project config renames ``schemas`` to ``tools`` and keeps order and other keys."""
    store = ConfigStore(settings)
    store.write_local(project, {"root": "~/.flowmcp", "custom": 1,
                                "groups": {"old": {"description": "", "schemas": ["b.py", "a.py"]}}})
    data = read_local()
    assert data["groups"]["old"] == {"description": "", "tools": ["b.py", "a.py"]}
    assert data["custom"] == 1


def test_local_warnings_dangling_default() -> None:
    """A defaultGroup naming no group is a warning."""
    warnings = local_warnings({"root": "~/.flowmcp", "defaultGroup": "gone", "groups": {"dev": {"tools": []}}})
    assert warnings == ['defaultGroup: "gone" does not reference an existing group']


def test_local_warnings_group_structure() -> None:
    warnings = local_warnings({"root": "~/.flowmcp", "groups": {"a": [], "b": {"description": ""},
                                                                 "c": {"tools": ["ok", 3]}}})
    assert "groups.a: Must be an object" in warnings
    assert 'groups.b: Must have "tools" or "schemas" array' in warnings
    assert "groups.c.tools[1]: Must be a string" in warnings


def test_malformed_local_is_salvaged(settings: FlowmcpSettings, project: Path, write_local) -> None:
    """A broken group is dropped, the rest of the document survives."""
    write_local({"root": "~/.flowmcp", "defaultGroup": "dev", "mode": "agent", "tools": ["demo/ping.py", 7],
                 "groups": {"dev": {"tools": ["demo/ping.py::ping"]}, "bad": "nope"}})
    local = ConfigStore(settings).load_local(project)
    assert local is not None
    assert list(local.groups) == ["dev"]
    assert local.is_agent
    assert local.tools == ("demo/ping.py",)


def test_unreadable_local_config(settings: FlowmcpSettings, project: Path) -> None:
    """Invalid JSON counts as an absent document."""
    path = project / ".flowmcp" / "config.json"
    path.parent.mkdir()
    path.write_text("{not json", encoding="utf-8")
    assert ConfigStore(settings).load_local(project) is None


# ═════════════════════════════════════════════════════════════════════════════
# Env file
# ═════════════════════════════════════════════════════════════════════════════


def test_read_env_file(tmp_path: Path) -> None:
    """Values are parsed without touching os.environ; a missing file is None."""
    path = tmp_path / ".env"
    path.write_text('API_KEY=abc\nQUOTED="x y"\n# comment\nEMPTY=\n', encoding="utf-8")
    env = read_env_file(path)
    assert env == {"API_KEY": "abc", "QUOTED": "x y", "EMPTY": ""}
    assert read_env_file(tmp_path / "missing.env") is None
    assert read_env_file("") is None


def test_check_env_params() -> None:
    """Every absent variable is named in one failure."""
    assert check_env_params({"A": "1"}, ["A"], "demo", "/x/.env") is None
    error = check_env_params({"A": "1"}, ["A", "B", "C"], "demo", "/x/.env")
    assert error is not None
    assert error.code == ErrorCode.ENV_MISSING
    assert error.message == 'Schema "demo": Missing env vars: B, C'
    assert error.fix == "Add B, C to your .env file at /x/.env"


def test_combine_env_errors() -> None:
    first = check_env_params({}, ["A"], "one", "/x/.env")
    second = check_env_params({}, ["B"], "two", "/x/.env")
    assert first is not None and second is not None
    combined = combine_env_errors([first, second])
    assert combined.message == 'Missing env vars: Schema "one": Missing env vars: A; Schema "two": Missing env vars: B'
    assert combined.fix == first.fix


def test_build_server_params_selects_declared() -> None:
    """Only declared variables reach a schema."""
    assert build_server_params({"A": "1", "SECRET": "2"}, ["A", "B"]) == {"A": "1"}


def test_write_json_is_indented(settings: FlowmcpSettings) -> None:
    store = ConfigStore(settings)
    store.write_global({"envPath": "/tmp/.env"})
    raw = settings.config_path.read_bytes()
    assert raw.startswith(b"{\n")
    assert orjson.loads(raw) == {"envPath": "/tmp/.env"}
