"""``flowmcp`` command line.

Every command prints its result dict as indented JSON on stdout; logs go to
stderr. Commands run from the project directory (the current working
directory) unless a path argument says otherwise.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Coroutine, cast

import click
import orjson

from flowmcp_cli.core import FlowMcp
from flowmcp_cli.foundation.config import DEFAULT_ENV_FILE, get_settings
from flowmcp_cli.foundation.errors import JsonDict
from flowmcp_cli.observability import configure_logging

LIST_TOOLS = "list-tools"


def emit(result: JsonDict) -> None:
    click.echo(orjson.dumps(result, option=orjson.OPT_INDENT_2, default=str).decode())


def _run(operation: Coroutine[Any, Any, JsonDict]) -> None:
    emit(asyncio.run(operation))


def _flow(ctx: click.Context) -> FlowMcp:
    return cast(FlowMcp, ctx.obj)


@click.group(name="flowmcp")
@click.version_option(package_name="flowmcp-cli")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Discover, validate, test and call FlowMCP schema tools."""
    settings = get_settings()
    configure_logging(format=settings.log_format, level="DEBUG" if settings.debug else settings.log_level)
    ctx.obj = ctx.obj or FlowMcp(settings)


# ─────────────────────────────────────────────────────────────────────────────
# Setup
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.option("--env-path", type=click.Path(dir_okay=False), default=None,
              help="Env file holding API keys. Defaults to <home>/.env or the configured path.")
@click.pass_context
def init(ctx: click.Context, env_path: str | None) -> None:
    """Set up global and project configuration."""
    flow = _flow(ctx)
    if env_path is None:
        existing = flow.services.store.load_global()
        env_path = existing.env_path if existing and existing.env_path else str(flow.settings.home / DEFAULT_ENV_FILE)
    _run(flow.init(env_path, Path.cwd()))


@cli.command()
@click.pass_context
def schemas(ctx: click.Context) -> None:
    """List schema sources and their files."""
    _run(_flow(ctx).schemas())


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the health report and configuration summary."""
    _run(_flow(ctx).status(Path.cwd()))


# ─────────────────────────────────────────────────────────────────────────────
# Validation and live tests
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("schema_path", required=False)
@click.option("--group", default=None, help="Validate this group instead of the default group.")
@click.pass_context
def validate(ctx: click.Context, schema_path: str | None, group: str | None) -> None:
    """Validate schema files at a path, or the tools of a group."""
    _run(_flow(ctx).validate(Path.cwd(), schema_path, group))


@cli.command()
@click.argument("schema_path", required=False)
@click.option("--route", default=None, help="Only test this route.")
@click.option("--group", default=None, help="Test this group instead of the default group.")
@click.option("--all", "all_sources", is_flag=True, help="Test every schema of every source.")
@click.pass_context
def test(ctx: click.Context, schema_path: str | None, route: str | None, group: str | None,
         all_sources: bool) -> None:
    """Run the declared route tests against the live APIs."""
    scope = "user" if all_sources else None
    _run(_flow(ctx).test(Path.cwd(), scope, schema_path, route, group))


# ─────────────────────────────────────────────────────────────────────────────
# Groups
# ─────────────────────────────────────────────────────────────────────────────


@cli.group()
def group() -> None:
    """Manage named tool groups of this project."""


@group.command("append")
@click.argument("name")
@click.option("--tools", required=True, help='Comma-separated references: "source/file.py::route,..."')
@click.pass_context
def group_append(ctx: click.Context, name: str, tools: str) -> None:
    _run(_flow(ctx).group_append(name, tools, Path.cwd()))


@group.command("remove")
@click.argument("name")
@click.option("--tools", required=True, help="Comma-separated references to remove.")
@click.pass_context
def group_remove(ctx: click.Context, name: str, tools: str) -> None:
    _run(_flow(ctx).group_remove(name, tools, Path.cwd()))


@group.command("list")
@click.pass_context
def group_list(ctx: click.Context) -> None:
    _run(_flow(ctx).group_list(Path.cwd()))


@group.command("set-default")
@click.argument("name")
@click.pass_context
def group_set_default(ctx: click.Context, name: str) -> None:
    _run(_flow(ctx).group_set_default(name, Path.cwd()))


# ─────────────────────────────────────────────────────────────────────────────
# Calling and serving
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("tool_name", required=False)
@click.argument("json_args", required=False)
@click.option("--group", default=None, help="Resolve tools from this group.")
@click.option("--no-cache", is_flag=True, help="Bypass the response cache entirely.")
@click.option("--refresh", is_flag=True, help="Skip the cache lookup but store the fresh response.")
@click.pass_context
def call(ctx: click.Context, tool_name: str | None, json_args: str | None, group: str | None,
         no_cache: bool, refresh: bool) -> None:
    """Call a tool: flowmcp call <tool-name> '{"param": "value"}'. Use 'list-tools' to list them."""
    flow = _flow(ctx)
    if tool_name == LIST_TOOLS:
        _run(flow.resolve_active_tools(Path.cwd(), group))
        return
    _run(flow.call_tool(tool_name, json_args, Path.cwd(), group, no_cache=no_cache, refresh=refresh))


@cli.command()
@click.option("--group", default=None, help="Serve this group instead of the active tools.")
@click.pass_context
def run(ctx: click.Context, group: str | None) -> None:
    """Serve the active tools to an MCP client over stdio."""
    result = asyncio.run(_flow(ctx).run(Path.cwd(), group))
    if not result.get("status"):
        click.echo(orjson.dumps(result, option=orjson.OPT_INDENT_2).decode(), err=True)
        ctx.exit(1)


# ─────────────────────────────────────────────────────────────────────────────
# Agent mode
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("query", nargs=-1)
@click.pass_context
def search(ctx: click.Context, query: tuple[str, ...]) -> None:
    """Find tools across all sources by keyword."""
    _run(_flow(ctx).search(" ".join(query)))


@cli.command()
@click.argument("tool_name", required=False)
@click.pass_context
def add(ctx: click.Context, tool_name: str | None) -> None:
    """Activate a tool for agent mode."""
    _run(_flow(ctx).add(tool_name, Path.cwd()))


@cli.command()
@click.argument("tool_name", required=False)
@click.pass_context
def remove(ctx: click.Context, tool_name: str | None) -> None:
    """Deactivate an agent-mode tool."""
    _run(_flow(ctx).remove(tool_name, Path.cwd()))


@cli.command(name="list")
@click.pass_context
def list_(ctx: click.Context) -> None:
    """List active tools."""
    _run(_flow(ctx).list_tools(Path.cwd()))


@cli.command()
@click.argument("mode", required=False)
@click.pass_context
def mode(ctx: click.Context, mode: str | None) -> None:
    """Show the project mode, or switch it: flowmcp mode agent|dev."""
    flow = _flow(ctx)
    _run(flow.get_mode(Path.cwd()) if mode is None else flow.set_mode(mode, Path.cwd()))


# ─────────────────────────────────────────────────────────────────────────────
# Cache
# ─────────────────────────────────────────────────────────────────────────────


@cli.group()
def cache() -> None:
    """Inspect or clear the response cache."""


@cache.command("status")
@click.pass_context
def cache_status(ctx: click.Context) -> None:
    _run(_flow(ctx).cache_status())


@cache.command("clear")
@click.argument("namespace", required=False)
@click.pass_context
def cache_clear(ctx: click.Context, namespace: str | None) -> None:
    _run(_flow(ctx).cache_clear(namespace))


if __name__ == "__main__":
    cli()
