"""Start an MCP server for the active tool set.

The server only starts when every active schema finds its server params in
the env file; otherwise the result lists what is missing per namespace.
"""

from __future__ import annotations

from pathlib import Path

from flowmcp_cli.foundation.config import CLI_COMMAND
from flowmcp_cli.foundation.errors import ErrorCode, FlowException, JsonDict
from flowmcp_cli.mcp import MCPServer, tool_specs
from flowmcp_cli.observability import get_logger

from .context import Services, expect, load_env, resolve_active
from .tools import missing_env_report

log = get_logger("core.serve")

AGENT_SERVER = "agent"


async def run(services: Services, cwd: Path | str, group: str | None = None) -> JsonDict:
    config = services.require_init()
    active = expect(resolve_active(services, cwd, group))
    env = expect(load_env(config))
    if missing := missing_env_report(active, env):
        raise FlowException.create(
            "Cannot start server. Missing env vars.",
            ErrorCode.ENV_MISSING,
            fix=f"Add missing vars to .env at {config.env_path} or remove schemas from group.",
            details={"missing": missing},
        )
    label = AGENT_SERVER if active.agent else active.label
    server = MCPServer(f"{CLI_COMMAND}-{label}", tool_specs(services.engine, active.schemas, env, config.env_path))
    await server.run_async()
    return {"status": True, "mode": "stdio", "group": label}
