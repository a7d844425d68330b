"""FlowMCP CLI - Discover, validate, test and call declarative API schema tools.

Schemas live in sources under ``~/.flowmcp/schemas``. A project selects the
tools it uses through named groups (or, in agent mode, a flat tool list) in
``.flowmcp/config.json``; calls resolve against that selection, read API keys
from the env file named in the global config, and may be cached on disk.

Quick Start:
    >>> from flowmcp_cli import FlowMcp
    >>>
    >>> flow = FlowMcp()
    >>> await flow.init("~/.flowmcp/.env", cwd=".")
    >>> await flow.group_append("dev", "demo/ping.py::ping", cwd=".")
    >>> await flow.call_tool("ping_demo", None, cwd=".")
    {'status': True, 'toolName': 'ping_demo', 'content': {...}}

Agent Mode:
    >>> await flow.search("ping")
    >>> await flow.add("ping_demo", cwd=".")
    >>> await flow.call_tool("ping_demo", '{}', cwd=".")

Command Line:
    $ flowmcp init
    $ flowmcp group append dev --tools "demo/ping.py::ping"
    $ flowmcp call ping_demo
    $ flowmcp run
"""

from .core import FlowMcp
from .foundation.config import FlowmcpSettings, get_settings
from .foundation.errors import ErrorCode, FlowError, FlowException

__version__ = "2.0.0"

__all__ = ["FlowMcp", "FlowmcpSettings", "get_settings", "FlowError", "FlowException", "ErrorCode", "__version__"]
