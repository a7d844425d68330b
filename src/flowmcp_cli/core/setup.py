"""Non-interactive setup and the source listing.

``init`` merges into existing config documents without overwriting keys the
user already set; only ``envPath`` is always replaced. The ``demo`` source is
created only when no source exists yet.
"""

from __future__ import annotations

from pathlib import Path

from flowmcp_cli.foundation.config import (
    CORE_VERSION,
    LOCAL_CONFIG_DIR,
    SCHEMA_SPEC,
    SCHEMA_SUFFIX,
)
from flowmcp_cli.foundation.errors import JsonDict
from flowmcp_cli.observability import get_logger
from flowmcp_cli.runtime import to_iso, utc_now

from .context import Services
from .health import health_checks

log = get_logger("core.setup")

DEMO_SOURCE = "demo"
DEMO_FILE = f"ping{SCHEMA_SUFFIX}"

DEMO_SCHEMA = '''\
main = {
    "namespace": "demo",
    "name": "Ping Demo",
    "description": "Simple ping schema for testing the CLI",
    "version": "2.0.0",
    "tags": ["demo"],
    "root": "https://httpbin.org",
    "headers": {"Accept": "application/json"},
    "requiredServerParams": [],
    "routes": {
        "ping": {
            "method": "GET",
            "path": "/get",
            "description": "Simple ping endpoint",
            "parameters": [],
            "tests": [{"_description": "Ping test"}],
        },
    },
}
'''


def _merge(existing: JsonDict, updates: JsonDict) -> JsonDict:
    return {**existing, **{k: v for k, v in updates.items() if k not in existing}}


def init(services: Services, env_path: str | Path, cwd: Path | str | None = None) -> JsonDict:
    """Write the global config, the env file, the demo source and (with ``cwd``) the project config.

    Example:
        >>> init(services, "~/.flowmcp/.env", cwd=Path.cwd())["status"]
        True
    """
    env_file = Path(env_path).expanduser()
    store = services.store
    core = {"version": CORE_VERSION, "commit": None, "schemaSpec": SCHEMA_SPEC}
    config = _merge(store.read_global_raw() or {}, {
        "flowmcpCore": core,
        "initialized": to_iso(utc_now()),
        "sources": {DEMO_SOURCE: {"type": "builtin", "schemaCount": 1}},
    })
    config["envPath"] = str(env_file)
    store.write_global(config)

    if not env_file.exists():
        env_file.parent.mkdir(parents=True, exist_ok=True)
        env_file.write_text("", encoding="utf-8")

    if not services.catalog.source_names():
        demo = services.catalog.root / DEMO_SOURCE / DEMO_FILE
        demo.parent.mkdir(parents=True, exist_ok=True)
        demo.write_text(DEMO_SCHEMA, encoding="utf-8")
        log.info("demo schema created", path=str(demo))

    if cwd is not None:
        store.write_local(cwd, _merge(store.read_local_raw(cwd) or {}, {"root": f"~/{LOCAL_CONFIG_DIR}"}))

    checks = health_checks(services, cwd if cwd is not None else Path.cwd())
    result = store.load_global()
    return {
        "status": True,
        "healthy": all(c["ok"] for c in checks),
        "config": {
            "envPath": str(env_file),
            "flowmcpCore": result.flowmcp_core.model_dump(by_alias=True) if result and result.flowmcp_core else core,
            "initialized": result.initialized if result else None,
        },
    }


def schemas(services: Services) -> JsonDict:
    """Every source with its schema listing."""
    services.require_init()
    sources = services.catalog.list_sources()
    log.debug("sources listed", sources=len(sources))
    return {"status": True, "sources": [s.to_dict() for s in sources]}
