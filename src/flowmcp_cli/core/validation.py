"""Schema validation and live route tests.

Live tests run each route's declared test cases against the real schema
runtime, sequentially, pausing ``test_delay`` seconds between calls. Keys of a
test case starting with ``_`` are metadata (``_description``); the rest are the
user parameters. Calls go through the execution engine with the cache bypassed.

Scopes:
    single   every schema at a file or directory path
    project  the given group, else the project's default group
    user     every schema of every source; schemas lacking env vars are skipped
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Literal

import orjson

from flowmcp_cli.catalog import LoadedSchema, tools_of
from flowmcp_cli.foundation.config import SCHEMA_SUFFIX, missing_params, read_env_file
from flowmcp_cli.foundation.errors import ErrorCode, FlowException, JsonDict
from flowmcp_cli.observability import get_logger

from .context import Services, check_schemas_env, default_group_refs, expect, group_refs_of, load_env

log = get_logger("core.validation")

RunScope = Literal["single", "project", "user"]

PREVIEW_LENGTH = 200


def _summary(results: list[JsonDict], **extra: Any) -> JsonDict:
    passed = sum(1 for r in results if r["status"] is True)
    return {"status": len(results) == passed, "total": len(results), "passed": passed,
            "failed": len(results) - passed, **extra, "results": results}


def _load_path(services: Services, schema_path: str | Path) -> list[LoadedSchema]:
    result = services.catalog.load_from_path(schema_path)
    if result.is_err():
        error = result.unwrap_err()
        raise FlowException(error.model_copy(update={
            "fix": f"Provide a valid path to a {SCHEMA_SUFFIX} schema file or directory.",
        }))
    return result.unwrap()


# ═══════════════════════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════════════════════


def validation_entry(schema: LoadedSchema) -> JsonDict:
    return {"file": schema.ref, "namespace": schema.namespace, "status": schema.valid, "messages": schema.messages}


def validate(services: Services, cwd: Path | str, schema_path: str | Path | None = None,
             group: str | None = None) -> JsonDict:
    """Structural validation of a path, a group, or the default group."""
    services.require_init()
    if schema_path is not None:
        schemas = _load_path(services, schema_path)
    else:
        local = services.local(cwd)
        refs = expect(group_refs_of(local, group) if group else default_group_refs(local))
        schemas = services.resolver.resolve(refs)
    results = [validation_entry(s) for s in schemas]
    log.debug("validated", schemas=len(results))
    return _summary(results)


# ═══════════════════════════════════════════════════════════════════════════════
# Live tests
# ═══════════════════════════════════════════════════════════════════════════════


def case_params(case: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in case.items() if not k.startswith("_")}


def preview(content: Any) -> str | None:
    if content is None:
        return None
    text = content if isinstance(content, str) else orjson.dumps(content, default=str).decode()
    return text[:PREVIEW_LENGTH]


class LiveTester:
    """Runs route test cases through the execution engine."""

    __slots__ = ("_services", "_env", "_env_path", "_first")

    def __init__(self, services: Services, env: dict[str, str], env_path: str) -> None:
        self._services = services
        self._env = env
        self._env_path = env_path
        self._first = True

    async def _pause(self) -> None:
        if not self._first and self._services.settings.test_delay > 0:
            await asyncio.sleep(self._services.settings.test_delay)
        self._first = False

    async def run_schema(self, schema: LoadedSchema, route: str | None = None) -> list[JsonDict]:
        """One entry per executed test case, or a single ``*`` entry for an unusable schema."""
        if not schema.valid:
            return [{"namespace": schema.namespace, "routeName": "*", "status": False,
                     "messages": schema.messages, "dataPreview": None}]
        results: list[JsonDict] = []
        for tool in tools_of(schema):
            if route is not None and tool.route_name != route:
                continue
            for case in tool.route.tests:
                await self._pause()
                outcome = await self._services.engine.execute(tool, case_params(case), self._env, self._env_path,
                                                              no_cache=True)
                entry: JsonDict = {"namespace": schema.namespace, "routeName": tool.route_name}
                if outcome.is_ok():
                    entry |= {"status": True, "messages": [], "dataPreview": preview(outcome.unwrap()["content"])}
                else:
                    entry |= {"status": False, "messages": [outcome.unwrap_err().message], "dataPreview": None}
                results.append(entry)
        return results


def _has_tests(schema: LoadedSchema) -> bool:
    return any(route.tests for route in schema.routes.values())


async def run_tests(services: Services, cwd: Path | str, scope: RunScope | None = None,
               schema_path: str | Path | None = None, route: str | None = None,
               group: str | None = None) -> JsonDict:
    """Run live tests. Without an explicit scope a path means ``single``, otherwise ``project``."""
    config = services.require_init()
    scope = scope or ("single" if schema_path is not None else "project")
    if scope == "user":
        return await _test_user(services, config.env_path)

    if scope == "single":
        if schema_path is None:
            raise FlowException.create(
                "schemaPath: Missing value. Provide a path to a schema file or directory.",
                ErrorCode.INVALID_INPUT,
                details={"messages": ["schemaPath: Missing value. Provide a path to a schema file or directory."]},
            )
        env = expect(load_env(config))
        schemas = _load_path(services, schema_path)
    else:
        local = services.local(cwd)
        refs = expect(group_refs_of(local, group) if group else default_group_refs(local))
        env = expect(load_env(config))
        schemas = services.resolver.resolve(refs)

    expect(check_schemas_env(schemas, env, config.env_path))
    tester = LiveTester(services, env, config.env_path)
    results: list[JsonDict] = []
    for schema in schemas:
        results += await tester.run_schema(schema, route)
    return _summary(results)


async def _test_user(services: Services, env_path: str) -> JsonDict:
    env = read_env_file(env_path) or {}
    schemas = services.catalog.load_all()
    tester = LiveTester(services, env, env_path)
    results: list[JsonDict] = []
    skipped = 0
    for schema in schemas:
        base = {"namespace": schema.namespace, "file": schema.file, "source": schema.source}
        if not schema.valid:
            results.append({**base, "status": False, "messages": schema.messages, "skipped": False})
            continue
        if missing := missing_params(env, schema.required_server_params):
            results.append({**base, "status": True, "messages": [], "skipped": True,
                            "skipReason": f"Missing env: {', '.join(missing)}"})
            skipped += 1
            continue
        if not _has_tests(schema):
            results.append({**base, "status": True, "messages": [], "skipped": True,
                            "skipReason": "No tests defined"})
            skipped += 1
            continue
        for entry in await tester.run_schema(schema):
            results.append({**base, **entry, "skipped": False})

    executed = [r for r in results if not r["skipped"]]
    passed = sum(1 for r in executed if r["status"] is True)
    return {
        "status": len(executed) == passed,
        "total": len(schemas),
        "testsExecuted": len(executed),
        "passed": passed,
        "failed": len(executed) - passed,
        "skipped": skipped,
        "results": results,
    }
