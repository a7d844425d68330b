"""Per-call pipeline from a resolved tool to a uniform result.

Stages, each short-circuiting to a failure:

    env check -> handlers -> cache lookup -> before hook -> runtime -> after hook -> cache store

Cache stages run only for ``preload.enabled`` routes and never with
``no_cache``. A non-cacheable call carries no ``cache`` field at all, so
"not applicable" stays distinguishable from "applicable but missed". A store
that cannot be written still returns the live content, marked
``{hit: False, stored: False}``.

Example:
    >>> engine = ExecutionEngine(HttpSchemaRuntime(), HandlerResolver(), FileCache(settings.cache_dir))
    >>> result = await engine.execute(tool, {"limit": 5}, env, env_path)
    >>> result.unwrap()["cache"]
    {'hit': False, 'stored': True, 'fetchedAt': '...', 'expiresAt': '...', 'ttl': 300}
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import orjson

from flowmcp_cli.catalog import ResolvedTool
from flowmcp_cli.foundation.config import build_server_params, check_env_params
from flowmcp_cli.foundation.errors import Err, ErrorCode, FlowError, JsonDict, Ok, Result
from flowmcp_cli.observability import get_logger

from .cache import CacheEntry, FileCache, to_iso
from .handlers import HandlerResolver
from .protocol import RuntimeFailure, RuntimeRequest, SchemaRuntime

log = get_logger("runtime.execution")

LOCAL_SOURCE = "_local"


def _hit(entry: CacheEntry) -> JsonDict:
    return {"hit": True, "fetchedAt": to_iso(entry.meta.fetched_at), "expiresAt": to_iso(entry.meta.expires_at)}


def _stored(entry: CacheEntry) -> JsonDict:
    return {
        "hit": False,
        "stored": True,
        "fetchedAt": to_iso(entry.meta.fetched_at),
        "expiresAt": to_iso(entry.meta.expires_at),
        "ttl": entry.meta.ttl,
    }


def runtime_error(tool: ResolvedTool, failure: RuntimeFailure, env_path: str) -> FlowError:
    """RuntimeFailure result; the fix hint exists only when the schema needs server params."""
    required = tool.schema.required_server_params
    fix = (f"Check the API key entries ({', '.join(required)}) in your .env file at {env_path}"
           if required else None)
    return FlowError.create(f"Tool execution failed: {failure.message}", ErrorCode.RUNTIME_FAILURE, fix=fix)


class ExecutionEngine:
    """Runs one resolved tool against the schema runtime with hooks and caching.

    Args:
        runtime: Performs the outbound call
        handlers: Resolves the schema's custom hooks
        cache: Response cache for preload routes
    """

    __slots__ = ("_runtime", "_handlers", "_cache")

    def __init__(self, runtime: SchemaRuntime, handlers: HandlerResolver, cache: FileCache) -> None:
        self._runtime = runtime
        self._handlers = handlers
        self._cache = cache

    @property
    def cache(self) -> FileCache:
        return self._cache

    def cache_key(self, tool: ResolvedTool, args: Mapping[str, Any]) -> str:
        return self._cache.make_key(tool.schema.source or LOCAL_SOURCE, tool.namespace, tool.route_name, dict(args))

    async def execute(
        self,
        tool: ResolvedTool,
        args: Mapping[str, Any],
        env: Mapping[str, str],
        env_path: str,
        *,
        no_cache: bool = False,
        refresh: bool = False,
    ) -> Result[JsonDict, FlowError]:
        """Call ``tool`` with ``args``. Returns ``{status, toolName, content, cache?}`` or the failure."""
        schema = tool.schema
        if schema.definition is None:
            return Err(FlowError.create(f'Schema "{schema.ref}" is invalid: {"; ".join(schema.messages)}',
                                        ErrorCode.NOT_FOUND))
        required = schema.required_server_params
        if (missing := check_env_params(env, required, tool.namespace, env_path)) is not None:
            return Err(missing)
        user_params = dict(args)
        bound = log.bind(tool=tool.name)
        handlers = self._handlers.resolve(schema)

        cacheable = tool.route.cacheable and not no_cache
        key = self.cache_key(tool, user_params) if cacheable else None
        if key is not None and not refresh and (entry := self._cache.lookup(key)) is not None:
            bound.debug("cache hit", key=key)
            return Ok(self._result(tool, entry.data, _hit(entry)))

        params = await handlers.before(tool.route_name, user_params)
        request = RuntimeRequest(schema=schema.definition, route_name=tool.route_name, route=tool.route,
                                 user_params=params, server_params=build_server_params(env, required))
        try:
            response = await self._runtime.fetch(request)
        except RuntimeFailure as e:
            bound.debug("runtime failure", status=e.status, error=e.message)
            return Err(runtime_error(tool, e, env_path))
        content = await handlers.after(tool.route_name, response, user_params)

        if key is None:
            return Ok(self._result(tool, content))
        try:
            entry = self._cache.store(key, content, tool.route.cache_ttl)
        except (OSError, orjson.JSONEncodeError) as e:
            bound.debug("cache store failed", key=key, code=ErrorCode.CACHE_CORRUPT.value, error=str(e))
            return Ok(self._result(tool, content, {"hit": False, "stored": False}))
        return Ok(self._result(tool, entry.data, _stored(entry)))

    @staticmethod
    def _result(tool: ResolvedTool, content: Any, cache: JsonDict | None = None) -> JsonDict:
        result: JsonDict = {"status": True, "toolName": tool.name, "content": content}
        if cache is not None:
            result["cache"] = cache
        return result
