"""Custom per-route hooks supplied by a schema's ``handlers`` factory.

A schema module may export::

    def handlers(*, shared_lists, libraries):
        return {
            "getColors": {
                "before": lambda *, user_params, route_name: {**user_params, "limit": 5},
                "after": lambda *, response, user_params, route_name: response["items"],
            },
        }

Shared lists are read from ``_lists/<name>.py`` (attribute ``<name>``) in the
schema's directory or the nearest parent up to the source root. Libraries are
imported by name. Every third-party step is isolated: a missing list is an
empty list, a missing library is None, a failing factory means no hooks, and a
failing hook is skipped for that call. None of these ever fail a call; they are
logged only when the debug flag is set.
"""

from __future__ import annotations

import importlib
import inspect
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any, Callable

from flowmcp_cli.catalog import LoadedSchema, load_module
from flowmcp_cli.foundation.errors import ErrorCode
from flowmcp_cli.observability import get_logger

log = get_logger("runtime.handlers")

LISTS_DIR = "_lists"

Hook = Callable[..., Any]


@dataclass(frozen=True, slots=True)
class RouteHooks:
    before: Hook | None = None
    after: Hook | None = None


async def _call(hook: Hook, **kw: Any) -> Any:
    result = hook(**kw)
    return await result if inspect.isawaitable(result) else result


@dataclass(frozen=True, slots=True)
class HandlerSet:
    """Resolved hooks of one schema, keyed by route name. Empty when the schema has none."""

    hooks: dict[str, RouteHooks] = field(default_factory=dict)
    debug: bool = False

    def __bool__(self) -> bool:
        return bool(self.hooks)

    def for_route(self, route_name: str) -> RouteHooks:
        return self.hooks.get(route_name, RouteHooks())

    async def before(self, route_name: str, user_params: dict[str, Any]) -> dict[str, Any]:
        """Parameters to send. A missing, failing or None-returning hook keeps the input."""
        if (hook := self.for_route(route_name).before) is None:
            return user_params
        try:
            result = await _call(hook, user_params=dict(user_params), route_name=route_name)
        except Exception as e:  # third-party hook
            self._report("before hook failed", route_name, e)
            return user_params
        return dict(result) if isinstance(result, Mapping) else user_params

    async def after(self, route_name: str, response: Any, user_params: dict[str, Any]) -> Any:
        if (hook := self.for_route(route_name).after) is None:
            return response
        try:
            return await _call(hook, response=response, user_params=dict(user_params), route_name=route_name)
        except Exception as e:  # third-party hook
            self._report("after hook failed", route_name, e)
            return response

    def _report(self, event: str, route_name: str, error: Exception) -> None:
        if self.debug:
            log.warning(event, route=route_name, code=ErrorCode.HANDLER_FAILURE.value, error=str(error))


def _parse_hooks(raw: Any) -> dict[str, RouteHooks]:
    if not isinstance(raw, Mapping):
        raise TypeError(f"handlers factory returned {type(raw).__name__}, expected a mapping")
    hooks: dict[str, RouteHooks] = {}
    for route_name, entry in raw.items():
        if not isinstance(entry, Mapping):
            continue
        before, after = entry.get("before"), entry.get("after")
        hooks[str(route_name)] = RouteHooks(
            before=before if callable(before) else None,
            after=after if callable(after) else None,
        )
    return hooks


class HandlerResolver:
    """Builds a HandlerSet for a loaded schema, injecting shared lists and libraries.

    Args:
        debug: Emit diagnostics for isolated failures (FLOWMCP_DEBUG)
    """

    __slots__ = ("_debug",)

    def __init__(self, debug: bool = False) -> None:
        self._debug = debug

    def _report(self, event: str, code: ErrorCode, **kw: Any) -> None:
        if self._debug:
            log.warning(event, code=code.value, **kw)

    @staticmethod
    def find_lists_dir(schema: LoadedSchema) -> Path | None:
        """Nearest ``_lists`` directory from the schema's directory up to its source root."""
        directory = schema.path.parent
        stop = schema.source_root or directory
        while True:
            if (candidate := directory / LISTS_DIR).is_dir():
                return candidate
            if directory == stop or directory.parent == directory or stop not in directory.parents:
                return None
            directory = directory.parent

    def load_shared_lists(self, schema: LoadedSchema) -> dict[str, Any]:
        names = schema.definition.shared_lists if schema.definition is not None else ()
        if not names:
            return {}
        lists_dir = self.find_lists_dir(schema)
        lists: dict[str, Any] = {}
        for name in names:
            lists[name] = []
            if lists_dir is None:
                self._report("shared lists directory not found", ErrorCode.SHARED_LIST_FAILURE,
                             namespace=schema.namespace, list=name)
                continue
            try:
                module = load_module(lists_dir / f"{name}.py", prefix="flowmcp_list")
                lists[name] = getattr(module, name)
            except Exception as e:  # third-party list module
                self._report("shared list failed to load", ErrorCode.SHARED_LIST_FAILURE,
                             namespace=schema.namespace, list=name, error=str(e))
        return lists

    def load_libraries(self, schema: LoadedSchema) -> dict[str, ModuleType | None]:
        names = schema.definition.required_libraries if schema.definition is not None else ()
        libraries: dict[str, ModuleType | None] = {}
        for name in names:
            try:
                libraries[name] = importlib.import_module(name)
            except Exception as e:  # import side effects of arbitrary packages
                self._report("library unavailable", ErrorCode.HANDLER_FAILURE, library=name, error=str(e))
                libraries[name] = None
        return libraries

    def resolve(self, schema: LoadedSchema) -> HandlerSet:
        """Hooks for every route of the schema. Never raises."""
        if schema.handlers is None:
            return HandlerSet(debug=self._debug)
        shared_lists = self.load_shared_lists(schema)
        libraries = self.load_libraries(schema)
        try:
            hooks = _parse_hooks(schema.handlers(shared_lists=shared_lists, libraries=libraries))
        except Exception as e:  # third-party factory
            self._report("handlers factory failed", ErrorCode.HANDLER_FAILURE,
                         namespace=schema.namespace, error=str(e))
            return HandlerSet(debug=self._debug)
        log.debug("handlers resolved", namespace=schema.namespace, routes=len(hooks))
        return HandlerSet(hooks=hooks, debug=self._debug)
