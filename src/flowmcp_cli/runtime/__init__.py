"""Call execution: schema runtime interface, handler hooks, response cache and the pipeline."""

from .cache import CacheEntry, CacheMeta, FileCache, param_hash, to_iso, utc_now
from .execution import ExecutionEngine, runtime_error
from .handlers import LISTS_DIR, HandlerResolver, HandlerSet, RouteHooks
from .http import HttpSchemaRuntime, build_request, substitute
from .protocol import RuntimeFailure, RuntimeRequest, SchemaRuntime

__all__ = [
    # Runtime interface
    "SchemaRuntime", "RuntimeRequest", "RuntimeFailure",
    "HttpSchemaRuntime", "build_request", "substitute",
    # Handlers
    "HandlerResolver", "HandlerSet", "RouteHooks", "LISTS_DIR",
    # Cache
    "FileCache", "CacheEntry", "CacheMeta", "param_hash", "to_iso", "utc_now",
    # Pipeline
    "ExecutionEngine", "runtime_error",
]
