"""Unified error handling for flowmcp_cli.

- ErrorCode: Error classes of the engine
- FlowError/FlowException: Structured failures and their raisable wrapper
- guarded: Boundary decorator keeping exceptions off the public API
- Result/Ok/Err: Monadic error handling for pipeline stages
"""

from .errors import ErrorCode, FlowError, FlowException, guarded
from .result import Err, Ok, Result, collect_results
from .types import JsonDict, JsonPrimitive, JsonValue

__all__ = [
    "ErrorCode", "FlowError", "FlowException", "guarded",
    "Result", "Ok", "Err", "collect_results",
    "JsonDict", "JsonPrimitive", "JsonValue",
]
