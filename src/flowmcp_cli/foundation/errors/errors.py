"""Standardized error handling for FlowMCP operations.

Every user-visible failure is a FlowError: a machine-readable code, a
human-readable message and an optional remediation hint. Operations never
raise across the public API; they return ``FlowError.to_result()`` instead.
"""

from __future__ import annotations

import functools
from enum import StrEnum
from typing import TYPE_CHECKING, Annotated, Awaitable, Callable, ParamSpec, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .types import JsonDict

if TYPE_CHECKING:
    from flowmcp_cli.observability import BoundLogger

P = ParamSpec("P")


class ErrorCode(StrEnum):
    """Error classes of the resolution, handler and cache engine.

    Only NOT_INITIALIZED, NOT_FOUND, ENV_MISSING, RUNTIME_FAILURE and
    INVALID_INPUT ever surface as failed results; the remaining classes
    degrade to warnings or to an absent feature.
    """
    NOT_INITIALIZED = "NOT_INITIALIZED"
    NOT_FOUND = "NOT_FOUND"
    CONFIG_MALFORMED = "CONFIG_MALFORMED"
    ENV_MISSING = "ENV_MISSING"
    HANDLER_FAILURE = "HANDLER_FAILURE"
    SHARED_LIST_FAILURE = "SHARED_LIST_FAILURE"
    RUNTIME_FAILURE = "RUNTIME_FAILURE"
    CACHE_CORRUPT = "CACHE_CORRUPT"
    INVALID_INPUT = "INVALID_INPUT"
    UNKNOWN = "UNKNOWN"


_SURFACED_CODES: frozenset[ErrorCode] = frozenset({
    ErrorCode.NOT_INITIALIZED,
    ErrorCode.NOT_FOUND,
    ErrorCode.ENV_MISSING,
    ErrorCode.RUNTIME_FAILURE,
    ErrorCode.INVALID_INPUT,
    ErrorCode.UNKNOWN,
})


class FlowError(BaseModel):
    """Structured failure of a FlowMCP operation.

    Attributes:
        message: Human-readable error, rendered as ``error``
        code: Machine-readable classification
        fix: Optional remediation hint for the operator
        details: Extra result fields (validation messages, missing env vars)
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "title": "Flow Error",
            "examples": [{
                "message": "Not initialized. Run: flowmcp init",
                "code": "NOT_INITIALIZED",
                "fix": "Ask the user to run: flowmcp init",
            }],
        },
    )

    message: Annotated[str, Field(min_length=1)]
    code: ErrorCode = ErrorCode.UNKNOWN
    fix: str | None = None
    details: JsonDict = Field(default_factory=dict)

    @computed_field
    @property
    def surfaced(self) -> bool:
        """Whether this class produces a failed result rather than a warning."""
        return self.code in _SURFACED_CODES

    @classmethod
    def create(cls, message: str, code: ErrorCode = ErrorCode.UNKNOWN, *, fix: str | None = None,
               details: JsonDict | None = None) -> Self:
        """Factory method for construction."""
        return cls(message=message, code=code, fix=fix, details=details or {})

    @classmethod
    def from_exception(cls, exc: Exception, context: str = "") -> Self:
        return cls(message=f"{context}: {exc}" if context else str(exc) or type(exc).__name__)

    def to_result(self) -> JsonDict:
        """Render as the uniform failure shape ``{status, error, fix?}``."""
        result: JsonDict = {"status": False, "error": self.message, **self.details}
        if self.fix:
            result["fix"] = self.fix
        return result

    def render(self) -> str:
        return f"{self.message}\nFix: {self.fix}" if self.fix else self.message

    __str__ = render


class FlowException(Exception):
    """Exception wrapping a FlowError for raising inside a pipeline stage."""

    __slots__ = ("error",)

    def __init__(self, error: FlowError) -> None:
        self.error = error
        super().__init__(error.message)

    @classmethod
    def create(cls, message: str, code: ErrorCode = ErrorCode.UNKNOWN, *, fix: str | None = None,
               details: JsonDict | None = None) -> Self:
        return cls(FlowError.create(message, code, fix=fix, details=details))


def guarded(log: BoundLogger) -> Callable[[Callable[P, Awaitable[JsonDict]]], Callable[P, Awaitable[JsonDict]]]:
    """Decorator converting any exception of a public operation into a failure result.

    Example:
        >>> @guarded(log)
        ... async def status(self, cwd: Path) -> JsonDict: ...
    """
    def decorator(func: Callable[P, Awaitable[JsonDict]]) -> Callable[P, Awaitable[JsonDict]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> JsonDict:
            try:
                return await func(*args, **kwargs)
            except FlowException as e:
                return e.error.to_result()
            except Exception as e:
                log.exception("operation failed", operation=func.__name__)
                return FlowError.from_exception(e, f"{func.__name__} failed").to_result()
        return wrapper
    return decorator
