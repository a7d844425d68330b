"""Interface to the schema runtime: the component that performs the outbound call.

The engine hands it a resolved route plus the parameters and server params to
use, and expects the response payload back or a ``RuntimeFailure``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from flowmcp_cli.catalog import RouteDefinition, SchemaDefinition


class RuntimeFailure(Exception):
    """The underlying API call failed. ``status`` is the HTTP status when one was received."""

    __slots__ = ("status", "message")

    def __init__(self, status: int | None, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class RuntimeRequest:
    """Everything a runtime needs for one call.

    Attributes:
        schema: Validated schema definition (root URL, headers)
        route_name: Route key within the schema
        route: The route to call
        user_params: Caller parameters after the ``before`` hook
        server_params: Declared server params read from the env file
    """

    schema: SchemaDefinition
    route_name: str
    route: RouteDefinition
    user_params: dict[str, Any] = field(default_factory=dict)
    server_params: dict[str, str] = field(default_factory=dict)


@runtime_checkable
class SchemaRuntime(Protocol):
    """Executes one request. Returns the payload or raises RuntimeFailure."""

    async def fetch(self, request: RuntimeRequest) -> Any: ...
