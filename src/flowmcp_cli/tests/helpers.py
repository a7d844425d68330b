"""Test doubles and schema builders."""

from __future__ import annotations

from typing import Any

from flowmcp_cli.foundation.config import USER_PARAM
from flowmcp_cli.runtime import RuntimeFailure, RuntimeRequest


class FakeRuntime:
    """SchemaRuntime double: canned payloads per route name, every request recorded."""

    def __init__(self) -> None:
        self.requests: list[RuntimeRequest] = []
        self.responses: dict[str, Any] = {}
        self.failures: dict[str, RuntimeFailure] = {}

    async def fetch(self, request: RuntimeRequest) -> Any:
        self.requests.append(request)
        if (failure := self.failures.get(request.route_name)) is not None:
            raise failure
        if request.route_name in self.responses:
            return self.responses[request.route_name]
        return {"route": request.route_name, "params": dict(request.user_params)}

    @property
    def calls(self) -> int:
        return len(self.requests)


def user_param(key: str, primitive: str = "string()", *options: str, location: str = "query") -> dict[str, Any]:
    return {"position": {"key": key, "value": USER_PARAM, "location": location},
            "z": {"primitive": primitive, "options": list(options)}}


def make_main(namespace: str = "demo", routes: dict[str, Any] | None = None, **extra: Any) -> dict[str, Any]:
    """A valid ``main`` export; ``ping`` (GET /get) when no routes are given."""
    return {
        "namespace": namespace,
        "name": extra.pop("name", f"{namespace.capitalize()} API"),
        "description": extra.pop("description", f"{namespace} test schema"),
        "root": "https://api.example.com",
        "requiredServerParams": extra.pop("requiredServerParams", []),
        "routes": routes or {
            "ping": {"method": "GET", "path": "/get", "description": "Simple ping endpoint",
                     "parameters": [], "tests": [{"_description": "Ping test"}]},
        },
        **extra,
    }
