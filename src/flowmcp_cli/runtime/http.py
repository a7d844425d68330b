"""Default schema runtime: plain HTTP requests through an httpx.AsyncClient.

Request assembly:
    - URL is ``schema.root`` + ``route.path``; ``insert`` parameters replace
      ``:key`` (or ``{{key}}``) segments in the path
    - ``query``/``body``/``header`` parameters land in the matching part
    - ``{{NAME}}`` placeholders in schema headers and constant parameter values
      are filled from the server params

Example:
    >>> runtime = HttpSchemaRuntime(timeout=10)
    >>> await runtime.fetch(RuntimeRequest(schema=schema, route_name="ping", route=route))
    {'url': 'https://httpbin.org/get', ...}
"""

from __future__ import annotations

import re
from typing import Any

import httpx

from flowmcp_cli.catalog import describe
from flowmcp_cli.observability import get_logger

from .protocol import RuntimeFailure, RuntimeRequest

log = get_logger("runtime.http")

_PLACEHOLDER = re.compile(r"\{\{([A-Za-z0-9_]+)\}\}")


def substitute(text: str, values: dict[str, str]) -> str:
    """Replace ``{{NAME}}`` with ``values[NAME]``; unknown placeholders stay as written."""
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), text)


def _insert(path: str, key: str, value: Any) -> str:
    text = str(value)
    return path.replace(f"{{{{{key}}}}}", text).replace(f":{key}", text)


def build_request(request: RuntimeRequest) -> dict[str, Any]:
    """httpx ``request()`` keyword arguments for a runtime request."""
    server = request.server_params
    path = request.route.path
    headers = {k: substitute(v, server) for k, v in request.schema.headers.items()}
    query: dict[str, Any] = {}
    body: dict[str, Any] = {}
    for param in request.route.parameters:
        key, location = param.position.key, param.position.location
        if param.is_user_param:
            if key in request.user_params:
                value = request.user_params[key]
            elif (default := describe(param).default) is not None:
                value = default
            else:
                continue
        else:
            value = substitute(param.position.value, server)
        match location:
            case "insert":
                path = _insert(path, key, value)
            case "body":
                body[key] = value
            case "header":
                headers[key] = str(value)
            case _:
                query[key] = value
    kwargs: dict[str, Any] = {
        "method": request.route.method,
        "url": f"{request.schema.root}{path}",
        "headers": headers,
        "params": query or None,
    }
    if body:
        kwargs["json"] = body
    return kwargs


class HttpSchemaRuntime:
    """SchemaRuntime over httpx. One client per call unless a transport is injected for tests."""

    __slots__ = ("_timeout", "_transport")

    def __init__(self, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._timeout = timeout
        self._transport = transport

    async def fetch(self, request: RuntimeRequest) -> Any:
        kwargs = build_request(request)
        log.debug("request", method=kwargs["method"], url=kwargs["url"])
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport,
                                         follow_redirects=True) as client:
                response = await client.request(**kwargs)
        except httpx.TimeoutException:
            raise RuntimeFailure(None, f"Request timed out after {self._timeout}s") from None
        except httpx.HTTPError as e:
            raise RuntimeFailure(None, f"Network error: {e}") from e
        if response.status_code >= 400:
            raise RuntimeFailure(response.status_code, f"HTTP {response.status_code}: {response.reason_phrase}")
        try:
            return response.json()
        except ValueError:
            return response.text
