"""Structured logging with bound context.

Command results go to stdout as JSON, so every renderer writes to stderr.
Library code logs resolution steps at debug level. Isolated third-party
failures (handler factories, shared lists, hooks) are logged only when
FLOWMCP_DEBUG is set.

Quick Start:
    >>> from flowmcp_cli.observability import configure_logging, get_logger
    >>> configure_logging(format="console", level="DEBUG")
    >>> log = get_logger("catalog")
    >>> log.bind(source="demo").debug("scanning source", files=3)
"""

from __future__ import annotations

import logging
import sys
import time
import traceback
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol, TextIO, runtime_checkable

import orjson

from flowmcp_cli.foundation.errors.types import JsonDict, JsonValue

# ─────────────────────────────────────────────────────────────────────────────
# Entries and renderers
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: float
    level: str
    event: str
    context: JsonDict

    @property
    def moment(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=UTC)


@runtime_checkable
class LogRenderer(Protocol):
    def render(self, entry: LogEntry) -> None: ...


_ANSI = {"reset": "\033[0m", "dim": "\033[2m", "bold": "\033[1m", "key": "\033[36m",
         "debug": "\033[2m", "info": "\033[32m", "warning": "\033[33m", "error": "\033[31m"}
_PLAIN = dict.fromkeys(_ANSI, "")


def _show(value: object) -> str:
    match value:
        case str(): return f'"{value}"'
        case bool(): return "true" if value else "false"
        case int() | float(): return str(value)
        case dict() | list() | tuple(): return f"<{type(value).__name__} of {len(value)}>"
        case _: return repr(value)


@dataclass(slots=True)
class ConsoleRenderer:
    """One line per entry: ``HH:MM:SS.mmm [level] event key=value ...``, colored on a TTY."""

    output: TextIO = field(default_factory=lambda: sys.stderr)

    def render(self, entry: LogEntry) -> None:
        tty = getattr(self.output, "isatty", lambda: False)()
        c = _ANSI if tty else _PLAIN
        trace = entry.context.get("exc_info")
        fields = " ".join(f"{c['key']}{k}{c['reset']}={_show(v)}"
                          for k, v in sorted(entry.context.items()) if k != "exc_info")
        stamp = entry.moment.strftime("%H:%M:%S.%f")[:-3]
        line = f"{c['dim']}{stamp}{c['reset']} {c[entry.level]}[{entry.level}]{c['reset']} {c['bold']}{entry.event}{c['reset']}"
        self.output.write(f"{line} {fields}\n" if fields else f"{line}\n")
        if trace:
            self.output.write(f"{c['error']}{trace}{c['reset']}\n")


@dataclass(slots=True)
class JsonRenderer:
    """JSON Lines, one object per entry."""

    output: TextIO = field(default_factory=lambda: sys.stderr)

    def render(self, entry: LogEntry) -> None:
        record = {"timestamp": entry.moment.isoformat(), "level": entry.level, "event": entry.event, **entry.context}
        self.output.write(orjson.dumps(record, option=orjson.OPT_NON_STR_KEYS, default=str).decode() + "\n")


class NoOpRenderer:
    def render(self, entry: LogEntry) -> None:
        return None


@dataclass(slots=True)
class CapturingRenderer:
    """Keeps entries in memory for assertions."""

    entries: list[LogEntry] = field(default_factory=list)

    def render(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    def events(self, level: str | None = None) -> list[str]:
        return [e.event for e in self.entries if level in (None, e.level)]


_active_renderer: ContextVar[LogRenderer | None] = ContextVar("flowmcp_log_renderer", default=None)
_threshold: ContextVar[int] = ContextVar("flowmcp_log_threshold", default=logging.WARNING)


# ─────────────────────────────────────────────────────────────────────────────
# Logger
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class BoundLogger:
    """Logger carrying a fixed context; ``bind`` returns a copy with more of it.

    Example:
        >>> log = get_logger("cache").bind(key="demo/demo/ping")
        >>> log.debug("cache entry stored", ttl=300)
        # => 10:30:45.120 [debug] cache entry stored key="demo/demo/ping" logger="cache" ttl=300
    """

    context: JsonDict = field(default_factory=dict)

    def bind(self, **kw: JsonValue) -> BoundLogger:
        return BoundLogger({**self.context, **kw})

    def _emit(self, level: int, event: str, kw: JsonDict) -> None:
        if level < _threshold.get():
            return
        renderer = _active_renderer.get()
        if renderer is None:
            renderer = ConsoleRenderer()
            _active_renderer.set(renderer)
        renderer.render(LogEntry(time.time(), logging.getLevelName(level).lower(), event, {**self.context, **kw}))

    def debug(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.DEBUG, event, kw)

    def info(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.INFO, event, kw)

    def warning(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.WARNING, event, kw)

    def exception(self, event: str, **kw: JsonValue) -> None:
        """Error-level entry with the current traceback attached as ``exc_info``."""
        self._emit(logging.ERROR, event, {**kw, "exc_info": traceback.format_exc()})


def _threshold_of(level: str, fallback: int) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else fallback


def configure_logging(format: str = "console", level: str = "WARNING") -> LogRenderer:  # noqa: A002
    """Install the renderer for ``format`` ("console", "json" or "none") at ``level``."""
    renderers: dict[str, type[LogRenderer]] = {"console": ConsoleRenderer, "json": JsonRenderer, "none": NoOpRenderer}
    if format not in renderers:
        raise ValueError(f"Unknown log format {format!r}; expected one of: {', '.join(renderers)}")
    return use_renderer(renderers[format](), level, fallback=logging.WARNING)


def use_renderer(renderer: LogRenderer, level: str = "DEBUG", *, fallback: int = logging.DEBUG) -> LogRenderer:
    """Install ``renderer`` directly, e.g. a CapturingRenderer in tests."""
    _threshold.set(_threshold_of(level, fallback))
    _active_renderer.set(renderer)
    return renderer


def get_logger(name: str | None = None) -> BoundLogger:
    """Logger whose context carries ``logger=name``."""
    return BoundLogger({"logger": name} if name else {})
