"""On-demand loading of schema modules.

A schema file is a Python module executed afresh on every load under a unique
module name; it is never registered in ``sys.modules``, so edits and imports
made during a session are always picked up. Any failure to execute the module,
or a module without a ``main`` export, becomes a load error scoped to that file.
"""

from __future__ import annotations

import importlib.util
import uuid
from dataclasses import dataclass, replace
from pathlib import Path
from types import ModuleType
from typing import Any, Callable

from flowmcp_cli.observability import get_logger

from .schema import RouteDefinition, SchemaDefinition, validate_definition

log = get_logger("catalog.loader")

HandlerFactory = Callable[..., Any]


@dataclass(frozen=True, slots=True)
class LoadedSchema:
    """A schema file after loading: its validated definition or the reasons it has none.

    Attributes:
        file: Path relative to the source directory (or the bare file name)
        path: Absolute path of the module
        source: Source name, None for files loaded from an arbitrary path
        source_root: Upper bound when searching for a ``_lists`` directory
        definition: Validated ``main`` export, None when loading or validation failed
        issues: Validation messages for an invalid ``main``
        handlers: Optional ``handlers`` factory exported by the module
        load_error: Why the module could not be loaded at all
    """

    file: str
    path: Path
    source: str | None = None
    source_root: Path | None = None
    main: Any = None
    definition: SchemaDefinition | None = None
    issues: tuple[str, ...] = ()
    handlers: HandlerFactory | None = None
    load_error: str | None = None

    @property
    def ref(self) -> str:
        return f"{self.source}/{self.file}" if self.source else self.file

    @property
    def loaded(self) -> bool:
        return self.load_error is None

    @property
    def valid(self) -> bool:
        return self.definition is not None

    @property
    def namespace(self) -> str:
        if self.definition is not None:
            return self.definition.namespace
        ns = self.main.get("namespace") if isinstance(self.main, dict) else None
        return ns if isinstance(ns, str) and ns else "unknown"

    @property
    def routes(self) -> dict[str, RouteDefinition]:
        return self.definition.routes if self.definition is not None else {}

    @property
    def required_server_params(self) -> tuple[str, ...]:
        if self.definition is not None:
            return self.definition.required_server_params
        params = self.main.get("requiredServerParams") if isinstance(self.main, dict) else None
        return tuple(p for p in params if isinstance(p, str)) if isinstance(params, list | tuple) else ()

    @property
    def messages(self) -> list[str]:
        return [self.load_error] if self.load_error else list(self.issues)

    def with_routes(self, names: list[str]) -> LoadedSchema:
        """Copy restricted to the given routes, in the order the schema declares them."""
        if self.definition is None:
            return self
        routes = {n: r for n, r in self.definition.routes.items() if n in names}
        return replace(self, definition=self.definition.model_copy(update={"routes": routes}))


def load_module(path: Path, prefix: str = "flowmcp_schema") -> ModuleType:
    """Execute a Python file as an anonymous module.

    Raises:
        ImportError: If no loader can be created for the path
        Exception: Whatever the module body raises
    """
    spec = importlib.util.spec_from_file_location(f"{prefix}_{uuid.uuid4().hex}", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot load module from {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def load_schema(path: Path, *, file: str | None = None, source: str | None = None,
                source_root: Path | None = None) -> LoadedSchema:
    """Load one schema file. Never raises; failures are recorded on the result."""
    path = path.resolve()
    base = dict(file=file or path.name, path=path, source=source, source_root=source_root or path.parent)
    try:
        module = load_module(path)
    except Exception as e:  # third-party module body
        log.debug("schema load failed", path=str(path), error=str(e))
        return LoadedSchema(**base, load_error=f"Failed to load schema: {path} - {e}")
    if not hasattr(module, "main"):
        return LoadedSchema(**base, load_error=f'Failed to load schema: {path} - missing "main" export')
    main = module.main
    definition, issues = validate_definition(main)
    handlers = getattr(module, "handlers", None)
    return LoadedSchema(
        **base,
        main=dict(main) if isinstance(main, dict) else main,
        definition=definition,
        issues=issues,
        handlers=handlers if callable(handlers) else None,
    )
