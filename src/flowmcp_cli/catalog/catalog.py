"""Enumeration of schema sources and their files.

Sources are the directories under ``{home}/schemas``. A source's registry
manifest (``_registry.json``, else ``flowmcp-registry.json``) is authoritative
for the files it contains; without one the source directory is scanned
recursively, skipping every entry whose name starts with ``_`` (internal helper
and shared-list modules).

Example:
    >>> catalog = SchemaCatalog(settings, ConfigStore(settings))
    >>> [s.name for s in catalog.list_sources()]
    ['demo', 'github-mcp']
    >>> catalog.load_ref("demo/ping.py").namespace
    'demo'
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from flowmcp_cli.foundation.config import REGISTRY_FILE_NAMES, SCHEMA_SUFFIX, ConfigStore, FlowmcpSettings, read_json
from flowmcp_cli.foundation.config.models import SourceType
from flowmcp_cli.foundation.errors import Err, ErrorCode, FlowError, Ok, Result
from flowmcp_cli.observability import get_logger

from .loader import LoadedSchema, load_schema

log = get_logger("catalog")


# ═══════════════════════════════════════════════════════════════════════════════
# Models
# ═══════════════════════════════════════════════════════════════════════════════


class RegistryEntry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    file: str = Field(min_length=1)
    namespace: str = ""
    name: str = ""
    required_server_params: tuple[str, ...] = Field(default=(), alias="requiredServerParams")
    shared: tuple[str, ...] = ()


class SharedEntry(BaseModel):
    """Alias list module (for example country codes) referenced by some schemas of the source."""

    model_config = ConfigDict(frozen=True, extra="allow")

    file: str = Field(min_length=1)


class RegistryManifest(BaseModel):
    """Manifest written by the import collaborator next to a source's schema files."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    name: str = ""
    version: str = ""
    schema_spec: str = Field(default="", alias="schemaSpec")
    schemas: tuple[RegistryEntry, ...]
    shared: tuple[SharedEntry, ...] = ()


class SchemaInfo(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ref: str
    file: str
    namespace: str
    name: str
    required_server_params: tuple[str, ...] = Field(default=(), serialization_alias="requiredServerParams")


class SourceEntry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    type: SourceType = "builtin"
    repository: str | None = None
    schemas: tuple[SchemaInfo, ...] = ()

    @property
    def schema_count(self) -> int:
        return len(self.schemas)

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "type": self.type,
            "repository": self.repository,
            "schemaCount": self.schema_count,
            "schemas": [s.model_dump(mode="json", by_alias=True) for s in self.schemas],
        }


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


def list_schema_files(directory: Path, prefix: str = "") -> list[str]:
    """Schema files below a directory as ``/``-joined relative paths, sorted per directory level."""
    files: list[str] = []
    for entry in sorted(directory.iterdir(), key=lambda p: p.name):
        if entry.name.startswith("_"):
            continue
        rel = f"{prefix}/{entry.name}" if prefix else entry.name
        if entry.is_dir():
            files += list_schema_files(entry, rel)
        elif entry.suffix == SCHEMA_SUFFIX:
            files.append(rel)
    return files


class SchemaCatalog:
    """Pure lookup over the on-disk schema sources. Caches nothing between calls."""

    __slots__ = ("_settings", "_store")

    def __init__(self, settings: FlowmcpSettings, store: ConfigStore) -> None:
        self._settings = settings
        self._store = store

    @property
    def root(self) -> Path:
        return self._settings.schemas_dir

    def source_names(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_dir())

    def registry(self, source: str) -> RegistryManifest | None:
        """The source's manifest; a malformed one counts as absent."""
        for name in REGISTRY_FILE_NAMES:
            if (raw := read_json(self.root / source / name)) is None:
                continue
            try:
                return RegistryManifest.model_validate(raw)
            except ValidationError:
                log.debug("registry manifest malformed", source=source, file=name)
        return None

    def list_sources(self) -> list[SourceEntry]:
        config = self._store.load_global()
        configured = config.sources if config is not None else {}
        sources = []
        for name in self.source_names():
            meta = configured.get(name)
            sources.append(SourceEntry(
                name=name,
                type=meta.type if meta else "builtin",
                repository=meta.repository if meta else None,
                schemas=tuple(self._schema_infos(name)),
            ))
        return sources

    def _schema_infos(self, source: str) -> list[SchemaInfo]:
        if (manifest := self.registry(source)) is not None:
            return [
                SchemaInfo(ref=f"{source}/{e.file}", file=e.file, namespace=e.namespace, name=e.name,
                           required_server_params=e.required_server_params)
                for e in manifest.schemas
            ]
        return [
            SchemaInfo(ref=f"{source}/{f}", file=f, namespace=source, name=f)
            for f in list_schema_files(self.root / source)
        ]

    # ─────────────────────────────────────────────────────────────────
    # Loading
    # ─────────────────────────────────────────────────────────────────

    def path_of(self, schema_ref: str) -> Path:
        return self.root / schema_ref

    def load_ref(self, schema_ref: str) -> LoadedSchema:
        """Load ``source/relative/file.py`` from the schemas directory."""
        source, _, file = schema_ref.partition("/")
        return load_schema(self.path_of(schema_ref), file=file, source=source,
                           source_root=(self.root / source).resolve())

    def load_all(self) -> list[LoadedSchema]:
        """Every schema of every source, in source then manifest order."""
        return [self.load_ref(info.ref) for source in self.list_sources() for info in source.schemas]

    def load_from_path(self, schema_path: str | Path) -> Result[list[LoadedSchema], FlowError]:
        """Load one file, or every schema file directly inside a directory (sorted)."""
        path = Path(schema_path).expanduser().resolve()
        if path.is_file():
            schema = load_schema(path)
            if not schema.loaded:
                return Err(FlowError.create(schema.load_error or "", ErrorCode.NOT_FOUND))
            return Ok([schema])
        if path.is_dir():
            files = sorted(p for p in path.iterdir() if p.is_file() and p.suffix == SCHEMA_SUFFIX
                           and not p.name.startswith("_"))
            if not files:
                return Err(FlowError.create(f"No schema files ({SCHEMA_SUFFIX}) found in: {schema_path}",
                                            ErrorCode.NOT_FOUND))
            return Ok([load_schema(p) for p in files])
        return Err(FlowError.create(f"Path not found: {schema_path}", ErrorCode.NOT_FOUND))
