"""On-disk response cache for routes marked ``preload.enabled``.

One JSON file per key under the cache root::

    {cache_root}/{source}/{namespace}/{route}.json              # no user params
    {cache_root}/{source}/{namespace}/{route}/{paramHash}.json  # with user params

``paramHash`` is the first 12 hex chars of the md5 of the key-sorted JSON of
the parameters, so argument order never changes the key. An entry is valid
while ``now < expiresAt``. Expired entries are ignored on read but stay on
disk; there is no capacity-based eviction. Unreadable entries count as absent.

Example:
    >>> cache = FileCache(settings.cache_dir)
    >>> key = cache.make_key("demo", "demo", "ping", {})
    >>> cache.store(key, {"ok": True}, ttl=300).meta.ttl
    300
    >>> cache.lookup(key).data
    {'ok': True}
"""

from __future__ import annotations

import hashlib
import shutil
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Callable

import orjson
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, NonNegativeInt, ValidationError

from flowmcp_cli.catalog import NAMESPACE_PATTERN
from flowmcp_cli.foundation.errors import ErrorCode, FlowException, JsonDict
from flowmcp_cli.observability import get_logger

log = get_logger("runtime.cache")

CACHE_SUFFIX = ".json"
HASH_LENGTH = 12

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_iso(moment: datetime) -> str:
    """``2024-01-01T00:00:00.000Z`` form used in cache entries."""
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CacheMeta(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    fetched_at: AwareDatetime = Field(alias="fetchedAt")
    expires_at: AwareDatetime = Field(alias="expiresAt")
    ttl: NonNegativeInt
    size: NonNegativeInt = 0


class CacheEntry(BaseModel):
    """Stored response with its freshness metadata."""

    model_config = ConfigDict(frozen=True)

    meta: CacheMeta
    data: Any = None

    def expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) >= self.meta.expires_at

    def to_json(self) -> JsonDict:
        return {
            "meta": {
                "fetchedAt": to_iso(self.meta.fetched_at),
                "expiresAt": to_iso(self.meta.expires_at),
                "ttl": self.meta.ttl,
                "size": self.meta.size,
            },
            "data": self.data,
        }


def param_hash(params: dict[str, Any]) -> str:
    """Stable short hash of a parameter set, independent of key order."""
    encoded = orjson.dumps(params, option=orjson.OPT_SORT_KEYS, default=str)
    return hashlib.md5(encoded, usedforsecurity=False).hexdigest()[:HASH_LENGTH]


class FileCache:
    """TTL cache of JSON documents under a root directory.

    Args:
        root: Cache root (``{home}/cache``)
        clock: Source of the current time, UTC
    """

    __slots__ = ("_root", "_clock")

    def __init__(self, root: Path, clock: Clock = utc_now) -> None:
        self._root = root
        self._clock = clock

    @property
    def root(self) -> Path:
        return self._root

    def now(self) -> datetime:
        return self._clock()

    @staticmethod
    def make_key(source: str, namespace: str, route_name: str, params: dict[str, Any] | None = None) -> str:
        """Relative key path. The hash segment is present only when params were supplied."""
        base = f"{source}/{namespace}/{route_name}"
        return f"{base}/{param_hash(params)}" if params else base

    def path_for(self, key: str) -> Path:
        return self._root / f"{key}{CACHE_SUFFIX}"

    # ─────────────────────────────────────────────────────────────────
    # Read / write
    # ─────────────────────────────────────────────────────────────────

    def read(self, key: str) -> CacheEntry | None:
        """Entry at ``key`` whether fresh or not. Missing and corrupt files yield None."""
        path = self.path_for(key)
        try:
            return CacheEntry.model_validate(orjson.loads(path.read_bytes()))
        except FileNotFoundError:
            return None
        except (OSError, orjson.JSONDecodeError, ValidationError) as e:
            log.debug("cache entry unreadable", key=key, code=ErrorCode.CACHE_CORRUPT.value, error=str(e))
            return None

    def lookup(self, key: str) -> CacheEntry | None:
        """Fresh entry at ``key``, or None."""
        entry = self.read(key)
        if entry is None or entry.expired(self.now()):
            return None
        return entry

    def store(self, key: str, data: Any, ttl: int) -> CacheEntry:
        """Write (or overwrite) an entry with ``expiresAt = now + ttl``."""
        fetched = self.now()
        payload = orjson.dumps(data, option=orjson.OPT_NON_STR_KEYS, default=str)
        entry = CacheEntry(meta=CacheMeta(fetched_at=fetched, expires_at=fetched + timedelta(seconds=ttl),
                                          ttl=ttl, size=len(payload)), data=orjson.loads(payload))
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(orjson.dumps(entry.to_json(), option=orjson.OPT_INDENT_2))
        log.debug("cache entry stored", key=key, ttl=ttl)
        return entry

    # ─────────────────────────────────────────────────────────────────
    # Administration
    # ─────────────────────────────────────────────────────────────────

    def status(self) -> JsonDict:
        """Every readable entry with its freshness, plus totals."""
        entries: list[JsonDict] = []
        if self._root.is_dir():
            now = self.now()
            for path in sorted(self._root.rglob(f"*{CACHE_SUFFIX}")):
                key = path.relative_to(self._root).with_suffix("").as_posix()
                if (entry := self.read(key)) is None:
                    continue
                entries.append({
                    "key": key,
                    "ttl": entry.meta.ttl,
                    "size": entry.meta.size,
                    "fetchedAt": to_iso(entry.meta.fetched_at),
                    "expiresAt": to_iso(entry.meta.expires_at),
                    "expired": entry.expired(now),
                })
        return {
            "status": True,
            "cacheDir": str(self._root),
            "totalEntries": len(entries),
            "totalSize": sum(e["size"] for e in entries),
            "entries": entries,
        }

    def clear(self, namespace: str | None = None) -> JsonDict:
        """Remove every entry, or the entries of one namespace. Nothing to remove is not an error.

        Raises:
            FlowException: INVALID_INPUT when ``namespace`` is not a schema namespace
        """
        if namespace is None:
            if self._root.is_dir():
                shutil.rmtree(self._root)
            return {"status": True, "message": "All cache cleared."}
        if not NAMESPACE_PATTERN.match(namespace):
            raise FlowException.create(
                f'Invalid namespace "{namespace}".',
                ErrorCode.INVALID_INPUT,
                fix="Use a schema namespace: letters and digits, starting with a letter.",
            )
        targets = [self._root / namespace] + (
            [d / namespace for d in self._root.iterdir() if d.is_dir()] if self._root.is_dir() else []
        )
        removed = 0
        for target in targets:
            if target.is_dir():
                shutil.rmtree(target)
                removed += 1
        log.debug("cache cleared", namespace=namespace, directories=removed)
        return {"status": True, "message": f'Cache cleared for namespace "{namespace}".'}
