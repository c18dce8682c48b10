"""Persistent key-value stores backing the sync cache."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import anyenv

from cms_sync.log import get_logger


if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    import os


logger = get_logger(__name__)

META_BUCKET = "meta"
FILE_CACHE_BUCKET = "file-cache"


class KeyValueStore(Protocol):
    """Bucketed key-value storage for one repository namespace."""

    namespace: str
    """Repository identity, e.g. ``github:owner/repo``."""

    async def get(self, bucket: str, key: str) -> Any | None:
        """Get one value, ``None`` if missing."""
        ...

    async def get_all(self, bucket: str) -> dict[str, Any]:
        """Get a snapshot of every key in a bucket."""
        ...

    async def set_many(self, bucket: str, items: Mapping[str, Any]) -> None:
        """Store several values at once."""
        ...

    async def delete_many(self, bucket: str, keys: Iterable[str]) -> None:
        """Remove several keys at once; missing keys are ignored."""
        ...


class MemoryStore:
    """In-process store, state is lost with the instance."""

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace
        self._buckets: dict[str, dict[str, Any]] = {}

    async def get(self, bucket: str, key: str) -> Any | None:
        return self._buckets.get(bucket, {}).get(key)

    async def get_all(self, bucket: str) -> dict[str, Any]:
        return dict(self._buckets.get(bucket, {}))

    async def set_many(self, bucket: str, items: Mapping[str, Any]) -> None:
        self._buckets.setdefault(bucket, {}).update(items)

    async def delete_many(self, bucket: str, keys: Iterable[str]) -> None:
        data = self._buckets.get(bucket, {})
        for key in keys:
            data.pop(key, None)


class JsonFileStore:
    """Store keeping one JSON document per bucket on disk.

    Layout::

        <directory>/<sha256(namespace)[:16]>/meta.json
        <directory>/<sha256(namespace)[:16]>/file-cache.json

    Documents are loaded lazily and rewritten atomically on every mutation.
    """

    def __init__(self, directory: str | os.PathLike[str], namespace: str) -> None:
        self.namespace = namespace
        self.directory = Path(directory) / namespace_key(namespace)
        self._buckets: dict[str, dict[str, Any]] = {}

    def _path(self, bucket: str) -> Path:
        return self.directory / f"{bucket}.json"

    def _load(self, bucket: str) -> dict[str, Any]:
        if bucket in self._buckets:
            return self._buckets[bucket]
        path = self._path(bucket)
        data: dict[str, Any] = {}
        if path.exists():
            try:
                loaded = anyenv.load_json(path.read_text(encoding="utf-8"), return_type=dict)
            except (anyenv.JsonLoadError, TypeError):
                logger.warning("Discarding unreadable cache bucket", path=str(path))
            else:
                data = loaded
        self._buckets[bucket] = data
        return data

    def _save(self, bucket: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(bucket)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(anyenv.dump_json(self._buckets[bucket]), encoding="utf-8")
        tmp.replace(path)

    async def get(self, bucket: str, key: str) -> Any | None:
        return self._load(bucket).get(key)

    async def get_all(self, bucket: str) -> dict[str, Any]:
        return dict(self._load(bucket))

    async def set_many(self, bucket: str, items: Mapping[str, Any]) -> None:
        if not items:
            return
        self._load(bucket).update(items)
        self._save(bucket)

    async def delete_many(self, bucket: str, keys: Iterable[str]) -> None:
        data = self._load(bucket)
        removed = [key for key in keys if data.pop(key, None) is not None]
        if removed:
            self._save(bucket)


def namespace_key(namespace: str) -> str:
    """Filesystem-safe key of a repository namespace."""
    return hashlib.sha256(namespace.encode()).hexdigest()[:16]
