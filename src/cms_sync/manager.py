"""Main orchestrator for sync and commit passes."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, ClassVar, Self
import weakref

from cms_sync.cache import SyncCache, call_transport
from cms_sync.changes import ChangeSetBuilder
from cms_sync.classifier import PathClassifier, get_asset_kind
from cms_sync.config import SiteConfig
from cms_sync.log import get_logger
from cms_sync.models import Asset, AssetFolder, CommitKind, SyncResult
from cms_sync.paths import PathResolver
from cms_sync.reconciler import LocaleReconciler
from cms_sync.store import JsonFileStore, MemoryStore


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence
    import os

    from cms_sync.changes import AssetEdit, EntryEdit
    from cms_sync.models import ClassifiedFile, CommitResult
    from cms_sync.store import KeyValueStore
    from cms_sync.transports import RepositoryTransport

    ResultHandler = Callable[[SyncResult], Awaitable[None]]


logger = get_logger(__name__)


def _build_asset(file: ClassifiedFile) -> Asset:
    folder = file.folder if isinstance(file.folder, AssetFolder) else None
    return Asset(
        path=file.path,
        name=file.name,
        sha=file.sha,
        size=file.file.size,
        kind=get_asset_kind(file.name),
        collection_name=folder.collection_name if folder else None,
        meta=dict(file.file.meta),
    )


class SyncManager:
    """Orchestrates sync and commit passes for one repository.

    Sync and commit passes on the same repository identity never overlap; they
    share one lock per identity and event loop, even across manager instances.
    """

    _locks: ClassVar[
        weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[str, asyncio.Lock]]
    ] = weakref.WeakKeyDictionary()

    def __init__(
        self,
        site: SiteConfig,
        transport: RepositoryTransport,
        store: KeyValueStore | None = None,
    ):
        """Initialize the sync manager.

        Args:
            site: Site configuration
            transport: Access to the repository
            store: Persistent store (default: derived from ``site.sync.cache_dir``)
        """
        self.site = site
        self.transport = transport
        self.repository_id = site.backend.repository_id
        if store is None:
            cache_dir = site.sync.cache_dir
            store = (
                JsonFileStore(cache_dir, self.repository_id)
                if cache_dir
                else MemoryStore(self.repository_id)
            )
        self.store = store
        self.resolver = PathResolver(site)
        self.classifier = PathClassifier(site, self.resolver)
        self.cache = SyncCache(
            store,
            self.classifier,
            skip_ci_marker=site.backend.skip_ci_marker,
            max_concurrency=site.sync.max_concurrency,
            batch_size=site.sync.batch_size,
        )
        self.reconciler = LocaleReconciler(self.resolver)
        self.builder = ChangeSetBuilder(site, self.reconciler)
        self.result: SyncResult | None = None
        self._handlers: list[ResultHandler] = []

    @classmethod
    def from_file(
        cls,
        path: str | os.PathLike[str],
        transport: RepositoryTransport,
        store: KeyValueStore | None = None,
    ) -> Self:
        """Create a manager from a YAML site configuration file."""
        return cls(SiteConfig.from_file(path), transport, store)

    @property
    def lock(self) -> asyncio.Lock:
        """Lock of this repository on the running event loop."""
        locks = self._locks.setdefault(asyncio.get_running_loop(), {})
        return locks.setdefault(self.repository_id, asyncio.Lock())

    def register_handler(self, handler: ResultHandler) -> None:
        """Register a callback receiving every published sync result."""
        self._handlers.append(handler)

    async def run_sync(self) -> SyncResult:
        """Run a full sync pass and publish its result.

        Entry files that cannot be decoded or merged are reported in
        ``SyncResult.errors``; the pass still completes.

        Raises:
            TransportError: If the repository could not be read
        """
        async with self.lock:
            snapshot = await self.cache.sync(self.transport)
            files = snapshot.file_list
            reconciled = self.reconciler.assemble(files.entry_files)
            result = SyncResult(
                entries=reconciled.entries,
                assets=[_build_asset(file) for file in files.asset_files],
                config_files=list(files.config_files),
                errors=list(reconciled.errors),
                last_commit=snapshot.last_commit,
                last_commit_published=snapshot.published,
            )
            self.result = result
            logger.info(
                "Sync finished",
                repository=self.repository_id,
                entries=len(result.entries),
                assets=len(result.assets),
                errors=len(result.errors),
            )
        for handler in self._handlers:
            await handler(result)
        return result

    async def run_commit(
        self,
        entry_edits: Sequence[EntryEdit] = (),
        asset_edits: Sequence[AssetEdit] = (),
        commit_kind: CommitKind = CommitKind.UPDATE,
    ) -> CommitResult:
        """Commit edits and update the cache with the returned file hashes.

        Raises:
            EncodeError: If any content cannot be serialized; nothing is committed
            TransportError: If the commit failed; the cache is left untouched
        """
        async with self.lock:
            records = await self.cache.load_records()
            changeset = self.builder.build(entry_edits, asset_edits, commit_kind, records=records)
            result = await call_transport(
                "commit", self.transport.commit, changeset.changes, changeset.message
            )
            await self.cache.record_commit(
                changeset.changes, result, text_paths=changeset.text_paths
            )
            logger.info(
                "Commit finished",
                repository=self.repository_id,
                commit=result.hash,
                changes=len(changeset.changes),
            )
            return result
