"""Commit-hash gated, content-addressed cache of repository files."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from itertools import batched
from typing import TYPE_CHECKING, Any

from cms_sync.exceptions import TransportError
from cms_sync.log import get_logger
from cms_sync.models import (
    CacheRecord,
    ChangeAction,
    FileKind,
    FileList,
    LastCommit,
    RepositoryFile,
)
from cms_sync.store import FILE_CACHE_BUCKET, META_BUCKET


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Collection, Sequence

    from cms_sync.classifier import PathClassifier
    from cms_sync.models import ChangeOp, ClassifiedFile, CommitResult, FileContents
    from cms_sync.store import KeyValueStore
    from cms_sync.transports import RepositoryTransport


logger = get_logger(__name__)

LAST_COMMIT_HASH = "last_commit_hash"
CONFIG_FILES_FETCHED = "config_files_fetched"


@dataclass
class SyncSnapshot:
    """Classified files with their content, as of the last commit."""

    file_list: FileList
    last_commit: LastCommit
    published: bool = True
    """False when the last commit carries the skip marker (not deployed)."""

    listing_skipped: bool = False
    """Whether the file list was rebuilt from the cache."""

    fetched_paths: list[str] = field(default_factory=list)
    """Paths whose content had to be fetched."""


async def call_transport[T](
    operation: str,
    fn: Callable[..., Awaitable[T]],
    *args: Any,
) -> T:
    try:
        return await fn(*args)
    except TransportError:
        raise
    except Exception as e:
        msg = f"{operation} failed: {e}"
        raise TransportError(operation, msg) from e


class SyncCache:
    """Keeps repository file contents in a persistent store.

    The file listing is skipped when the head commit did not move since the last
    pass. Per-file content is only refetched when the file hash changed.
    """

    def __init__(
        self,
        store: KeyValueStore,
        classifier: PathClassifier,
        *,
        skip_ci_marker: str = "[skip ci]",
        max_concurrency: int = 4,
        batch_size: int = 50,
    ) -> None:
        self.store = store
        self.classifier = classifier
        self.skip_ci_marker = skip_ci_marker
        self.max_concurrency = max_concurrency
        self.batch_size = batch_size

    async def load_records(self) -> dict[str, CacheRecord]:
        """Get all cached file records, keyed by path."""
        data = await self.store.get_all(FILE_CACHE_BUCKET)
        return {path: CacheRecord.from_dict(record) for path, record in data.items()}

    async def get_record(self, path: str) -> CacheRecord | None:
        data = await self.store.get(FILE_CACHE_BUCKET, path)
        return CacheRecord.from_dict(data) if data else None

    async def sync(self, transport: RepositoryTransport) -> SyncSnapshot:
        """Bring the cache up to date with the repository head.

        Nothing is persisted unless every transport call succeeded.

        Raises:
            TransportError: If listing files, reading the last commit or fetching
                contents failed
        """
        last_commit = await call_transport("fetch_last_commit", transport.fetch_last_commit)
        meta = await self.store.get_all(META_BUCKET)
        cached = await self.load_records()
        unchanged = (
            meta.get(LAST_COMMIT_HASH) == last_commit.hash
            and bool(meta.get(CONFIG_FILES_FETCHED))
            and bool(cached)
        )
        if unchanged:
            files = [
                RepositoryFile(path, rec.sha, rec.size, rec.text, rec.meta)
                for path, rec in cached.items()
            ]
        else:
            files = await call_transport(
                "fetch_file_list", transport.fetch_file_list, last_commit.hash
            )
        file_list = self.classifier.classify(files)

        restored: dict[str, ClassifiedFile] = {}
        fetching: list[ClassifiedFile] = []
        for classified in file_list.all_files:
            record = cached.get(classified.path)
            if record is not None and record.sha == classified.sha:
                restored[classified.path] = classified.with_file(
                    RepositoryFile(
                        classified.path,
                        classified.sha,
                        record.size if record.size is not None else classified.file.size,
                        record.text,
                        record.meta,
                    )
                )
            else:
                fetching.append(classified)

        contents = await self._fetch_contents(transport, [f.file for f in fetching])
        fetched: dict[str, ClassifiedFile] = {}
        new_records: dict[str, Any] = {}
        missing: list[str] = []
        for classified in fetching:
            content = contents.get(classified.path)
            if content is None:
                # not cached, so the next pass fetches it again
                missing.append(classified.path)
                fetched[classified.path] = classified
                continue
            text = None if classified.kind is FileKind.ASSET else content.text
            size = content.size if content.size is not None else classified.file.size
            meta = dict(content.meta)
            file = RepositoryFile(classified.path, classified.sha, size, text, meta)
            fetched[classified.path] = classified.with_file(file)
            new_records[classified.path] = CacheRecord(classified.sha, size, text, meta).to_dict()
        if missing:
            logger.warning("Transport returned no content", paths=missing)

        # persist: file cache first, then meta
        live_paths = {f.path for f in file_list.all_files}
        stale = [path for path in cached if path not in live_paths]
        await self.store.set_many(FILE_CACHE_BUCKET, new_records)
        await self.store.delete_many(FILE_CACHE_BUCKET, stale)
        if missing:
            # the listing must not be skipped while files are absent from the cache
            await self.store.delete_many(META_BUCKET, [LAST_COMMIT_HASH])
            await self.store.set_many(META_BUCKET, {CONFIG_FILES_FETCHED: True})
        else:
            await self.store.set_many(
                META_BUCKET, {LAST_COMMIT_HASH: last_commit.hash, CONFIG_FILES_FETCHED: True}
            )
        logger.info(
            "Synchronized file cache",
            commit=last_commit.hash,
            listing_skipped=unchanged,
            restored=len(restored),
            fetched=len(fetched),
            removed=len(stale),
        )

        def resolve(files: list[ClassifiedFile]) -> list[ClassifiedFile]:
            return [restored.get(f.path) or fetched[f.path] for f in files]

        result = FileList(
            entry_files=resolve(file_list.entry_files),
            asset_files=resolve(file_list.asset_files),
            config_files=resolve(file_list.config_files),
        )
        return SyncSnapshot(
            file_list=result,
            last_commit=last_commit,
            published=not last_commit.message.startswith(self.skip_ci_marker),
            listing_skipped=unchanged,
            fetched_paths=list(fetched),
        )

    async def _fetch_contents(
        self,
        transport: RepositoryTransport,
        files: Sequence[RepositoryFile],
    ) -> dict[str, FileContents]:
        """Fetch contents in bounded concurrent batches. All batches must succeed."""
        if not files:
            return {}
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def fetch_batch(batch: Sequence[RepositoryFile]) -> dict[str, FileContents]:
            async with semaphore:
                return await call_transport(
                    "fetch_file_contents", transport.fetch_file_contents, list(batch)
                )

        tasks = [
            asyncio.create_task(fetch_batch(batch)) for batch in batched(files, self.batch_size)
        ]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            # the first failure aborts the pass, siblings included
            for task in tasks:
                task.cancel()
            raise
        merged: dict[str, FileContents] = {}
        for result in results:
            merged.update(result)
        return merged

    async def record_commit(
        self,
        changes: Sequence[ChangeOp],
        result: CommitResult,
        *,
        text_paths: Collection[str] = (),
    ) -> None:
        """Update per-path records after a successful commit.

        Written paths get their new hash, so the next pass restores them without
        fetching. Deleted and moved-away paths are dropped.
        """
        records: dict[str, Any] = {}
        removed: list[str] = []
        for change in changes:
            if change.action is ChangeAction.DELETE:
                removed.append(change.path)
                continue
            if change.action is ChangeAction.MOVE and change.previous_path:
                removed.append(change.previous_path)
            sha = result.file_hashes.get(change.path)
            data = change.data or b""
            if sha is None:
                # unknown hash, force a refetch next time
                removed.append(change.path)
                continue
            text = data.decode() if change.path in text_paths else None
            records[change.path] = CacheRecord(sha, len(data), text, {}).to_dict()
        removed = [path for path in removed if path not in records]
        await self.store.set_many(FILE_CACHE_BUCKET, records)
        await self.store.delete_many(FILE_CACHE_BUCKET, removed)
        logger.debug(
            "Recorded commit in file cache",
            commit=result.hash,
            updated=len(records),
            removed=len(removed),
        )
