"""Transport for a plain directory, without version control."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
import hashlib
from pathlib import Path
from typing import TYPE_CHECKING

from cms_sync.log import get_logger
from cms_sync.models import ChangeAction, CommitResult, FileContents, LastCommit, RepositoryFile


if TYPE_CHECKING:
    from collections.abc import Sequence

    from cms_sync.models import ChangeOp


logger = get_logger(__name__)

IGNORED_DIRS = frozenset({".git", "node_modules"})


def git_blob_hash(data: bytes) -> str:
    """Hash data the way git hashes blobs, so hashes match a git checkout."""
    return hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()


class FileSystemTransport:
    """Repository transport reading and writing a directory directly.

    The last commit hash is derived from all file hashes, so it only changes
    when some file changed.
    """

    def __init__(self, root: Path | str):
        self.root = Path(root).resolve()

    def _scan(self) -> list[RepositoryFile]:
        files = []
        for path in sorted(self.root.rglob("*")):
            relative = path.relative_to(self.root)
            if not path.is_file() or IGNORED_DIRS.intersection(relative.parts[:-1]):
                continue
            data = path.read_bytes()
            files.append(RepositoryFile(relative.as_posix(), git_blob_hash(data), len(data)))
        return files

    async def fetch_last_commit(self) -> LastCommit:
        files = await asyncio.to_thread(self._scan)
        digest = hashlib.sha1()
        for file in files:
            digest.update(f"{file.path}\0{file.sha}\n".encode())
        return LastCommit(digest.hexdigest())

    async def fetch_file_list(self, last_hash: str) -> list[RepositoryFile]:
        return await asyncio.to_thread(self._scan)

    async def fetch_file_contents(
        self,
        files: Sequence[RepositoryFile],
    ) -> dict[str, FileContents]:
        def read(file: RepositoryFile) -> FileContents:
            path = self.root / file.path
            data = path.read_bytes()
            try:
                text: str | None = data.decode()
            except UnicodeDecodeError:
                text = None
            modified = datetime.fromtimestamp(path.stat().st_mtime, tz=UTC)
            return FileContents(text, len(data), {"commit_date": modified.isoformat()})

        return {file.path: await asyncio.to_thread(read, file) for file in files}

    async def commit(self, changes: Sequence[ChangeOp], message: str) -> CommitResult:
        def apply() -> dict[str, str]:
            hashes = {}
            for change in changes:
                target = self.root / change.path
                if change.action is ChangeAction.DELETE:
                    target.unlink(missing_ok=True)
                    continue
                if change.action is ChangeAction.MOVE and change.previous_path:
                    (self.root / change.previous_path).unlink(missing_ok=True)
                data = change.data or b""
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)
                hashes[change.path] = git_blob_hash(data)
            return hashes

        file_hashes = await asyncio.to_thread(apply)
        last_commit = await self.fetch_last_commit()
        logger.info("Wrote changes", files=len(changes), message=message)
        return CommitResult(last_commit.hash, file_hashes)
