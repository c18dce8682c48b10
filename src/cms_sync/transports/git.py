"""Transport for a local git working copy, driven through the git executable."""

from __future__ import annotations

import asyncio
from pathlib import Path
import subprocess
from typing import TYPE_CHECKING

from cms_sync.exceptions import TransportError
from cms_sync.log import get_logger
from cms_sync.models import ChangeAction, CommitResult, FileContents, LastCommit, RepositoryFile


if TYPE_CHECKING:
    from collections.abc import Sequence

    from cms_sync.models import ChangeOp


logger = get_logger(__name__)


class GitError(TransportError):
    """Git operation failed."""

    def __init__(self, message: str):
        super().__init__("git", message)


class GitRepo:
    """Blocking git repository wrapper."""

    def __init__(self, root: Path | str):
        """Initialize with repository root path.

        Args:
            root: Path to git repository root
        """
        self.root = Path(root).resolve()

    def _run_bytes(self, *args: str) -> bytes:
        try:
            result = subprocess.run(
                ["git", "-C", str(self.root), *args],
                capture_output=True,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            stderr = e.stderr.decode(errors="replace").strip()
            raise GitError(f"Git command failed: {stderr}") from e
        except FileNotFoundError as e:
            raise GitError("Git executable not found") from e
        return result.stdout

    def _run(self, *args: str) -> str:
        """Run a git command and return stdout."""
        return self._run_bytes(*args).decode().strip()

    def get_head_commit(self, ref: str = "HEAD") -> tuple[str, str]:
        """Get hash and full message of the commit ``ref`` points to."""
        output = self._run("log", "-1", "--format=%H%x00%B", ref)
        commit_hash, _, message = output.partition("\0")
        return commit_hash, message.strip()

    def list_tree(self, commit: str, *paths: str) -> dict[str, tuple[str, int | None]]:
        """Get blob hash and size of every file in a tree, keyed by path."""
        args = ["ls-tree", "-r", "-l", "-z", commit]
        if paths:
            args.extend(["--", *paths])
        output = self._run_bytes(*args).decode()
        result: dict[str, tuple[str, int | None]] = {}
        for line in filter(None, output.split("\0")):
            info, _, path = line.partition("\t")
            _mode, kind, sha, size = info.split()
            if kind == "blob":
                result[path] = (sha, int(size) if size.isdigit() else None)
        return result

    def current_branch(self) -> str:
        return self._run("branch", "--show-current")

    def read_blob(self, sha: str) -> bytes:
        return self._run_bytes("cat-file", "blob", sha)

    def get_file_commit(self, path: str, ref: str = "HEAD") -> dict[str, object]:
        """Get author and date of the last commit touching ``path``."""
        output = self._run("log", "-1", "--format=%H%x00%an%x00%ae%x00%aI", ref, "--", path)
        if not output:
            return {}
        commit_hash, name, email, date = output.split("\0")
        return {
            "commit_hash": commit_hash,
            "commit_author": {"name": name, "email": email},
            "commit_date": date,
        }

    def commit(self, changes: Sequence[ChangeOp], message: str) -> str:
        """Write changes into the working tree, stage them and commit."""
        staged: list[str] = []
        for change in changes:
            target = self.root / change.path
            if change.action is ChangeAction.DELETE:
                target.unlink(missing_ok=True)
                staged.append(change.path)
                continue
            if change.action is ChangeAction.MOVE and change.previous_path:
                (self.root / change.previous_path).unlink(missing_ok=True)
                staged.append(change.previous_path)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(change.data or b"")
            staged.append(change.path)
        self._run("add", "-A", "--", *staged)
        self._run("commit", "-m", message)
        return self._run("rev-parse", "HEAD")


class LocalGitTransport:
    """Repository transport for a git working copy on disk.

    Blocking git calls run in worker threads.
    """

    def __init__(self, root: Path | str, branch: str | None = None):
        self.repo = GitRepo(root)
        self.branch = branch

    @property
    def ref(self) -> str:
        return self.branch or "HEAD"

    async def fetch_last_commit(self) -> LastCommit:
        commit_hash, message = await asyncio.to_thread(self.repo.get_head_commit, self.ref)
        return LastCommit(commit_hash, message)

    async def fetch_file_list(self, last_hash: str) -> list[RepositoryFile]:
        tree = await asyncio.to_thread(self.repo.list_tree, last_hash)
        return [RepositoryFile(path, sha, size) for path, (sha, size) in tree.items()]

    async def fetch_file_contents(
        self,
        files: Sequence[RepositoryFile],
    ) -> dict[str, FileContents]:
        def read(file: RepositoryFile) -> FileContents:
            data = self.repo.read_blob(file.sha)
            try:
                text: str | None = data.decode()
            except UnicodeDecodeError:
                text = None
            meta = self.repo.get_file_commit(file.path, self.ref)
            return FileContents(text, len(data), meta)

        contents = await asyncio.gather(*(asyncio.to_thread(read, file) for file in files))
        return {file.path: content for file, content in zip(files, contents, strict=True)}

    async def commit(self, changes: Sequence[ChangeOp], message: str) -> CommitResult:
        if self.branch:
            current = await asyncio.to_thread(self.repo.current_branch)
            if current != self.branch:
                msg = f"Working copy is on {current!r}, not {self.branch!r}"
                raise GitError(msg)
        commit_hash = await asyncio.to_thread(self.repo.commit, changes, message)
        written = [c.path for c in changes if c.action is not ChangeAction.DELETE]
        tree = {}
        if written:
            tree = await asyncio.to_thread(self.repo.list_tree, commit_hash, *written)
        logger.info("Committed changes", commit=commit_hash, files=len(changes))
        return CommitResult(commit_hash, {path: sha for path, (sha, _) in tree.items()})
