"""Contract between the sync core and repository hosts."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable


if TYPE_CHECKING:
    from collections.abc import Sequence

    from cms_sync.models import ChangeOp, CommitResult, FileContents, LastCommit, RepositoryFile


@runtime_checkable
class RepositoryTransport(Protocol):
    """Host-specific access to one repository branch.

    Implementations own request timeouts and retries. Any exception they raise
    aborts the current sync or commit.
    """

    async def fetch_last_commit(self) -> LastCommit:
        """Get the head commit of the tracked branch."""
        ...

    async def fetch_file_list(self, last_hash: str) -> list[RepositoryFile]:
        """List every file of the tree at ``last_hash``."""
        ...

    async def fetch_file_contents(
        self,
        files: Sequence[RepositoryFile],
    ) -> dict[str, FileContents]:
        """Fetch text (for text files), size and commit metadata, keyed by path."""
        ...

    async def commit(self, changes: Sequence[ChangeOp], message: str) -> CommitResult:
        """Apply all changes as one commit."""
        ...
