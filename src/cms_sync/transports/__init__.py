"""Repository transports."""

from __future__ import annotations

from cms_sync.transports.filesystem import FileSystemTransport, git_blob_hash
from cms_sync.transports.git import GitError, GitRepo, LocalGitTransport
from cms_sync.transports.protocol import RepositoryTransport


__all__ = [
    "FileSystemTransport",
    "GitError",
    "GitRepo",
    "LocalGitTransport",
    "RepositoryTransport",
    "git_blob_hash",
]
