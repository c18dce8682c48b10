"""Core data models shared by the sync and commit paths."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
import posixpath
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from cms_sync.exceptions import FileError


DEFAULT_LOCALE_KEY = "_default"
"""Pseudo-locale used when i18n is disabled for a collection."""


class FileKind(StrEnum):
    """Role a repository file plays for the CMS."""

    ENTRY = "entry"
    ASSET = "asset"
    CONFIG = "config"


class AssetKind(StrEnum):
    """Coarse media type of an asset."""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    OTHER = "other"


class ChangeAction(StrEnum):
    """File-level mutation kind."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    MOVE = "move"


class CommitKind(StrEnum):
    """Kind of user operation a commit represents."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    UPLOAD_MEDIA = "upload_media"
    DELETE_MEDIA = "delete_media"


@dataclass(frozen=True)
class RepositoryFile:
    """One raw file descriptor as returned by a repository listing."""

    path: str
    """Repository-relative path, without leading slash."""

    sha: str
    """Content hash provided by the repository (Git blob SHA)."""

    size: int | None = None
    """File size in bytes, if known."""

    text: str | None = None
    """Text content, once fetched (entry and config files only)."""

    meta: dict[str, Any] = field(default_factory=dict)
    """Commit metadata (author, date, ...) as returned by the transport."""

    @property
    def name(self) -> str:
        """File name without directories."""
        return posixpath.basename(self.path)


@dataclass(frozen=True)
class EntryFolder:
    """Binds an entry file to the collection that claimed it."""

    collection_name: str
    """Name of the matching collection."""

    file_name: str | None = None
    """Collection file name, for file collections."""

    file_path_map: dict[str, str] | None = None
    """Locale -> path map, for file collections."""


@dataclass(frozen=True)
class AssetFolder:
    """A folder assets are stored in."""

    internal_path: str
    """Repository path of the folder, may contain template tags."""

    collection_name: str | None = None
    """Owning collection, ``None`` for the global media folder."""

    entry_relative: bool = False
    """Whether assets are stored next to the entry files."""

    @property
    def has_template_tags(self) -> bool:
        return "{{" in self.internal_path


@dataclass(frozen=True)
class ClassifiedFile:
    """A repository file together with the rule that claimed it."""

    file: RepositoryFile
    kind: FileKind
    folder: EntryFolder | AssetFolder | None = None

    @property
    def path(self) -> str:
        return self.file.path

    @property
    def name(self) -> str:
        return self.file.name

    @property
    def sha(self) -> str:
        return self.file.sha

    def with_file(self, file: RepositoryFile) -> ClassifiedFile:
        """Return a copy bound to another descriptor of the same path."""
        return ClassifiedFile(file=file, kind=self.kind, folder=self.folder)


@dataclass
class FileList:
    """Result of path classification."""

    entry_files: list[ClassifiedFile] = field(default_factory=list)
    asset_files: list[ClassifiedFile] = field(default_factory=list)
    config_files: list[ClassifiedFile] = field(default_factory=list)

    @property
    def all_files(self) -> list[ClassifiedFile]:
        return [*self.entry_files, *self.asset_files, *self.config_files]

    @property
    def count(self) -> int:
        return len(self.entry_files) + len(self.asset_files) + len(self.config_files)


@dataclass(frozen=True)
class LocalizedRecord:
    """One locale's materialization of a logical entry."""

    locale: str
    slug: str
    path: str
    sha: str
    content: dict[str, Any] = field(default_factory=dict)
    """Flattened content."""


@dataclass(frozen=True)
class Entry:
    """The logical, locale-merged unit of managed content."""

    id: str
    """``<collection>/<slug>`` (or ``<collection>/<file name>`` for file collections)."""

    slug: str
    sha: str
    collection_name: str
    locales: dict[str, LocalizedRecord]
    file_name: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def paths(self) -> list[str]:
        """Distinct file paths backing this entry, in locale order."""
        return list(dict.fromkeys(record.path for record in self.locales.values()))


@dataclass(frozen=True)
class Asset:
    """A non-entry managed file."""

    path: str
    name: str
    sha: str
    size: int | None
    kind: AssetKind
    collection_name: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FileContents:
    """Content and metadata returned by a transport for one file."""

    text: str | None = None
    size: int | None = None
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class CacheRecord:
    """Cached state of one repository path."""

    sha: str
    """Content hash the cached data belongs to."""

    size: int | None = None
    text: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        result: dict[str, Any] = {"sha": self.sha, "meta": self.meta}
        if self.size is not None:
            result["size"] = self.size
        if self.text is not None:
            result["text"] = self.text
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheRecord:
        """Deserialize from dict."""
        return cls(
            sha=data["sha"],
            size=data.get("size"),
            text=data.get("text"),
            meta=data.get("meta") or {},
        )


@dataclass(frozen=True)
class LastCommit:
    """Head commit of the tracked branch."""

    hash: str
    message: str = ""


@dataclass(frozen=True)
class ChangeOp:
    """One file-level mutation of a change set."""

    action: ChangeAction
    path: str
    previous_path: str | None = None
    """Source path, for ``move`` operations."""

    previous_sha: str | None = None
    """Last known hash of the file being replaced, if cached."""

    data: bytes | None = None
    """Resolved file content; ``None`` for deletions."""

    slug: str | None = None


@dataclass(frozen=True)
class ChangeSet:
    """Ordered file operations plus the message for one commit."""

    changes: list[ChangeOp]
    message: str
    text_paths: frozenset[str] = frozenset()
    """Paths holding entry (text) data."""


@dataclass(frozen=True)
class CommitResult:
    """What a transport reports back after committing."""

    hash: str
    file_hashes: dict[str, str] = field(default_factory=dict)
    """Path -> new content hash for every written file."""


@dataclass(frozen=True)
class SyncResult:
    """Everything published by one sync pass."""

    entries: list[Entry]
    assets: list[Asset]
    config_files: list[ClassifiedFile]
    errors: list[FileError]
    last_commit: LastCommit | None = None
    last_commit_published: bool = True
