"""Synchronization core for file-backed content repositories.

This package provides:
- Classification of repository paths into entry, asset and config files
- A commit-hash gated, content-addressed file cache
- YAML/TOML/JSON codecs with front matter variants
- Reconciliation of per-locale files into logical entries, and back
- Change set building for single atomic commits
"""

from __future__ import annotations

from cms_sync.cache import SyncCache, SyncSnapshot
from cms_sync.changes import AssetEdit, ChangeSetBuilder, EntryEdit, create_commit_message
from cms_sync.classifier import PathClassifier, classify, get_asset_kind
from cms_sync.config import BackendConfig, CollectionConfig, SiteConfig
from cms_sync.exceptions import (
    CmsSyncError,
    ConfigError,
    DecodeError,
    EncodeError,
    FileError,
    ReconciliationError,
    TransportError,
)
from cms_sync.i18n import I18nConfig, normalize_i18n_config
from cms_sync.log import configure_logging, get_logger
from cms_sync.manager import SyncManager
from cms_sync.models import (
    Asset,
    ChangeAction,
    ChangeOp,
    ChangeSet,
    CommitKind,
    CommitResult,
    Entry,
    FileKind,
    FileList,
    LastCommit,
    LocalizedRecord,
    RepositoryFile,
    SyncResult,
)
from cms_sync.paths import PathResolver
from cms_sync.reconciler import LocaleReconciler
from cms_sync.store import JsonFileStore, KeyValueStore, MemoryStore
from cms_sync.transports import FileSystemTransport, LocalGitTransport, RepositoryTransport

__all__ = [
    # Models
    "Asset",
    # Changes
    "AssetEdit",
    # Config
    "BackendConfig",
    "ChangeAction",
    "ChangeOp",
    "ChangeSet",
    "ChangeSetBuilder",
    # Exceptions
    "CmsSyncError",
    "CollectionConfig",
    "CommitKind",
    "CommitResult",
    "ConfigError",
    "DecodeError",
    "EncodeError",
    "Entry",
    "EntryEdit",
    "FileError",
    "FileKind",
    "FileList",
    # Transports
    "FileSystemTransport",
    # Paths
    "I18nConfig",
    # Store
    "JsonFileStore",
    "KeyValueStore",
    "LastCommit",
    "LocalGitTransport",
    "LocaleReconciler",
    "LocalizedRecord",
    "MemoryStore",
    "PathClassifier",
    "PathResolver",
    "ReconciliationError",
    "RepositoryFile",
    "RepositoryTransport",
    "SiteConfig",
    # Core
    "SyncCache",
    "SyncManager",
    "SyncResult",
    "SyncSnapshot",
    "TransportError",
    "classify",
    # Logging
    "configure_logging",
    "create_commit_message",
    "get_asset_kind",
    "get_logger",
    "normalize_i18n_config",
]
