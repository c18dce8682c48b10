"""Classification of repository paths into entry, asset and config files."""

from __future__ import annotations

import mimetypes
import posixpath
import re
from typing import TYPE_CHECKING

from cms_sync.log import get_logger
from cms_sync.models import (
    AssetFolder,
    AssetKind,
    ClassifiedFile,
    EntryFolder,
    FileKind,
    FileList,
)
from cms_sync.paths import PathResolver, strip_slashes


if TYPE_CHECKING:
    from collections.abc import Iterable

    from cms_sync.config import SiteConfig
    from cms_sync.models import RepositoryFile


logger = get_logger(__name__)

GIT_CONFIG_FILE_PATTERN = re.compile(r"^\.git(attributes|ignore|keep)$")
DOC_EXTENSION_PATTERN = re.compile(r"\.(?:csv|docx?|odp|ods|odt|pdf|pptx?|rtf|xslx?)$", re.I)
INDEX_FILE_PATTERN = re.compile(r"^_index\.[^.]+$")
_TEMPLATE_TAG = re.compile(r"{{.+?}}")


def get_asset_kind(name: str) -> AssetKind:
    """Coarse asset kind from the MIME type of a file name."""
    mime, _ = mimetypes.guess_type(name, strict=False)
    match (mime or "").split("/")[0]:
        case "image":
            return AssetKind.IMAGE
        case "video":
            return AssetKind.VIDEO
        case "audio":
            return AssetKind.AUDIO
    if DOC_EXTENSION_PATTERN.search(name):
        return AssetKind.DOCUMENT
    return AssetKind.OTHER


def is_index_file(path: str) -> bool:
    """Whether the path points to a special index file like Hugo's ``_index.md``."""
    return bool(INDEX_FILE_PATTERN.match(posixpath.basename(path)))


def _replace_media_tags(folder: str, global_media_folder: str) -> str:
    return folder.strip().replace("{{media_folder}}", f"/{global_media_folder}").replace("//", "/")


def get_asset_folders(site: SiteConfig) -> list[AssetFolder]:
    """All asset folders of a site, the global media folder first."""
    # "", "/" and "." all denote the repository root
    global_folder = strip_slashes(site.media_folder or "")
    global_folder = "" if global_folder == "." else global_folder
    folders: list[AssetFolder] = []
    for collection in site.collections:
        media_folder = collection.media_folder
        if media_folder is None and collection.path is not None and collection.folder is not None:
            # entries with their own folder store assets next to them
            media_folder = ""
        if media_folder is None:
            continue
        if "{{media_folder}}" in media_folder:
            if site.media_folder is None:
                continue
            media_folder = _replace_media_tags(media_folder, global_folder)
        entry_relative = not media_folder.startswith("/")
        if entry_relative and collection.folder is None:
            continue
        internal = strip_slashes((collection.folder or "") if entry_relative else media_folder)
        if not entry_relative and internal == global_folder:
            continue
        folders.append(AssetFolder(internal, collection.name, entry_relative=entry_relative))
    folders.sort(key=lambda folder: folder.internal_path)
    if site.media_folder is not None:
        folders.insert(0, AssetFolder(global_folder))
    return folders


def _matches_asset_folder(path: str, folder: AssetFolder, *, match_subfolders: bool) -> bool:
    if folder.entry_relative:
        return path.startswith(f"{folder.internal_path}/")
    # template tags in the folder match anything
    pattern = ".+?".join(
        re.escape(part) for part in _TEMPLATE_TAG.split(folder.internal_path)
    )
    anchor = "(?:/|$)" if folder.internal_path and match_subfolders else "$"
    return bool(re.match(f"^{pattern}{anchor}", posixpath.dirname(path)))


class PathClassifier:
    """Decides the role of every repository path for one site configuration."""

    def __init__(self, site: SiteConfig, resolver: PathResolver | None = None) -> None:
        self.site = site
        self.resolver = resolver or PathResolver(site)
        self.asset_folders = get_asset_folders(site)
        entry_collections = sorted(
            (c for c in site.collections if c.is_entry_collection),
            key=lambda c: strip_slashes(c.folder or ""),
        )
        self._entry_collections = [c.name for c in entry_collections]
        self._file_paths: dict[str, EntryFolder] = {}
        for collection in site.collections:
            for file in collection.files or []:
                path_map = self.resolver.file_path_map(collection.name, file.name)
                folder = EntryFolder(collection.name, file.name, path_map)
                for path in path_map.values():
                    self._file_paths.setdefault(path, folder)

    def get_entry_folder(self, path: str) -> EntryFolder | None:
        """The first collection (or collection file) claiming a path as entry."""
        for name in self._entry_collections:
            if self.resolver.entry_path_regex(name).match(path):
                return EntryFolder(name)
        return self._file_paths.get(path)

    def get_asset_folders_by_path(
        self,
        path: str,
        *,
        match_subfolders: bool = True,
    ) -> list[AssetFolder]:
        """Asset folders a path belongs to, the most specific first."""
        if posixpath.basename(path).startswith("+"):
            return []
        matches = [
            folder
            for folder in self.asset_folders
            if _matches_asset_folder(path, folder, match_subfolders=match_subfolders)
        ]
        return sorted(matches, key=lambda folder: folder.internal_path, reverse=True)

    def classify(self, files: Iterable[RepositoryFile]) -> FileList:
        """Split files into entry, asset and config files; others are dropped."""
        result = FileList()
        for file in files:
            if file.name.startswith("."):
                if GIT_CONFIG_FILE_PATTERN.match(file.name):
                    result.config_files.append(ClassifiedFile(file, FileKind.CONFIG))
                continue
            if entry_folder := self.get_entry_folder(file.path):
                result.entry_files.append(ClassifiedFile(file, FileKind.ENTRY, entry_folder))
                continue
            if is_index_file(file.path):
                continue
            if asset_folders := self.get_asset_folders_by_path(file.path):
                result.asset_files.append(ClassifiedFile(file, FileKind.ASSET, asset_folders[0]))
        logger.debug(
            "Classified files",
            entries=len(result.entry_files),
            assets=len(result.asset_files),
            config=len(result.config_files),
        )
        return result


def classify(files: Iterable[RepositoryFile], site: SiteConfig) -> FileList:
    """Classify files against the collections of a site."""
    return PathClassifier(site).classify(files)
