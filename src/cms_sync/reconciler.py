"""Assembly of per-locale files into logical entries, and the inverse mapping."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
import posixpath
from typing import TYPE_CHECKING, Any

from cms_sync.exceptions import DecodeError, ReconciliationError
from cms_sync.formats import flatten, parse
from cms_sync.log import get_logger
from cms_sync.models import DEFAULT_LOCALE_KEY, Entry, LocalizedRecord


if TYPE_CHECKING:
    from collections.abc import Iterable

    from cms_sync.exceptions import FileError
    from cms_sync.i18n import I18nConfig
    from cms_sync.models import ClassifiedFile, EntryFolder
    from cms_sync.paths import FileConfig, PathResolver


logger = get_logger(__name__)


@dataclass
class ReconcileResult:
    """Entries assembled from entry files, plus the files that were dropped."""

    entries: list[Entry] = field(default_factory=list)
    errors: list[FileError] = field(default_factory=list)


@dataclass
class _Group:
    """Locale files sharing one merge key."""

    collection_name: str
    file_name: str | None
    records: dict[str, LocalizedRecord] = field(default_factory=dict)
    meta: dict[str, dict[str, Any]] = field(default_factory=dict)


class LocaleReconciler:
    """Merges locale files into entries according to each collection's i18n layout."""

    def __init__(self, resolver: PathResolver) -> None:
        self.resolver = resolver

    def assemble(self, entry_files: Iterable[ClassifiedFile]) -> ReconcileResult:
        """Build entries from classified entry files.

        Undecodable files, files not matching their layout, canonical slug
        collisions and duplicate entry ids are reported in ``errors``.
        """
        result = ReconcileResult()
        groups: dict[str, _Group] = {}
        for file in entry_files:
            try:
                self._add_file(file, groups)
            except (DecodeError, ReconciliationError) as e:
                logger.warning("Dropping entry file", path=file.path, error=str(e.cause))
                result.errors.append(e)
        seen: set[str] = set()
        for key, group in groups.items():
            entry = self._build_entry(group)
            if entry is None:
                path = next(iter(group.records.values())).path if group.records else key
                result.errors.append(ReconciliationError(path, "Entry has an empty slug"))
                continue
            if entry.id in seen:
                error = ReconciliationError(entry.paths[0], f"Duplicate entry id {entry.id!r}")
                result.errors.append(error)
                continue
            seen.add(entry.id)
            result.entries.append(entry)
        logger.debug("Assembled entries", entries=len(result.entries), errors=len(result.errors))
        return result

    def _parse(self, file: ClassifiedFile, config: FileConfig) -> Any:
        if file.file.text is None:
            raise DecodeError(file.path, "File content is not available")
        return parse(
            file.file.text,
            path=file.path,
            extension=config.extension,
            declared_format=config.format,
            delimiter=config.delimiter,
        )

    def _wrap_root_list(self, tree: Any, field_name: str, i18n: I18nConfig, path: str) -> Any:
        if i18n.single_file:
            lists = isinstance(tree, Mapping) and all(isinstance(v, list) for v in tree.values())
            if not lists:
                raise ReconciliationError(path, "Expected a list for every locale")
            return {locale: {field_name: items} for locale, items in tree.items()}
        if not isinstance(tree, list):
            raise ReconciliationError(path, "Expected a top-level list")
        return {field_name: tree}

    def _is_skipped_index_file(self, file: ClassifiedFile, folder: EntryFolder) -> bool:
        if folder.file_name or posixpath.basename(file.path) != "_index.md":
            return False
        collection = self.resolver.collection(folder.collection_name)
        config = self.resolver.file_config(folder.collection_name)
        last_segment = (collection.path or "").split("/")[-1]
        enabled = last_segment == "_index" or collection.get_index_file() is not None
        return not (enabled and config.extension == "md")

    def _locate(
        self,
        file: ClassifiedFile,
        folder: EntryFolder,
        i18n: I18nConfig,
    ) -> tuple[str | None, str | None]:
        """Get the collection-relative path and the locale of a file."""
        if folder.file_name:
            if i18n.multi_file_layout:
                path_map = folder.file_path_map or {}
                locale = next((loc for loc, p in path_map.items() if p == file.path), None)
                return (file.path if locale else None), locale
            return file.path, None
        regex = self.resolver.entry_path_regex(folder.collection_name)
        if not (match := regex.match(file.path)):
            return None, None
        groups = match.groupdict()
        return groups.get("subPath"), groups.get("locale")

    def _add_file(self, file: ClassifiedFile, groups: dict[str, _Group]) -> None:
        folder: EntryFolder = file.folder  # type: ignore[assignment]
        name, file_name = folder.collection_name, folder.file_name
        config = self.resolver.file_config(name, file_name)
        i18n = self.resolver.i18n_config(name, file_name)
        if self._is_skipped_index_file(file, folder):
            return
        tree = self._parse(file, config)
        if config.root_list_field:
            tree = self._wrap_root_list(tree, config.root_list_field, i18n, file.path)
        if not isinstance(tree, Mapping):
            raise DecodeError(file.path, f"Unexpected top-level {type(tree).__name__}")
        sub_path, locale = self._locate(file, folder, i18n)
        if not sub_path:
            raise ReconciliationError(file.path, "Path does not match the collection layout")

        def make_record(loc: str, slug: str, content: Mapping[str, Any]) -> LocalizedRecord:
            return LocalizedRecord(loc, slug, file.path, file.sha, flatten(content))

        if not i18n.enabled:
            slug = file_name or self.resolver.get_slug(name, sub_path, tree)
            group = _Group(name, file_name)
            group.records[DEFAULT_LOCALE_KEY] = make_record(DEFAULT_LOCALE_KEY, slug, tree)
            group.meta[DEFAULT_LOCALE_KEY] = dict(file.file.meta)
            groups[f"{name}/{file.path}"] = group
            return

        if i18n.single_file:
            content = tree.get(i18n.default_locale)
            if content is None:
                content = next(iter(tree.values()), {})
            if not isinstance(content, Mapping):
                raise DecodeError(file.path, "Locale content must be a mapping")
            slug = file_name or self.resolver.get_slug(name, sub_path, content)
            group = _Group(name, file_name)
            for loc in i18n.all_locales:
                if isinstance(tree.get(loc), Mapping):
                    group.records[loc] = make_record(loc, slug, tree[loc])
                    group.meta[loc] = dict(file.file.meta)
            groups[f"{name}/{file.path}"] = group
            return

        if locale is None and i18n.omit_default_locale_from_filename:
            locale = i18n.default_locale
        if locale is None:
            raise ReconciliationError(file.path, "No locale found in path")
        slug = file_name or self.resolver.get_slug(name, sub_path, tree)
        canonical = tree.get(i18n.canonical_slug_key)
        key = f"{name}/{canonical if canonical is not None else slug}"
        group = groups.setdefault(key, _Group(name, file_name))
        if locale in group.records:
            other = group.records[locale].path
            msg = f"Locale {locale!r} of {key!r} is already provided by {other}"
            raise ReconciliationError(file.path, msg)
        group.records[locale] = make_record(locale, slug, tree)
        group.meta[locale] = dict(file.file.meta)

    def _build_entry(self, group: _Group) -> Entry | None:
        if not group.records:
            return None
        i18n = self.resolver.i18n_config(group.collection_name, group.file_name)
        # configured locale order
        order = {loc: index for index, loc in enumerate(i18n.all_locales)}
        first_locale = next(iter(group.records))
        locales = dict(
            sorted(group.records.items(), key=lambda item: order.get(item[0], len(order)))
        )
        main = i18n.default_locale if i18n.default_locale in locales else first_locale
        record = locales[main]
        if not record.slug:
            return None
        entry_key = group.file_name or record.slug
        return Entry(
            id=f"{group.collection_name}/{entry_key}",
            slug=record.slug,
            sha=record.sha,
            collection_name=group.collection_name,
            locales=locales,
            file_name=group.file_name,
            meta=group.meta.get(main, {}),
        )

    def disassemble(
        self,
        entry: Entry,
        locales: Iterable[str] | None = None,
        *,
        original: Entry | None = None,
    ) -> list[LocalizedRecord]:
        """Get the per-locale records of an entry with their resolved file paths.

        Args:
            entry: Entry holding the edited content
            locales: Locales to resolve, all locales of the entry by default
            original: Entry as last synchronized; unchanged slugs keep its paths
        """
        name, file_name = entry.collection_name, entry.file_name
        i18n = self.resolver.i18n_config(name, file_name)
        config = self.resolver.file_config(name, file_name)
        wanted = list(locales) if locales is not None else list(entry.locales)
        default_record = entry.locales.get(i18n.default_locale)
        default_content = default_record.content if default_record else {}
        is_index = bool(config.index_file_name) and entry.slug == config.index_file_name
        records = []
        for locale in wanted:
            current = entry.locales.get(locale)
            slug = current.slug if current and current.slug else entry.slug
            if not i18n.multi_file_layout:
                # one file for every locale
                slug = entry.slug
                path_locale = i18n.default_locale
            else:
                path_locale = locale
            previous = original.locales.get(path_locale) if original else None
            path = self.resolver.build_entry_path(
                name,
                path_locale,
                slug,
                file_name=file_name,
                content=default_content,
                original=previous,
                index_file=is_index,
            )
            content = current.content if current else {}
            sha = current.sha if current else ""
            records.append(
                replace(current, slug=slug, path=path)
                if current
                else LocalizedRecord(locale, slug, path, sha, dict(content))
            )
        return records
