"""Turning entry and asset edits into the file operations of one commit."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from cms_sync.exceptions import EncodeError
from cms_sync.formats import encode, unflatten
from cms_sync.log import get_logger
from cms_sync.models import DEFAULT_LOCALE_KEY, ChangeAction, ChangeOp, ChangeSet, CommitKind


if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from cms_sync.config import CollectionConfig, CommitMessages, SiteConfig
    from cms_sync.i18n import I18nConfig
    from cms_sync.models import CacheRecord, Entry, LocalizedRecord
    from cms_sync.paths import FileConfig
    from cms_sync.reconciler import LocaleReconciler


logger = get_logger(__name__)

_ENTRY_KINDS = (CommitKind.CREATE, CommitKind.UPDATE, CommitKind.DELETE)
_MEDIA_KINDS = (CommitKind.UPLOAD_MEDIA, CommitKind.DELETE_MEDIA)


@dataclass(frozen=True)
class EntryEdit:
    """An edited, created or deleted entry."""

    entry: Entry
    """Edited values. Per-locale slugs may differ from ``entry.slug``."""

    original: Entry | None = None
    """Entry as last synchronized, ``None`` for new entries."""

    deleted: bool = False

    @property
    def collection_name(self) -> str:
        return self.entry.collection_name

    @property
    def is_new(self) -> bool:
        return self.original is None


@dataclass(frozen=True)
class AssetEdit:
    """An uploaded, replaced, moved or deleted asset."""

    action: ChangeAction
    path: str
    data: bytes | None = None
    previous_path: str | None = None


def create_commit_message(
    kind: CommitKind,
    changes: Sequence[ChangeOp],
    *,
    templates: CommitMessages,
    collection: CollectionConfig | None = None,
    skip_ci_marker: str | None = None,
) -> str:
    """Render the commit message of a change set.

    Only the first slug and path and the collection label are used, never file
    contents. Media messages mention how many more files are affected.
    """
    first_slug = next((change.slug for change in changes if change.slug), "")
    first_path, *remaining = [change.path for change in changes] or [""]
    message: str = getattr(templates, kind.value)
    if kind in _ENTRY_KINDS:
        label = collection.display_name if collection else ""
        message = (
            message.replace("{{slug}}", first_slug)
            .replace("{{collection}}", label)
            .replace("{{path}}", first_path)
        )
    elif kind in _MEDIA_KINDS:
        message = message.replace("{{path}}", first_path)
        if remaining:
            message += f" +{len(remaining)}"
    deletion = kind in (CommitKind.DELETE, CommitKind.DELETE_MEDIA)
    if skip_ci_marker and not deletion:
        message = f"{skip_ci_marker} {message}"
    return message


class ChangeSetBuilder:
    """Builds change sets using the same path templates as classification."""

    def __init__(self, site: SiteConfig, reconciler: LocaleReconciler) -> None:
        self.site = site
        self.reconciler = reconciler
        self.resolver = reconciler.resolver

    def build(
        self,
        entry_edits: Sequence[EntryEdit] = (),
        asset_edits: Sequence[AssetEdit] = (),
        commit_kind: CommitKind = CommitKind.UPDATE,
        *,
        records: Mapping[str, CacheRecord] | None = None,
    ) -> ChangeSet:
        """Resolve all edits into file operations with concrete bytes.

        Args:
            entry_edits: Entry edits, usually a single one
            asset_edits: Asset uploads, moves and deletions
            commit_kind: Kind of user operation, selects the commit message
            records: Cached file records used to fill in ``previous_sha``

        Raises:
            EncodeError: If any content cannot be serialized; no change set is returned
        """
        records = records or {}
        changes: list[ChangeOp] = []
        text_paths: set[str] = set()
        for edit in entry_edits:
            entry_changes = self._entry_changes(edit, records)
            text_paths.update(c.path for c in entry_changes if c.data is not None)
            changes.extend(entry_changes)
        changes.extend(self._asset_change(edit, records) for edit in asset_edits)
        collection = (
            self.resolver.collection(entry_edits[0].collection_name) if entry_edits else None
        )
        backend = self.site.backend
        message = create_commit_message(
            commit_kind,
            changes,
            templates=backend.commit_messages,
            collection=collection,
            skip_ci_marker=backend.skip_ci_marker if backend.skip_ci else None,
        )
        logger.debug("Built change set", changes=len(changes), message=message)
        return ChangeSet(changes=changes, message=message, text_paths=frozenset(text_paths))

    def _asset_change(self, edit: AssetEdit, records: Mapping[str, CacheRecord]) -> ChangeOp:
        previous = records.get(edit.previous_path or edit.path)
        previous_sha = previous.sha if previous else None
        if edit.action is ChangeAction.DELETE:
            return ChangeOp(ChangeAction.DELETE, edit.path, previous_sha=previous_sha)
        if not isinstance(edit.data, bytes):
            raise EncodeError(edit.path, "Asset data must be bytes")
        return ChangeOp(
            edit.action,
            edit.path,
            previous_path=edit.previous_path if edit.action is ChangeAction.MOVE else None,
            previous_sha=previous_sha,
            data=edit.data,
        )

    def _persisted_locales(self, entry: Entry, i18n: I18nConfig) -> list[str]:
        if not i18n.enabled:
            return [DEFAULT_LOCALE_KEY]
        if i18n.save_all_locales:
            return list(i18n.all_locales)
        return [locale for locale in i18n.all_locales if locale in entry.locales]

    def _entry_changes(
        self,
        edit: EntryEdit,
        records: Mapping[str, CacheRecord],
    ) -> list[ChangeOp]:
        def previous_sha(path: str | None) -> str | None:
            record = records.get(path) if path else None
            return record.sha if record else None

        if edit.deleted:
            source = edit.original or edit.entry
            return [
                ChangeOp(
                    ChangeAction.DELETE,
                    path,
                    previous_sha=previous_sha(path),
                    slug=source.slug,
                )
                for path in source.paths
            ]

        entry, original = edit.entry, edit.original
        name, file_name = entry.collection_name, entry.file_name
        i18n = self.resolver.i18n_config(name, file_name)
        config = self.resolver.file_config(name, file_name)
        locales = self._persisted_locales(entry, i18n)
        resolved = {
            record.locale: record
            for record in self.reconciler.disassemble(entry, locales, original=original)
        }
        localized_slugs = any(r.slug != entry.slug for r in resolved.values())
        contents: dict[str, dict[str, Any]] = {}
        for locale, record in resolved.items():
            content = dict(record.content)
            if i18n.enabled and localized_slugs:
                content[i18n.canonical_slug_key] = entry.slug
            contents[locale] = content

        if not i18n.multi_file_layout:
            main = i18n.default_locale if i18n.default_locale in resolved else locales[0]
            record = resolved[main]
            previous = self._original_record(original, i18n.default_locale)
            if i18n.enabled:
                tree: Any = {
                    locale: self._to_tree(content, config) for locale, content in contents.items()
                }
            else:
                tree = self._to_tree(contents[main], config)
            data = self._encode(tree, record.path, config)
            return [self._write_op(record, previous, data, previous_sha)]

        changes = []
        for locale in i18n.all_locales:
            previous = original.locales.get(locale) if original else None
            if locale in resolved:
                record = resolved[locale]
                data = self._encode(self._to_tree(contents[locale], config), record.path, config)
                changes.append(self._write_op(record, previous, data, previous_sha))
            elif previous is not None:
                changes.append(
                    ChangeOp(
                        ChangeAction.DELETE,
                        previous.path,
                        previous_sha=previous_sha(previous.path),
                        slug=previous.slug,
                    )
                )
        return changes

    @staticmethod
    def _original_record(original: Entry | None, locale: str) -> LocalizedRecord | None:
        if original is None:
            return None
        return original.locales.get(locale) or next(iter(original.locales.values()), None)

    @staticmethod
    def _write_op(
        record: LocalizedRecord,
        previous: LocalizedRecord | None,
        data: bytes,
        previous_sha: Any,
    ) -> ChangeOp:
        if previous is None:
            return ChangeOp(ChangeAction.CREATE, record.path, data=data, slug=record.slug)
        moved = previous.path != record.path
        return ChangeOp(
            ChangeAction.MOVE if moved else ChangeAction.UPDATE,
            record.path,
            previous_path=previous.path if moved else None,
            previous_sha=previous_sha(previous.path),
            data=data,
            slug=record.slug,
        )

    @staticmethod
    def _to_tree(content: Mapping[str, Any], config: FileConfig) -> Any:
        tree = unflatten(content)
        field_name = config.root_list_field
        if field_name and list(tree) == [field_name] and isinstance(tree[field_name], list):
            return tree[field_name]
        return tree

    @staticmethod
    def _encode(tree: Any, path: str, config: FileConfig) -> bytes:
        return encode(
            tree,
            path=path,
            extension=config.extension,
            declared_format=config.format,
            delimiter=config.delimiter,
            quote_style=config.quote_style,
            nested=True,
        )
