"""Entry path templates shared by classification, reconciliation and saving."""

from __future__ import annotations

from dataclasses import dataclass
import datetime
import functools
import posixpath
import re
from typing import TYPE_CHECKING, Any
import unicodedata

from cms_sync.formats import detect_file_extension, get_frontmatter_delimiters, resolve_format
from cms_sync.i18n import I18nConfig, get_locale_path, normalize_i18n_config
from cms_sync.log import get_logger
from cms_sync.models import DEFAULT_LOCALE_KEY


if TYPE_CHECKING:
    from collections.abc import Mapping

    from cms_sync.config import CollectionConfig, CollectionFileConfig, SiteConfig
    from cms_sync.formats import QuoteStyle
    from cms_sync.models import LocalizedRecord


logger = get_logger(__name__)

_TAG_PATTERN = re.compile(r"{{(.+?)}}")
_DATE_TAGS = ("year", "month", "day", "hour", "minute", "second")
_REGEX_CACHE_SIZE = 256


def strip_slashes(path: str) -> str:
    return path.strip("/")


def join_path(*segments: str) -> str:
    """Join path segments, dropping empty ones."""
    return "/".join(part for s in segments for part in s.split("/") if part)


@dataclass(frozen=True)
class FileConfig:
    """Resolved file settings of a collection or collection file."""

    extension: str
    """Extension without dot, ``md`` unless configured otherwise."""

    format: str
    """Declared format, ``frontmatter`` for auto-detection."""

    delimiter: str | tuple[str, ...] | None = None
    base_path: str | None = None
    """Collection folder, entry collections only."""

    sub_path: str | None = None
    """Path template relative to ``base_path``."""

    index_file_name: str | None = None
    full_path: str | None = None
    """Default locale path, file collections only."""

    quote_style: QuoteStyle = "none"
    root_list_field: str | None = None

    @property
    def delimiters(self) -> tuple[str, str] | None:
        fmt = resolve_format(self.extension, self.format, text="")
        return get_frontmatter_delimiters(fmt, self.delimiter) if fmt.is_frontmatter else None


def detect_file_format(extension: str, declared_format: str | None) -> str:
    """Declared format, or the format implied by the extension."""
    if declared_format:
        return declared_format
    match extension.lower():
        case "yaml" | "yml":
            return "yaml"
        case "toml":
            return "toml"
        case "json":
            return "json"
        case "md" | "mkd" | "mkdn" | "mdwn" | "mdown" | "markdown":
            return "frontmatter"
        case _:
            return "yaml-frontmatter"


def build_path_by_structure(
    base_path: str,
    path: str,
    extension: str,
    locale: str,
    structure: str | None,
    *,
    omit_locale: bool = False,
) -> str:
    """Compose an entry file path for one locale of an i18n layout."""
    if omit_locale:
        return join_path(f"{base_path}/{path}.{extension}")
    match structure:
        case "multiple_folders":
            result = f"{base_path}/{locale}/{path}.{extension}"
        case "multiple_folders_i18n_root":
            result = f"{locale}/{base_path}/{path}.{extension}"
        case "multiple_files":
            result = f"{base_path}/{path}.{locale}.{extension}"
        case _:
            result = f"{base_path}/{path}.{extension}"
    return join_path(result)


def _clean_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


class PathResolver:
    """Resolves file configs, path regexes and slugs for the collections of a site.

    Compiled regexes and normalized configs are memoized per instance in bounded
    LRU caches keyed by collection (and file) name.
    """

    def __init__(self, site: SiteConfig) -> None:
        self.site = site
        self.i18n_config = functools.lru_cache(maxsize=_REGEX_CACHE_SIZE)(self._i18n_config)
        self.file_config = functools.lru_cache(maxsize=_REGEX_CACHE_SIZE)(self._file_config)
        self.entry_path_regex = functools.lru_cache(maxsize=_REGEX_CACHE_SIZE)(
            self._entry_path_regex
        )
        self._slug_regex = functools.lru_cache(maxsize=_REGEX_CACHE_SIZE)(self._build_slug_regex)

    def collection(self, name: str) -> CollectionConfig:
        collection = self.site.get_collection(name)
        if collection is None:
            msg = f"Unknown collection: {name!r}"
            raise KeyError(msg)
        return collection

    def collection_file(self, collection_name: str, file_name: str) -> CollectionFileConfig:
        file = self.collection(collection_name).get_file(file_name)
        if file is None:
            msg = f"Unknown file {file_name!r} in collection {collection_name!r}"
            raise KeyError(msg)
        return file

    def _i18n_config(self, collection_name: str, file_name: str | None = None) -> I18nConfig:
        collection = self.collection(collection_name)
        file = self.collection_file(collection_name, file_name) if file_name else None
        return normalize_i18n_config(self.site, collection, file)

    def _file_config(self, collection_name: str, file_name: str | None = None) -> FileConfig:
        collection = self.collection(collection_name)
        file = self.collection_file(collection_name, file_name) if file_name else None
        declared = (file.format if file else None) or collection.format
        if file is not None:
            path = strip_slashes(file.file)
            ext = posixpath.splitext(path)[1].lstrip(".")
        else:
            path, ext = None, collection.extension
        extension = detect_file_extension(declared, ext)
        delimiter = (
            file.frontmatter_delimiter if file else None
        ) or collection.frontmatter_delimiter
        double = self.site.output.yaml.quote == "double" or bool(collection.yaml_quote)
        if collection.yaml_quote is not None:
            logger.warning(
                "yaml_quote is deprecated, use output.yaml.quote instead",
                collection=collection.name,
            )
        index_file = collection.get_index_file()
        full_path = None
        if path is not None:
            i18n = self.i18n_config(collection_name, file_name)
            full_path = get_locale_path(i18n, i18n.default_locale, path)
        return FileConfig(
            extension=extension,
            format=detect_file_format(extension, declared),
            delimiter=tuple(delimiter) if isinstance(delimiter, list) else delimiter,
            base_path=strip_slashes(collection.folder) if collection.folder is not None else None,
            sub_path=collection.path if file is None else None,
            index_file_name=index_file.name if index_file else None,
            full_path=full_path,
            quote_style="double" if double else "none",
            root_list_field=(file.root_list_field if file else None) or collection.root_list_field,
        )

    def _entry_path_regex(self, collection_name: str) -> re.Pattern[str]:
        config = self.file_config(collection_name)
        i18n = self.i18n_config(collection_name)
        locales = "|".join(re.escape(locale) for locale in i18n.all_locales)
        locale_group = f"(?P<locale>{locales})"
        if config.sub_path:
            sub_path = _template_to_regex(config.sub_path, slug=None)
            if config.index_file_name:
                sub_path += f"|{re.escape(config.index_file_name)}"
            path_group = f"(?P<subPath>{sub_path})"
        else:
            # slugs may contain slashes
            path_group = "(?P<subPath>.+?)"
        if i18n.multiple_files and i18n.omit_default_locale_from_filename:
            others = [loc for loc in i18n.all_locales if loc != i18n.default_locale]
            suffix = f"(?:\\.(?P<locale>{'|'.join(map(re.escape, others))}))?" if others else ""
        elif i18n.multiple_files:
            suffix = f"\\.{locale_group}"
        else:
            suffix = ""
        pattern = "".join([
            "^",
            f"{locale_group}/" if i18n.root_multiple_folders else "",
            f"{re.escape(config.base_path)}/" if config.base_path else "",
            f"{locale_group}/" if i18n.multiple_folders else "",
            path_group,
            suffix,
            f"\\.{re.escape(config.extension)}",
            "$",
        ])
        return re.compile(pattern)

    def _build_slug_regex(self, template: str) -> re.Pattern[str]:
        return re.compile(f"^{_template_to_regex(template, slug='(?P<slug>.+)')}$")

    def file_path_map(self, collection_name: str, file_name: str) -> dict[str, str]:
        """Locale -> repository path of a collection file."""
        path = strip_slashes(self.collection_file(collection_name, file_name).file)
        if "{{locale}}" not in path:
            return {DEFAULT_LOCALE_KEY: path}
        i18n = self.i18n_config(collection_name, file_name)
        return {loc: get_locale_path(i18n, loc, path) for loc in i18n.all_locales}

    def normalize_slug(self, text: str) -> str:
        """Turn arbitrary text into a slug according to the site slug options."""
        options = self.site.slug
        slug = _clean_accents(text) if options.clean_accents else text
        if options.encoding == "ascii":
            slug = re.sub(r"[^\w\-~]", " ", slug, flags=re.ASCII)
        else:
            slug = re.sub(r"[\W_]", " ", slug)
        return re.sub(r"\s+", options.sanitize_replacement, slug.lower().strip())

    def get_slug(self, collection_name: str, file_path: str, content: Mapping[str, Any]) -> str:
        """Derive an entry slug from its path relative to the collection folder.

        Without a path template the relative path is the slug. With one, the
        ``{{slug}}`` capture is used; content fields are the fallback.
        """
        collection = self.collection(collection_name)
        template = collection.path
        if not template:
            return file_path
        if "{{slug}}" in template and (match := self._slug_regex(template).match(file_path)):
            return match.group("slug")
        fields = (collection.identifier_field, "title", "name", "label")
        value = next((content[f] for f in fields if content.get(f)), "")
        return self.normalize_slug(str(value))

    def fill_path_template(
        self,
        template: str,
        *,
        slug: str,
        locale: str,
        content: Mapping[str, Any] | None = None,
    ) -> str:
        """Fill a collection ``path`` template for a new entry file."""
        now = datetime.datetime.now(datetime.UTC)
        values = content or {}

        def replace(match: re.Match[str]) -> str:
            tag = match.group(1).strip()
            if tag in _DATE_TAGS:
                return f"{getattr(now, tag):0{4 if tag == 'year' else 2}d}"
            if tag == "slug":
                return slug
            if tag == "locale":
                return locale
            value = values.get(tag.removeprefix("fields."))
            return self.normalize_slug(str(value)) if value not in (None, "") else ""

        return _TAG_PATTERN.sub(replace, template)

    def build_entry_path(
        self,
        collection_name: str,
        locale: str,
        slug: str,
        *,
        file_name: str | None = None,
        content: Mapping[str, Any] | None = None,
        original: LocalizedRecord | None = None,
        index_file: bool = False,
    ) -> str:
        """Repository path of one locale of an entry.

        An unchanged slug keeps the path of the original record.
        """
        if file_name:
            path = strip_slashes(self.collection_file(collection_name, file_name).file)
            return get_locale_path(self.i18n_config(collection_name, file_name), locale, path)
        if original is not None and original.slug == slug:
            return original.path
        config = self.file_config(collection_name)
        i18n = self.i18n_config(collection_name)
        if index_file and config.index_file_name:
            path = config.index_file_name.removesuffix(f".{config.extension}")
        elif config.sub_path:
            path = self.fill_path_template(
                config.sub_path, slug=slug, locale=locale, content=content
            )
        else:
            path = slug
        return build_path_by_structure(
            config.base_path or "",
            path,
            config.extension,
            locale,
            i18n.structure if i18n.enabled else None,
            omit_locale=i18n.omits_locale(locale),
        )


def _template_to_regex(template: str, slug: str | None) -> str:
    """Escape a path template, turning its tags into non-slash groups."""
    parts: list[str] = []
    position = 0
    for match in _TAG_PATTERN.finditer(template):
        parts.append(re.escape(template[position : match.start()]))
        if slug is not None and match.group(1).strip() == "slug":
            parts.append(slug)
            slug = None  # one capture group only
        else:
            parts.append("[^/]+?")
        position = match.end()
    parts.append(re.escape(template[position:]))
    return "".join(parts)
