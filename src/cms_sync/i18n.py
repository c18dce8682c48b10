"""Normalized internationalization settings per collection and file."""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import TYPE_CHECKING

from cms_sync.config import I18nOptions
from cms_sync.models import DEFAULT_LOCALE_KEY


if TYPE_CHECKING:
    from cms_sync.config import CollectionConfig, CollectionFileConfig, I18nStructure, SiteConfig


_LOCALE_SUFFIX = re.compile(r"\.\{\{locale\}\}\.(\w+)$")


@dataclass(frozen=True)
class I18nConfig:
    """Effective i18n settings of one collection (or collection file)."""

    enabled: bool = False
    structure: I18nStructure = "single_file"
    all_locales: tuple[str, ...] = (DEFAULT_LOCALE_KEY,)
    initial_locales: tuple[str, ...] = (DEFAULT_LOCALE_KEY,)
    default_locale: str = DEFAULT_LOCALE_KEY
    save_all_locales: bool = True
    canonical_slug_key: str = "translationKey"
    canonical_slug_template: str = "{{slug}}"
    omit_default_locale_from_filename: bool = False

    @property
    def single_file(self) -> bool:
        return self.enabled and self.structure == "single_file"

    @property
    def multiple_files(self) -> bool:
        return self.enabled and self.structure == "multiple_files"

    @property
    def multiple_folders(self) -> bool:
        return self.enabled and self.structure == "multiple_folders"

    @property
    def root_multiple_folders(self) -> bool:
        return self.enabled and self.structure == "multiple_folders_i18n_root"

    @property
    def multi_file_layout(self) -> bool:
        """Whether every locale lives in its own file."""
        return self.multiple_files or self.multiple_folders or self.root_multiple_folders

    def omits_locale(self, locale: str) -> bool:
        """Whether the locale is left out of the file name."""
        return self.omit_default_locale_from_filename and locale == self.default_locale


def _merge_options(
    site: SiteConfig,
    collection: CollectionConfig,
    file: CollectionFileConfig | None,
) -> I18nOptions | None:
    if site.i18n is None or not collection.i18n:
        return None
    merged = site.i18n.model_dump(exclude_unset=True)
    if isinstance(collection.i18n, I18nOptions):
        merged |= collection.i18n.model_dump(exclude_unset=True)
    if file is not None:
        if not file.i18n:
            return None
        if isinstance(file.i18n, I18nOptions):
            merged |= file.i18n.model_dump(exclude_unset=True)
    return I18nOptions.model_validate(merged)


def _initial_locales(options: I18nOptions, all_locales: list[str], default: str) -> list[str]:
    match options.initial_locales:
        case "all":
            return all_locales
        case "default":
            return [default]
        case list() as selected:
            return [loc for loc in all_locales if loc == default or loc in selected]
        case _:
            return all_locales


def normalize_i18n_config(
    site: SiteConfig,
    collection: CollectionConfig,
    file: CollectionFileConfig | None = None,
) -> I18nConfig:
    """Merge site, collection and file level i18n options.

    Collection level ``i18n: true`` inherits the site options, a mapping overrides them.
    A collection file takes part in i18n only when it enables it itself.
    """
    options = _merge_options(site, collection, file)
    if options is None or not options.locales:
        return I18nConfig()
    locales = list(options.locales)
    default = options.default_locale if options.default_locale in locales else locales[0]
    if file is not None:
        structure: I18nStructure = (
            "multiple_files" if "{{locale}}" in file.file else "single_file"
        )
    else:
        structure = options.structure or "single_file"
    if file is not None:
        omit = options.omit_default_locale_from_filename and bool(
            _LOCALE_SUFFIX.search(file.file)
        )
    else:
        omit = options.omit_default_locale_from_filename and structure == "multiple_files"
    canonical = options.canonical_slug
    return I18nConfig(
        enabled=True,
        structure=structure,
        all_locales=tuple(locales),
        initial_locales=tuple(_initial_locales(options, locales, default)),
        default_locale=default,
        save_all_locales=options.save_all_locales and options.initial_locales is None,
        canonical_slug_key=canonical.key if canonical else "translationKey",
        canonical_slug_template=canonical.value if canonical else "{{slug}}",
        omit_default_locale_from_filename=omit,
    )


def get_locale_path(i18n: I18nConfig, locale: str, path: str) -> str:
    """Substitute ``{{locale}}`` in a file path.

    The default locale suffix is dropped when the config omits it from file names.
    """
    if i18n.omits_locale(locale):
        path = _LOCALE_SUFFIX.sub(r".\1", path)
    return path.replace("{{locale}}", locale)
