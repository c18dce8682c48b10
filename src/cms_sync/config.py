"""Configuration models for the site, its backend and its collections.

Site configuration is usually stored as YAML next to the site sources:

    backend:
      name: github
      repo: owner/site
      branch: main
    media_folder: static/images
    i18n:
      structure: multiple_files
      locales: [en, ja]
    collections:
      - name: posts
        folder: content/posts
        i18n: true
      - name: settings
        files:
          - name: general
            file: data/general.json
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from cms_sync.exceptions import ConfigError


if TYPE_CHECKING:
    import os


I18nStructure = Literal[
    "single_file",
    "multiple_files",
    "multiple_folders",
    "multiple_folders_i18n_root",
]
"""How the locales of a collection map onto files and folders."""


class CanonicalSlugOptions(BaseModel):
    """Field linking the locale files of one entry."""

    key: str = "translationKey"
    """Content field holding the canonical slug."""

    value: str = "{{slug}}"
    """Template used to generate the canonical slug."""


class I18nOptions(BaseModel):
    """Internationalization options (site, collection or file level)."""

    structure: I18nStructure | None = None
    """File layout of the locales. Defaults to ``single_file``."""

    locales: list[str] = Field(default_factory=list)
    """Locale codes. I18n is enabled when at least one is given."""

    default_locale: str | None = None
    """Default locale, the first locale if unset or unknown."""

    initial_locales: Literal["all", "default"] | list[str] | None = None
    """Locales enabled for new entries."""

    save_all_locales: bool = True
    """Whether every locale is written on save."""

    canonical_slug: CanonicalSlugOptions | None = None
    """Canonical slug field configuration."""

    omit_default_locale_from_filename: bool = False
    """Drop the locale suffix for the default locale (``multiple_files`` only)."""


class CollectionFileConfig(BaseModel):
    """A single file of a file collection."""

    name: str
    """Identifier of the file within its collection."""

    file: str
    """Repository path, may contain a ``{{locale}}`` placeholder."""

    label: str | None = None
    format: str | None = None
    frontmatter_delimiter: str | list[str] | None = None
    root_list_field: str | None = None
    """Field name wrapping a top-level list document."""

    i18n: bool | I18nOptions = False
    """Enable i18n (inherit) or override options for this file."""


class IndexFileOptions(BaseModel):
    """Special index file (Hugo ``_index.md``) inclusion."""

    name: str = "_index"
    label: str | None = None


class CollectionConfig(BaseModel):
    """An entry collection (``folder``) or a file collection (``files``)."""

    name: str
    label: str | None = None
    label_singular: str | None = None

    folder: str | None = None
    """Base folder of an entry collection."""

    path: str | None = None
    """Entry path template relative to ``folder``, e.g. ``{{slug}}/index``."""

    files: list[CollectionFileConfig] | None = None
    """Files of a file collection."""

    extension: str | None = None
    format: str | None = None
    frontmatter_delimiter: str | list[str] | None = None

    yaml_quote: bool | None = None
    """Deprecated: use ``output.yaml.quote`` instead."""

    identifier_field: str = "title"
    """Content field used to derive a slug when the path carries none."""

    media_folder: str | None = None
    """Asset folder. Absolute when starting with ``/``, else relative to ``folder``."""

    index_file: bool | IndexFileOptions | None = None
    root_list_field: str | None = None
    i18n: bool | I18nOptions = False

    @model_validator(mode="after")
    def validate_folder_or_files(self) -> Self:
        """Validate that exactly one of folder or files is provided."""
        if self.folder is None and self.files is None:
            raise ValueError("Either 'folder' or 'files' must be provided")
        if self.folder is not None and self.files is not None:
            raise ValueError("Only one of 'folder' or 'files' can be provided")
        return self

    @property
    def is_entry_collection(self) -> bool:
        return self.folder is not None

    @property
    def display_name(self) -> str:
        return self.label_singular or self.label or self.name

    def get_file(self, name: str) -> CollectionFileConfig | None:
        """Get a collection file by name."""
        return next((f for f in self.files or [] if f.name == name), None)

    def get_index_file(self) -> IndexFileOptions | None:
        """Get the index file options, if index file inclusion is enabled."""
        if not self.is_entry_collection or not self.index_file:
            return None
        return IndexFileOptions() if self.index_file is True else self.index_file


class CommitMessages(BaseModel):
    """Commit message templates.

    Supported tags: ``{{collection}}``, ``{{slug}}`` and ``{{path}}``.
    """

    model_config = ConfigDict(extra="forbid")

    create: str = "Create {{collection}} “{{slug}}”"
    update: str = "Update {{collection}} “{{slug}}”"
    delete: str = "Delete {{collection}} “{{slug}}”"
    upload_media: str = "Upload “{{path}}”"
    delete_media: str = "Delete “{{path}}”"


class BackendConfig(BaseModel):
    """Repository backend."""

    name: str = "github"
    """Service name, e.g. ``github``, ``gitlab``, ``gitea`` or ``local``."""

    repo: str
    """Repository in ``owner/name`` form."""

    branch: str | None = None
    commit_messages: CommitMessages = Field(default_factory=CommitMessages)

    skip_ci_marker: str = "[skip ci]"
    """Commit message prefix marking a commit as not deployed."""

    skip_ci: bool = False
    """Prefix commit messages with ``skip_ci_marker``, except for deletions."""

    @property
    def repository_id(self) -> str:
        """Identity used to namespace persisted state."""
        return f"{self.name}:{self.repo}"


class SlugOptions(BaseModel):
    """Slug normalization."""

    encoding: Literal["unicode", "ascii"] = "unicode"
    clean_accents: bool = False
    sanitize_replacement: str = "-"


class YamlOutputOptions(BaseModel):
    quote: Literal["none", "double"] = "none"
    """Quote style for string values."""


class OutputOptions(BaseModel):
    """Data output options."""

    yaml: YamlOutputOptions = Field(default_factory=YamlOutputOptions)


class SyncOptions(BaseModel):
    """Fetching and caching behavior."""

    cache_dir: str | None = None
    """Directory of the persistent cache. In-memory when unset."""

    max_concurrency: int = Field(default=4, ge=1)
    """Maximum number of content fetch batches in flight."""

    batch_size: int = Field(default=50, ge=1)
    """Files per content fetch call."""


class SiteConfig(BaseModel):
    """Root site configuration."""

    backend: BackendConfig
    media_folder: str | None = None
    """Global asset folder."""

    i18n: I18nOptions | None = None
    """Site-wide i18n options, inherited by collections enabling i18n."""

    collections: list[CollectionConfig] = Field(default_factory=list)
    slug: SlugOptions = Field(default_factory=SlugOptions)
    output: OutputOptions = Field(default_factory=OutputOptions)
    sync: SyncOptions = Field(default_factory=SyncOptions)

    def get_collection(self, name: str) -> CollectionConfig | None:
        """Get a collection by name."""
        return next((c for c in self.collections if c.name == name), None)

    @classmethod
    def from_yaml(cls, text: str) -> Self:
        """Load site configuration from a YAML string.

        Raises:
            ConfigError: If the document is not valid YAML or not a valid configuration
        """
        import yamling

        try:
            data = yamling.load_yaml(text, verify_type=dict)
        except (yamling.YAMLError, TypeError) as exc:
            msg = "Site configuration is not valid YAML"
            raise ConfigError(msg) from exc
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            msg = f"Invalid site configuration: {exc}"
            raise ConfigError(msg) from exc

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> Self:
        """Load site configuration from a YAML file.

        Raises:
            ConfigError: If loading fails
        """
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            msg = f"Failed to read site configuration from {path}"
            raise ConfigError(msg) from exc
        return cls.from_yaml(text)
