"""Serialization formats: YAML, TOML, JSON and their front-matter variants."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import Any, Literal, assert_never

import anyenv
import tomli_w
import yaml

from cms_sync.exceptions import DecodeError, EncodeError
from cms_sync.formats.flatten import flatten, unflatten
from cms_sync.formats.helpers import (
    MARKDOWN_EXTENSIONS,
    drop_none,
    frontmatter_pattern,
    normalize_text,
    stringify_dates,
)


QuoteStyle = Literal["none", "double"]
Delimiters = tuple[str, str]

FRONTMATTER = "frontmatter"
"""Declared format value asking for front-matter auto-detection."""


class Format(StrEnum):
    """Closed set of supported file formats."""

    YAML = "yaml"
    TOML = "toml"
    JSON = "json"
    YAML_FRONTMATTER = "yaml-frontmatter"
    TOML_FRONTMATTER = "toml-frontmatter"
    JSON_FRONTMATTER = "json-frontmatter"

    @property
    def is_frontmatter(self) -> bool:
        return self in _FRONTMATTER_BASE

    @property
    def base(self) -> Format:
        """Format of the header (or the whole file for plain formats)."""
        return _FRONTMATTER_BASE.get(self, self)


_FRONTMATTER_BASE = {
    Format.YAML_FRONTMATTER: Format.YAML,
    Format.TOML_FRONTMATTER: Format.TOML,
    Format.JSON_FRONTMATTER: Format.JSON,
}

_ALIASES = {"yml": Format.YAML, "yaml": Format.YAML, "toml": Format.TOML, "json": Format.JSON}


def detect_frontmatter_format(text: str | None) -> Format:
    """Detect the front-matter flavor from the leading characters of a document."""
    text = (text or "").lstrip()
    if text.startswith("+++"):
        return Format.TOML_FRONTMATTER
    if text.startswith("{"):
        return Format.JSON_FRONTMATTER
    return Format.YAML_FRONTMATTER


def resolve_format(
    extension: str | None,
    declared_format: str | None = None,
    text: str | None = None,
) -> Format:
    """Resolve the effective format of a file.

    An explicitly declared format wins over the extension. ``frontmatter`` (declared,
    or implied by a markdown extension) is auto-detected from ``text``.

    Raises:
        ValueError: If the declared format is unknown
    """
    if declared_format:
        name = declared_format.lower()
        if name == FRONTMATTER:
            return detect_frontmatter_format(text)
        if name in _ALIASES:
            return _ALIASES[name]
        try:
            return Format(name)
        except ValueError:
            msg = f"Unsupported format: {declared_format!r}"
            raise ValueError(msg) from None
    ext = (extension or "").lower().lstrip(".")
    if ext in _ALIASES:
        return _ALIASES[ext]
    if ext in MARKDOWN_EXTENSIONS:
        return detect_frontmatter_format(text)
    return Format.YAML_FRONTMATTER


def detect_file_extension(declared_format: str | None, extension: str | None = None) -> str:
    """Get the file extension used for newly created files."""
    if extension:
        return extension.lstrip(".")
    match (declared_format or "").lower():
        case "yml" | "yaml":
            return "yml"
        case "toml":
            return "toml"
        case "json":
            return "json"
        case _:
            return "md"


def get_frontmatter_delimiters(
    fmt: Format,
    delimiter: str | Sequence[str] | None = None,
) -> Delimiters:
    """Get the start/end delimiter pair of a front-matter format."""
    if isinstance(delimiter, str) and delimiter.strip():
        return delimiter, delimiter
    if isinstance(delimiter, Sequence) and not isinstance(delimiter, str):
        if len(delimiter) == 2:  # noqa: PLR2004
            return delimiter[0], delimiter[1]
    match fmt.base:
        case Format.TOML:
            return "+++", "+++"
        case Format.JSON:
            return "{", "}"
        case _:
            return "---", "---"


# --- YAML ---------------------------------------------------------------------------


class _Loader(yaml.SafeLoader):
    """Safe loader keeping timestamps as plain strings."""


_NO_TIMESTAMPS = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_Loader.yaml_implicit_resolvers = _NO_TIMESTAMPS


class QuotedStr(str):
    """String always emitted in double quotes."""

    __slots__ = ()


class _Dumper(yaml.SafeDumper):
    """Safe dumper with block-style multi-line strings and no anchors."""

    def ignore_aliases(self, data: Any) -> bool:
        return True


# date-like strings are written unquoted, like they were read
_Dumper.yaml_implicit_resolvers = _NO_TIMESTAMPS


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    # no "|+" blocks, documents are stripped on load
    block = "\n" in data and data != "\n" and not data.endswith("\n\n")
    style = "|" if block else ('"' if "\n" in data else None)
    return dumper.represent_scalar("tag:yaml.org,2002:str", data, style=style)


def _represent_quoted(dumper: yaml.SafeDumper, data: QuotedStr) -> yaml.ScalarNode:
    return dumper.represent_scalar("tag:yaml.org,2002:str", str(data), style='"')


_Dumper.add_representer(str, _represent_str)
_Dumper.add_representer(QuotedStr, _represent_quoted)


def _quote_values(value: Any) -> Any:
    match value:
        case str():
            return QuotedStr(value)
        case Mapping():
            return {k: _quote_values(v) for k, v in value.items()}
        case list():
            return [_quote_values(v) for v in value]
        case _:
            return value


def _load_yaml(text: str) -> Any:
    # a block scalar keeps its final line break only if one follows it
    return yaml.load(text + "\n", Loader=_Loader)  # noqa: S506


def _dump_yaml(tree: Any, quote_style: QuoteStyle) -> str:
    if quote_style == "double":
        tree = _quote_values(tree)
    return yaml.dump(
        tree,
        Dumper=_Dumper,
        allow_unicode=True,
        sort_keys=False,
        default_flow_style=False,
        width=float("inf"),
    )


# --- TOML / JSON ----------------------------------------------------------------


def _load_toml(text: str) -> Any:
    return stringify_dates(anyenv.load_toml(text))


def _dump_toml(tree: Any) -> str:
    if not isinstance(tree, Mapping):
        msg = "TOML documents must be tables"
        raise TypeError(msg)
    return tomli_w.dumps(drop_none(tree))


def _load_json(text: str) -> Any:
    return anyenv.load_json(text)


def _dump_json(tree: Any) -> str:
    return anyenv.dump_json(tree, indent=True)


# --- public API -----------------------------------------------------------------


def _load_plain(text: str, fmt: Format) -> Any:
    match fmt:
        case Format.YAML:
            return _load_yaml(text)
        case Format.TOML:
            return _load_toml(text)
        case Format.JSON:
            return _load_json(text)
        case Format.YAML_FRONTMATTER | Format.TOML_FRONTMATTER | Format.JSON_FRONTMATTER:
            msg = f"{fmt} is not a plain format"
            raise ValueError(msg)
        case _ as unreachable:
            assert_never(unreachable)


def _dump_plain(tree: Any, fmt: Format, quote_style: QuoteStyle) -> str:
    match fmt:
        case Format.YAML:
            return _dump_yaml(tree, quote_style)
        case Format.TOML:
            return _dump_toml(tree)
        case Format.JSON:
            return _dump_json(tree)
        case Format.YAML_FRONTMATTER | Format.TOML_FRONTMATTER | Format.JSON_FRONTMATTER:
            msg = f"{fmt} is not a plain format"
            raise ValueError(msg)
        case _ as unreachable:
            assert_never(unreachable)


def _load_frontmatter(text: str, fmt: Format, delimiters: Delimiters) -> dict[str, Any]:
    start, end = delimiters
    match = frontmatter_pattern(start, end).match(text)
    if not match:
        return _body_only(text)
    head, body = match.group("head"), match.group("body")
    if fmt.base is Format.JSON and delimiters == ("{", "}") and head is not None:
        # the braces of the JSON object double as delimiters
        head = f"{{\n{head}\n}}"
    result = _as_mapping(_load_plain(head, fmt.base)) if head else {}
    if body is not None:
        result["body"] = body
    return result


def _body_only(text: str) -> dict[str, Any]:
    if not text:
        msg = "No front matter block found"
        raise ValueError(msg)
    return {"body": text}


def _as_mapping(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        msg = f"Expected a mapping, got {type(value).__name__}"
        raise TypeError(msg)
    return {str(k): v for k, v in value.items()}


def load(text: str, fmt: Format, delimiters: Delimiters | None = None) -> Any:
    """Parse a document into its (nested) tree.

    Plain formats may return any root type (a top-level list is legal for YAML/JSON);
    front-matter formats always return a mapping, with the body under ``body``.

    Raises:
        ValueError, TypeError: If the document cannot be parsed
    """
    text = normalize_text(text)
    if fmt.is_frontmatter:
        return _load_frontmatter(text, fmt, delimiters or get_frontmatter_delimiters(fmt))
    if not text:
        return {}
    return _load_plain(text, fmt)


def dump(
    tree: Any,
    fmt: Format,
    delimiters: Delimiters | None = None,
    quote_style: QuoteStyle = "none",
) -> str:
    """Serialize a (nested) tree. The result always ends with a single newline."""
    tree = stringify_dates(tree)
    if not fmt.is_frontmatter:
        return _dump_plain(tree, fmt, quote_style).rstrip("\n") + "\n"
    header = dict(tree)
    body = header.pop("body", None)
    body = "" if body is None else str(body)
    start, end = delimiters or get_frontmatter_delimiters(fmt)
    if not header:
        if not body.strip():
            # empty header block
            return f"{start}\n{end}\n"
        return body.strip("\n") + "\n"
    head = _dump_plain(header, fmt.base, quote_style).rstrip("\n")
    if fmt.base is Format.JSON and (start, end) == ("{", "}"):
        parts = [head, body]
    else:
        parts = [start, head, end, body]
    return "\n".join(parts).rstrip("\n") + "\n"


_LOAD_ERRORS = (ValueError, TypeError, yaml.YAMLError, anyenv.JsonLoadError, anyenv.TomlLoadError)


def parse(
    data: bytes | str,
    *,
    path: str = "",
    extension: str | None = None,
    declared_format: str | None = None,
    delimiter: str | Sequence[str] | None = None,
) -> Any:
    """Parse raw file data into its nested tree.

    Raises:
        DecodeError: If the data cannot be parsed
    """
    try:
        text = data.decode() if isinstance(data, bytes) else data
        fmt = resolve_format(extension, declared_format, text)
        delimiters = get_frontmatter_delimiters(fmt, delimiter) if fmt.is_frontmatter else None
        return load(text, fmt, delimiters)
    except _LOAD_ERRORS as exc:
        raise DecodeError(path, exc) from exc


def decode(
    data: bytes | str,
    *,
    path: str = "",
    extension: str | None = None,
    declared_format: str | None = None,
    delimiter: str | Sequence[str] | None = None,
) -> dict[str, Any]:
    """Decode raw file data into flattened content.

    Raises:
        DecodeError: If the data cannot be parsed or is not a mapping
    """
    tree = parse(
        data,
        path=path,
        extension=extension,
        declared_format=declared_format,
        delimiter=delimiter,
    )
    try:
        return flatten(_as_mapping(tree))
    except TypeError as exc:
        raise DecodeError(path, exc) from exc


def encode(
    content: Any,
    *,
    path: str = "",
    extension: str | None = None,
    declared_format: str | None = None,
    delimiter: str | Sequence[str] | None = None,
    quote_style: QuoteStyle = "none",
    nested: bool = False,
) -> bytes:
    """Encode flattened (or, with ``nested``, already nested) content into bytes.

    ``frontmatter`` (declared, or implied by a markdown extension) is written as
    YAML front matter.

    Raises:
        EncodeError: If the content cannot be serialized
    """
    try:
        fmt = resolve_format(extension, declared_format, text="")
        tree = content if nested else unflatten(content)
        delimiters = get_frontmatter_delimiters(fmt, delimiter) if fmt.is_frontmatter else None
        return dump(tree, fmt, delimiters, quote_style).encode()
    except (ValueError, TypeError, yaml.YAMLError) as exc:
        raise EncodeError(path, exc) from exc
