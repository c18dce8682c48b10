"""Format codecs and the flattened content representation."""

from __future__ import annotations

from cms_sync.formats.codec import (
    FRONTMATTER,
    Format,
    QuoteStyle,
    decode,
    detect_file_extension,
    detect_frontmatter_format,
    dump,
    encode,
    get_frontmatter_delimiters,
    load,
    parse,
    resolve_format,
)
from cms_sync.formats.flatten import escape_key, flatten, join_key, split_key, unflatten

__all__ = [
    "FRONTMATTER",
    "Format",
    "QuoteStyle",
    "decode",
    "detect_file_extension",
    "detect_frontmatter_format",
    "dump",
    "encode",
    "escape_key",
    "flatten",
    "get_frontmatter_delimiters",
    "join_key",
    "load",
    "parse",
    "resolve_format",
    "split_key",
    "unflatten",
]
