"""Helpers shared by the format codecs."""

from __future__ import annotations

from collections.abc import Mapping
import datetime
import re
from typing import Any


MARKDOWN_EXTENSIONS = frozenset({"md", "mkd", "mkdn", "mdwn", "mdown", "markdown"})


def normalize_text(text: str) -> str:
    """Strip surrounding whitespace and convert line endings to ``\\n``."""
    return text.strip().replace("\r\n", "\n")


def frontmatter_pattern(start: str, end: str) -> re.Pattern[str]:
    """Build the regex splitting a document into header and body.

    The header sits between a line holding only ``start`` and a line holding only
    ``end``; everything after the end line is the body.
    """
    return re.compile(
        rf"^{re.escape(start)}\n(?:(?P<head>.*?)\n)?{re.escape(end)}$(?:\n(?P<body>.+))?",
        re.MULTILINE | re.DOTALL,
    )


def stringify_dates(value: Any) -> Any:
    """Recursively replace date/time values with ISO-8601 strings."""
    match value:
        case datetime.date() | datetime.time():
            return value.isoformat()
        case Mapping():
            return {str(k): stringify_dates(v) for k, v in value.items()}
        case list() | tuple():
            return [stringify_dates(v) for v in value]
        case _:
            return value


def drop_none(value: Any) -> Any:
    """Recursively remove map keys whose value is ``None``."""
    match value:
        case Mapping():
            return {k: drop_none(v) for k, v in value.items() if v is not None}
        case list():
            return [drop_none(v) for v in value]
        case _:
            return value
