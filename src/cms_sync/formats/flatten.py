"""Bidirectional transform between nested trees and flat dotted-key maps.

Key grammar:

- segments are joined with ``.``
- a literal ``.`` or ``\\`` inside a map key is escaped with ``\\``
- map keys made of digits only are prefixed with ``\\``, so a bare digit
  segment always denotes a list index
- empty maps and empty lists are kept as leaf values

Example:
    >>> flatten({"a": {"b": [1, {"c": 2}]}, "x.y": 3, "0": 4})
    {'a.b.0': 1, 'a.b.1.c': 2, 'x\\\\.y': 3, '\\\\0': 4}
"""

from __future__ import annotations

from collections.abc import Mapping
from itertools import pairwise
from typing import Any


ESCAPE = "\\"
SEPARATOR = "."

Segment = str | int


def escape_key(key: str) -> str:
    """Escape one map key so it forms a single, unambiguous segment."""
    escaped = key.replace(ESCAPE, ESCAPE * 2).replace(SEPARATOR, ESCAPE + SEPARATOR)
    if key.isdigit():
        return ESCAPE + escaped
    return escaped


def join_key(segments: list[Segment]) -> str:
    """Build a flat key from raw segments (``int`` = list index)."""
    return SEPARATOR.join(
        str(segment) if isinstance(segment, int) else escape_key(segment)
        for segment in segments
    )


def split_key(key: str) -> list[Segment]:
    """Split a flat key into segments, unescaping map keys."""
    segments: list[Segment] = []
    current: list[str] = []
    escaped = False
    raw_escaped = False  # whether the current segment contained an escape
    for char in key:
        if escaped:
            current.append(char)
            escaped = False
        elif char == ESCAPE:
            escaped = raw_escaped = True
        elif char == SEPARATOR:
            segments.append(_make_segment(current, raw_escaped))
            current, raw_escaped = [], False
        else:
            current.append(char)
    if escaped:  # dangling escape, keep it literally
        current.append(ESCAPE)
    segments.append(_make_segment(current, raw_escaped))
    return segments


def _make_segment(chars: list[str], had_escape: bool) -> Segment:
    text = "".join(chars)
    if not had_escape and text.isdigit():
        return int(text)
    return text


def flatten(tree: Mapping[str, Any]) -> dict[str, Any]:
    """Flatten a nested map into a single-level map with dotted keys."""
    result: dict[str, Any] = {}

    def walk(value: Any, segments: list[Segment]) -> None:
        if isinstance(value, Mapping) and value:
            for key, child in value.items():
                walk(child, [*segments, str(key)])
        elif isinstance(value, list) and value:
            for index, child in enumerate(value):
                walk(child, [*segments, index])
        else:
            result[join_key(segments)] = value

    for key, value in tree.items():
        walk(value, [str(key)])
    return result


def unflatten(flat: Mapping[str, Any]) -> dict[str, Any]:
    """Rebuild the nested map from a flat dotted-key map.

    Missing list positions are filled with ``None``.
    """
    root: dict[str, Any] = {}
    for key, value in flat.items():
        segments = split_key(key)
        node: Any = root
        for segment, next_segment in pairwise(segments):
            node = _ensure_child(node, segment, [] if isinstance(next_segment, int) else {})
        _set_child(node, segments[-1], value)
    return root


def _ensure_child(node: Any, segment: Segment, empty: Any) -> Any:
    if isinstance(node, list):
        index = _as_index(segment)
        _pad(node, index)
        if not isinstance(node[index], dict | list):
            node[index] = empty
        return node[index]
    key = str(segment)
    child = node.get(key)
    if not isinstance(child, dict | list):
        child = node[key] = empty
    return child


def _set_child(node: Any, segment: Segment, value: Any) -> None:
    if isinstance(node, list):
        index = _as_index(segment)
        _pad(node, index)
        node[index] = value
    else:
        node[str(segment)] = value


def _as_index(segment: Segment) -> int:
    if isinstance(segment, int):
        return segment
    msg = f"Map key {segment!r} used where a list index is expected"
    raise ValueError(msg)


def _pad(items: list[Any], index: int) -> None:
    if len(items) <= index:
        items.extend([None] * (index + 1 - len(items)))
