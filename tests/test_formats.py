"""Tests for the YAML, TOML and JSON codecs and their front-matter variants."""

from __future__ import annotations

import pytest

from cms_sync.exceptions import DecodeError, EncodeError
from cms_sync.formats import (
    Format,
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


def test_json_decodes_flat_and_reencodes():
    """Test a JSON data file decoding to a flat map and encoding back."""
    data = b'{\n  "a": 1,\n  "b": {\n    "c": 2\n  }\n}\n'
    content = decode(data, path="data/config.json", extension="json")
    assert content == {"a": 1, "b.c": 2}
    encoded = encode(content, path="data/config.json", extension="json")
    assert decode(encoded, extension="json") == content
    assert encoded.decode().split() == data.decode().split()


def test_resolve_format():
    assert resolve_format("yml") is Format.YAML
    assert resolve_format("json", "toml") is Format.TOML
    assert resolve_format("md", text="+++\ntitle = 'x'\n+++\n") is Format.TOML_FRONTMATTER
    assert resolve_format("md", text='{\n"title": "x"\n}\n') is Format.JSON_FRONTMATTER
    assert resolve_format("md", text="---\ntitle: x\n---\n") is Format.YAML_FRONTMATTER
    assert resolve_format("html") is Format.YAML_FRONTMATTER
    assert resolve_format("txt", "frontmatter", text="+++\n+++") is Format.TOML_FRONTMATTER


def test_resolve_unknown_format():
    with pytest.raises(ValueError, match="Unsupported format"):
        resolve_format("md", "xml")


def test_detect_file_extension():
    assert detect_file_extension("yaml") == "yml"
    assert detect_file_extension("toml-frontmatter") == "md"
    assert detect_file_extension("json", "json5") == "json5"


def test_detect_frontmatter_format():
    assert detect_frontmatter_format("  +++") is Format.TOML_FRONTMATTER
    assert detect_frontmatter_format(None) is Format.YAML_FRONTMATTER


def test_frontmatter_delimiters():
    assert get_frontmatter_delimiters(Format.TOML_FRONTMATTER) == ("+++", "+++")
    assert get_frontmatter_delimiters(Format.JSON_FRONTMATTER) == ("{", "}")
    assert get_frontmatter_delimiters(Format.YAML_FRONTMATTER, "~~~") == ("~~~", "~~~")
    assert get_frontmatter_delimiters(Format.YAML_FRONTMATTER, ["<!--", "-->"]) == (
        "<!--",
        "-->",
    )


def test_yaml_frontmatter():
    text = "---\ntitle: Hello\ndate: 2024-01-02\n---\n\nSome *markdown*.\n"
    tree = load(text, Format.YAML_FRONTMATTER)
    assert tree == {"title": "Hello", "date": "2024-01-02", "body": "\nSome *markdown*."}
    assert dump(tree, Format.YAML_FRONTMATTER) == text


def test_toml_frontmatter_round_trip():
    text = '+++\ntitle = "Hello"\ndraft = false\n+++\nBody text\n'
    tree = load(text, Format.TOML_FRONTMATTER)
    assert tree == {"title": "Hello", "draft": False, "body": "Body text"}
    assert dump(tree, Format.TOML_FRONTMATTER) == text


def test_json_frontmatter_uses_object_braces():
    text = '{\n  "title": "Hello"\n}\nBody text\n'
    tree = load(text, Format.JSON_FRONTMATTER)
    assert tree == {"title": "Hello", "body": "Body text"}
    dumped = dump(tree, Format.JSON_FRONTMATTER)
    assert dumped.startswith("{")
    assert dumped.endswith("}\nBody text\n")
    assert load(dumped, Format.JSON_FRONTMATTER) == tree


def test_json_frontmatter_with_custom_delimiters():
    text = '---\n{"title": "Hello"}\n---\nBody'
    fmt = Format.JSON_FRONTMATTER
    tree = load(text, fmt, ("---", "---"))
    assert tree == {"title": "Hello", "body": "Body"}
    assert load(dump(tree, fmt, ("---", "---")), fmt, ("---", "---")) == tree


def test_frontmatter_without_header_is_body_only():
    assert load("Just text", Format.YAML_FRONTMATTER) == {"body": "Just text"}
    assert dump({"body": "Just text"}, Format.YAML_FRONTMATTER) == "Just text\n"


def test_empty_frontmatter_document_fails():
    with pytest.raises(DecodeError, match="No front matter"):
        decode("", extension="md")


def test_toml_dates_become_strings():
    tree = load("published = 2024-05-01T10:00:00Z\n", Format.TOML)
    assert tree == {"published": "2024-05-01T10:00:00+00:00"}


def test_yaml_keeps_top_level_list():
    assert parse("- a\n- b\n", extension="yaml") == ["a", "b"]


def test_yaml_multiline_strings_use_block_style():
    text = dump({"body": "line 1\nline 2"}, Format.YAML)
    assert text == "body: |-\n  line 1\n  line 2\n"


def test_yaml_double_quote_style():
    text = dump({"title": "Hi", "count": 3}, Format.YAML, quote_style="double")
    assert text == 'title: "Hi"\ncount: 3\n'


def test_line_endings_are_normalized():
    assert decode(b"---\r\ntitle: x\r\n---\r\nBody\r\n", extension="md") == {
        "title": "x",
        "body": "Body",
    }


def test_decode_error_carries_path():
    with pytest.raises(DecodeError) as exc_info:
        decode(b"title: [unclosed", path="content/bad.yml", extension="yml")
    assert exc_info.value.path == "content/bad.yml"


def test_decode_rejects_top_level_list():
    with pytest.raises(DecodeError, match="Expected a mapping"):
        decode("[1, 2]", extension="json")


def test_encode_toml_requires_table():
    with pytest.raises(EncodeError):
        encode(["a"], path="x.toml", extension="toml", nested=True)


def test_encode_toml_drops_none():
    assert encode({"a": 1, "b": None}, extension="toml") == b"a = 1\n"




def test_empty_frontmatter_document_keeps_header_block():
    assert dump({}, Format.YAML_FRONTMATTER) == "---\n---\n"
    assert dump({}, Format.TOML_FRONTMATTER) == "+++\n+++\n"
    assert dump({}, Format.JSON_FRONTMATTER) == "{\n}\n"
    assert load("---\n---\n", Format.YAML_FRONTMATTER) == {}
    assert decode(encode({}, extension="md"), extension="md") == {}


def test_yaml_trailing_blank_lines_are_kept():
    text = dump({"a": "x\n\n"}, Format.YAML)
    assert "|+" not in text
    assert load(text, Format.YAML) == {"a": "x\n\n"}


FORMATS = [
    ("yml", None),
    ("toml", None),
    ("json", None),
    ("md", None),
    ("md", "toml-frontmatter"),
    ("md", "json-frontmatter"),
]

CONTENTS = {
    "empty": {},
    "scalars": {"title": "Hello", "count": 3, "ratio": 0.5, "draft": True, "date": "2024-01-02"},
    "lists": {"tags.0": "a", "tags.1": "b", "items.0.name": "x", "items.1.name": "y"},
    "empty_containers": {"meta": {}, "tags": [], "nested.inner": {}},
    "multiline": {"summary": "line 1\nline 2\n", "notes": "x\n\n"},
    "trailing_block": {"summary": "line 1\nline 2\n"},
    "escaped_keys": {"a\\.b": 1, "\\1": "one", "path\\\\name": "p", "list.0": "x"},
    "none_values": {"title": "Hello", "subtitle": None},
    "body": {"title": "Hello", "body": "First paragraph\n\nSecond paragraph"},
}


@pytest.mark.parametrize(("extension", "declared"), FORMATS)
@pytest.mark.parametrize("name", list(CONTENTS))
def test_round_trip(extension, declared, name):
    content = CONTENTS[name]
    data = encode(content, extension=extension, declared_format=declared)
    expected = content
    if "toml" in (declared or extension):
        # TOML has no null
        expected = {key: value for key, value in content.items() if value is not None}
    assert decode(data, extension=extension, declared_format=declared) == expected
