"""Tests for assembling locale files into entries and back."""

from __future__ import annotations

import pytest

from cms_sync.classifier import PathClassifier
from cms_sync.exceptions import DecodeError, ReconciliationError
from cms_sync.models import DEFAULT_LOCALE_KEY, RepositoryFile
from cms_sync.paths import PathResolver
from cms_sync.reconciler import LocaleReconciler
from cms_sync.transports import git_blob_hash


def _assemble(site, files: dict[str, str]):
    resolver = PathResolver(site)
    repository_files = [
        RepositoryFile(path, git_blob_hash(text.encode()), len(text), text)
        for path, text in files.items()
    ]
    entry_files = PathClassifier(site, resolver).classify(repository_files).entry_files
    return LocaleReconciler(resolver).assemble(entry_files)


def _by_id(result):
    return {entry.id: entry for entry in result.entries}


def test_independent_entries(site):
    """Test that files of a collection without i18n become one entry each."""
    result = _assemble(
        site,
        {
            "content/posts/a.md": "---\ntitle: A\n---\n",
            "content/posts/b.md": "---\ntitle: B\n---\n",
        },
    )
    entries = _by_id(result)
    assert sorted(entries) == ["posts/a", "posts/b"]
    assert entries["posts/a"].slug == "a"
    assert list(entries["posts/a"].locales) == [DEFAULT_LOCALE_KEY]
    assert entries["posts/b"].locales[DEFAULT_LOCALE_KEY].content == {"title": "B"}
    assert result.errors == []


def test_multiple_files_merge_on_canonical_slug(site):
    result = _assemble(
        site,
        {
            "content/pages/about.md": "---\ntitle: About\ntranslationKey: about\n---\nHello",
            "content/pages/about.ja.md": "---\ntitle: 概要\ntranslationKey: about\n---\nやあ",
        },
    )
    assert len(result.entries) == 1
    entry = result.entries[0]
    assert entry.id == "pages/about"
    assert list(entry.locales) == ["en", "ja"]
    assert entry.locales["ja"].content == {
        "title": "概要",
        "translationKey": "about",
        "body": "やあ",
    }
    assert entry.locales["en"].path == "content/pages/about.md"
    assert entry.sha == entry.locales["en"].sha


def test_localized_slugs_share_one_entry(site):
    result = _assemble(
        site,
        {
            "content/pages/about.ja.md": "---\ntranslationKey: about\n---\n",
            "content/pages/gaiyou.ja.md": "---\ntranslationKey: other\n---\n",
            "content/pages/about-us.md": "---\ntranslationKey: about\n---\n",
        },
    )
    entries = _by_id(result)
    assert set(entries) == {"pages/about-us", "pages/gaiyou"}
    entry = entries["pages/about-us"]
    assert entry.locales["ja"].slug == "about"
    assert entry.locales["en"].slug == "about-us"


def test_single_file_layout(site):
    text = "en:\n  title: Todo\nja:\n  title: やること\n"
    result = _assemble(site, {"content/notes/todo.yml": text})
    entry = result.entries[0]
    assert entry.id == "notes/todo"
    assert entry.locales["en"].content == {"title": "Todo"}
    assert entry.locales["ja"].content == {"title": "やること"}
    assert entry.locales["ja"].path == "content/notes/todo.yml"


def test_file_collections(site):
    result = _assemble(
        site,
        {
            "data/general.json": '{"site_name": "Example", "social": {"x": "@ex"}}',
            "data/menu.en.yml": "items:\n  - Home\n",
            "data/menu.ja.yml": "items:\n  - ホーム\n",
        },
    )
    entries = _by_id(result)
    general = entries["settings/general"]
    assert general.slug == "general"
    assert general.file_name == "general"
    content = general.locales[DEFAULT_LOCALE_KEY].content
    assert content == {"site_name": "Example", "social.x": "@ex"}
    menu = entries["settings/menu"]
    assert menu.locales["ja"].content == {"items.0": "ホーム"}
    assert sorted(menu.paths) == ["data/menu.en.yml", "data/menu.ja.yml"]


def test_undecodable_file_is_reported(site):
    result = _assemble(
        site,
        {
            "content/posts/good.md": "---\ntitle: Good\n---\n",
            "content/posts/bad.md": "---\ntitle: [unclosed\n---\n",
        },
    )
    assert [entry.id for entry in result.entries] == ["posts/good"]
    assert len(result.errors) == 1
    error = result.errors[0]
    assert isinstance(error, DecodeError)
    assert error.path == "content/posts/bad.md"


def test_locale_collision_is_reported(site):
    result = _assemble(
        site,
        {
            "content/pages/one.ja.md": "---\ntranslationKey: same\n---\n",
            "content/pages/two.ja.md": "---\ntranslationKey: same\n---\n",
        },
    )
    assert len(result.entries) == 1
    assert len(result.errors) == 1
    assert isinstance(result.errors[0], ReconciliationError)
    assert result.errors[0].path == "content/pages/two.ja.md"


def test_duplicate_ids_keep_first(make_site):
    site = make_site(collections=[{"name": "titled", "folder": "titled", "path": "{{title}}"}])
    result = _assemble(
        site,
        {"titled/x.md": "---\ntitle: Same\n---\n", "titled/y.md": "---\ntitle: Same\n---\n"},
    )
    assert [entry.locales[DEFAULT_LOCALE_KEY].path for entry in result.entries] == ["titled/x.md"]
    assert [error.path for error in result.errors] == ["titled/y.md"]


def test_empty_slug_is_reported(make_site):
    site = make_site(collections=[{"name": "titled", "folder": "titled", "path": "{{title}}"}])
    result = _assemble(site, {"titled/x.md": "---\ndraft: true\n---\n"})
    assert result.entries == []
    assert "empty slug" in str(result.errors[0])


def test_root_list_field(make_site):
    site = make_site(
        collections=[
            {
                "name": "data",
                "files": [{"name": "links", "file": "data/links.yml", "root_list_field": "links"}],
            },
        ],
    )
    result = _assemble(site, {"data/links.yml": "- a\n- b\n"})
    assert result.entries[0].locales[DEFAULT_LOCALE_KEY].content == {"links.0": "a", "links.1": "b"}
    bad = _assemble(site, {"data/links.yml": "key: value\n"})
    assert isinstance(bad.errors[0], ReconciliationError)


@pytest.mark.parametrize(("index_file", "expected"), [(False, []), (True, ["docs/_index"])])
def test_index_files(make_site, index_file, expected):
    site = make_site(
        collections=[{"name": "docs", "folder": "docs", "index_file": index_file}],
    )
    result = _assemble(site, {"docs/_index.md": "---\ntitle: Docs\n---\n"})
    assert [entry.id for entry in result.entries] == expected
    assert result.errors == []


def test_assemble_is_idempotent(site, transport):
    files = {
        path: data.decode()
        for path, data in transport.files.items()
        if path.startswith(("content/", "data/"))
    }
    first = _assemble(site, files)
    second = _assemble(site, files)
    assert first.entries == second.entries
    assert len({entry.id for entry in first.entries}) == len(first.entries) == 6


def test_disassemble_resolves_paths(site):
    resolver = PathResolver(site)
    result = _assemble(
        site,
        {
            "content/pages/about.md": "---\ntitle: About\ntranslationKey: about\n---\n",
            "content/pages/about.ja.md": "---\ntitle: 概要\ntranslationKey: about\n---\n",
        },
    )
    entry = result.entries[0]
    records = LocaleReconciler(resolver).disassemble(entry)
    assert [(r.locale, r.path) for r in records] == [
        ("en", "content/pages/about.md"),
        ("ja", "content/pages/about.ja.md"),
    ]
    assert records[1].content == entry.locales["ja"].content
