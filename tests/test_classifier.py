"""Tests for repository path classification."""

from __future__ import annotations

from cms_sync.classifier import PathClassifier, classify, get_asset_folders, get_asset_kind
from cms_sync.models import AssetKind, EntryFolder, RepositoryFile


def _files(*paths: str) -> list[RepositoryFile]:
    return [RepositoryFile(path, f"sha-{path}") for path in paths]


def test_classify_site_files(site):
    """Test the split into entry, asset and config files."""
    result = classify(
        _files(
            "content/posts/a.md",
            "content/pages/about.ja.md",
            "data/general.json",
            "data/menu.ja.yml",
            "static/images/logo.png",
            "static/images/+hidden.png",
            ".gitignore",
            ".gitattributes",
            ".env",
            "README.md",
        ),
        site,
    )
    assert [f.path for f in result.entry_files] == [
        "content/posts/a.md",
        "content/pages/about.ja.md",
        "data/general.json",
        "data/menu.ja.yml",
    ]
    assert [f.path for f in result.asset_files] == ["static/images/logo.png"]
    assert [f.path for f in result.config_files] == [".gitignore", ".gitattributes"]


def test_entry_folders(site):
    classifier = PathClassifier(site)
    assert classifier.get_entry_folder("content/posts/nested/a.md") == EntryFolder("posts")
    assert classifier.get_entry_folder("content/posts/a.txt") is None
    folder = classifier.get_entry_folder("data/menu.en.yml")
    assert folder is not None
    assert folder.collection_name == "settings"
    assert folder.file_name == "menu"
    assert folder.file_path_map == {"en": "data/menu.en.yml", "ja": "data/menu.ja.yml"}


def test_multiple_files_requires_locale_suffix(site):
    classifier = PathClassifier(site)
    # unknown locale suffixes stay part of the slug
    assert classifier.get_entry_folder("content/pages/about.md") == EntryFolder("pages")
    assert classifier.get_entry_folder("content/pages/about.fr.md") == EntryFolder("pages")


def test_entry_files_take_precedence_over_assets(make_site):
    site = make_site(
        collections=[
            {"name": "blog", "folder": "content/blog", "path": "{{slug}}/index"},
        ],
    )
    result = classify(
        _files("content/blog/hello/index.md", "content/blog/hello/cover.jpg"),
        site,
    )
    assert [f.path for f in result.entry_files] == ["content/blog/hello/index.md"]
    assert [f.path for f in result.asset_files] == ["content/blog/hello/cover.jpg"]
    folder = result.asset_files[0].folder
    assert folder.collection_name == "blog"
    assert folder.entry_relative


def test_index_files_are_never_assets(make_site):
    site = make_site(
        media_folder="content",
        collections=[{"name": "docs", "folder": "docs"}],
    )
    result = classify(_files("content/_index.md", "content/photo.png"), site)
    assert [f.path for f in result.asset_files] == ["content/photo.png"]


def test_asset_folders_order(make_site):
    site = make_site(
        media_folder="static/uploads",
        collections=[
            {"name": "b", "folder": "content/b", "media_folder": "/static/b"},
            {"name": "a", "folder": "content/a", "media_folder": "{{media_folder}}/a"},
            {"name": "same", "folder": "content/s", "media_folder": "/static/uploads"},
            {"name": "rel", "folder": "content/rel", "media_folder": "images"},
        ],
    )
    folders = get_asset_folders(site)
    assert [(f.internal_path, f.collection_name) for f in folders] == [
        ("static/uploads", None),
        ("content/rel", "rel"),
        ("static/b", "b"),
        ("static/uploads/a", "a"),
    ]
    assert folders[1].entry_relative


def test_most_specific_asset_folder_wins(make_site):
    site = make_site(
        media_folder="static",
        collections=[{"name": "a", "folder": "content/a", "media_folder": "/static/a"}],
    )
    classifier = PathClassifier(site)
    folders = classifier.get_asset_folders_by_path("static/a/photo.jpg")
    assert [f.internal_path for f in folders] == ["static/a", "static"]
    assert classifier.get_asset_folders_by_path("static-old/photo.jpg") == []


def test_asset_kind():
    assert get_asset_kind("photo.JPG") is AssetKind.IMAGE
    assert get_asset_kind("clip.mp4") is AssetKind.VIDEO
    assert get_asset_kind("song.mp3") is AssetKind.AUDIO
    assert get_asset_kind("report.pdf") is AssetKind.DOCUMENT
    assert get_asset_kind("archive.zip") is AssetKind.OTHER
