"""Tests for site configuration loading."""

from __future__ import annotations

import pytest

from cms_sync.config import CollectionConfig, IndexFileOptions, SiteConfig
from cms_sync.exceptions import ConfigError


def test_from_yaml(site):
    assert site.backend.repository_id == "github:owner/site"
    assert site.backend.commit_messages.create == "Create {{collection}} “{{slug}}”"
    posts = site.get_collection("posts")
    assert posts is not None
    assert posts.is_entry_collection
    assert posts.display_name == "Post"
    settings = site.get_collection("settings")
    assert settings is not None
    assert not settings.is_entry_collection
    assert settings.get_file("menu").file == "data/menu.{{locale}}.yml"
    assert site.get_collection("missing") is None


def test_from_file(tmp_path, site_yaml):
    path = tmp_path / "site.yml"
    path.write_text(site_yaml, encoding="utf-8")
    assert SiteConfig.from_file(path).backend.repo == "owner/site"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="Failed to read"):
        SiteConfig.from_file(tmp_path / "missing.yml")


def test_invalid_yaml():
    with pytest.raises(ConfigError, match="not valid YAML"):
        SiteConfig.from_yaml("backend: [unclosed")


def test_invalid_configuration():
    with pytest.raises(ConfigError, match="Invalid site configuration"):
        SiteConfig.from_yaml("collections: []\n")


def test_collection_needs_folder_or_files():
    with pytest.raises(ConfigError, match="Either 'folder' or 'files'"):
        SiteConfig.from_yaml("backend:\n  repo: a/b\ncollections:\n  - name: x\n")


def test_index_file_options():
    assert CollectionConfig(name="a", folder="a", index_file=True).get_index_file() == (
        IndexFileOptions()
    )
    custom = CollectionConfig(name="a", folder="a", index_file={"name": "index"})
    assert custom.get_index_file() == IndexFileOptions(name="index")
    assert CollectionConfig(name="a", files=[], index_file=True).get_index_file() is None


def test_commit_messages_reject_unknown_keys():
    with pytest.raises(ConfigError):
        SiteConfig.from_yaml(
            "backend:\n  repo: a/b\n  commit_messages:\n    publish: x\n"
        )
