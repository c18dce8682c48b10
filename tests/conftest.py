"""Test configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import pytest
import yamling

from cms_sync import SiteConfig
from cms_sync.models import (
    ChangeAction,
    ChangeOp,
    CommitResult,
    FileContents,
    LastCommit,
    RepositoryFile,
)
from cms_sync.store import MemoryStore
from cms_sync.transports import git_blob_hash


SITE_YAML = """
backend:
  name: github
  repo: owner/site
  branch: main
media_folder: static/images
i18n:
  structure: multiple_files
  locales: [en, ja]
  default_locale: en
collections:
  - name: posts
    label: Posts
    label_singular: Post
    folder: content/posts
  - name: pages
    folder: content/pages
    i18n:
      omit_default_locale_from_filename: true
  - name: notes
    folder: content/notes
    extension: yml
    i18n:
      structure: single_file
  - name: settings
    i18n: true
    files:
      - name: general
        file: data/general.json
      - name: menu
        file: data/menu.{{locale}}.yml
        i18n: true
"""


class FakeTransport:
    """In-memory repository transport counting every call."""

    def __init__(self, files: dict[str, str | bytes] | None = None, message: str = "Initial"):
        self.files: dict[str, bytes] = {}
        self.calls: dict[str, int] = {
            "fetch_last_commit": 0,
            "fetch_file_list": 0,
            "fetch_file_contents": 0,
            "commit": 0,
        }
        self.fetched: list[str] = []
        self.fail_on: str | None = None
        self.withheld: set[str] = set()
        """Paths whose content is silently left out of content fetches."""
        self.commits: list[tuple[list[ChangeOp], str]] = []
        self.revision = 0
        self.message = message
        for path, data in (files or {}).items():
            self.put(path, data)

    @property
    def head(self) -> str:
        return f"commit-{self.revision}"

    def put(self, path: str, data: str | bytes, message: str | None = None) -> None:
        """Write a file as a new commit."""
        self.files[path] = data.encode() if isinstance(data, str) else data
        self.revision += 1
        if message is not None:
            self.message = message

    def remove(self, path: str) -> None:
        del self.files[path]
        self.revision += 1

    def _track(self, operation: str) -> None:
        self.calls[operation] += 1
        if self.fail_on == operation:
            msg = f"{operation} unavailable"
            raise ConnectionError(msg)

    async def fetch_last_commit(self) -> LastCommit:
        self._track("fetch_last_commit")
        return LastCommit(self.head, self.message)

    async def fetch_file_list(self, last_hash: str) -> list[RepositoryFile]:
        self._track("fetch_file_list")
        return [
            RepositoryFile(path, git_blob_hash(data), len(data))
            for path, data in sorted(self.files.items())
        ]

    async def fetch_file_contents(
        self,
        files: Sequence[RepositoryFile],
    ) -> dict[str, FileContents]:
        self._track("fetch_file_contents")
        result = {}
        for file in files:
            if file.path in self.withheld:
                continue
            data = self.files[file.path]
            self.fetched.append(file.path)
            try:
                text: str | None = data.decode()
            except UnicodeDecodeError:
                text = None
            result[file.path] = FileContents(text, len(data), {"commit_date": "2024-01-01"})
        return result

    async def commit(self, changes: Sequence[ChangeOp], message: str) -> CommitResult:
        self._track("commit")
        hashes = {}
        for change in changes:
            if change.action is ChangeAction.DELETE:
                self.files.pop(change.path, None)
                continue
            if change.action is ChangeAction.MOVE and change.previous_path:
                self.files.pop(change.previous_path, None)
            data = change.data or b""
            self.files[change.path] = data
            hashes[change.path] = git_blob_hash(data)
        self.revision += 1
        self.message = message
        self.commits.append((list(changes), message))
        return CommitResult(self.head, hashes)


@pytest.fixture
def make_site() -> Callable[..., SiteConfig]:
    """Factory for the shared test site with replaced top-level keys."""

    def factory(**overrides: Any) -> SiteConfig:
        data = yamling.load_yaml(SITE_YAML)
        data.update(overrides)
        return SiteConfig.model_validate(data)

    return factory


@pytest.fixture
def site_yaml() -> str:
    return SITE_YAML


@pytest.fixture
def site() -> SiteConfig:
    return SiteConfig.from_yaml(SITE_YAML)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore("github:owner/site")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport({
        "content/posts/a.md": "---\ntitle: A\n---\nFirst post",
        "content/posts/b.md": "---\ntitle: B\ntags:\n  - x\n  - y\n---\nSecond post",
        "content/pages/about.md": "---\ntitle: About\ntranslationKey: about\n---\nHello",
        "content/pages/about.ja.md": "---\ntitle: 概要\ntranslationKey: about\n---\nこんにちは",
        "content/notes/todo.yml": "en:\n  title: Todo\nja:\n  title: やること\n",
        "data/general.json": (
            '{\n  "site_name": "Example",\n  "social": {\n    "x": "@ex"\n  }\n}\n'
        ),
        "data/menu.en.yml": "items:\n  - Home\n",
        "data/menu.ja.yml": "items:\n  - ホーム\n",
        "static/images/logo.png": b"\x89PNG\r\n\x1a\n\x00\x00",
        "static/images/+draft.png": b"\x89PNG",
        ".gitignore": "node_modules\n",
        ".DS_Store": b"\x00",
        "README.md": "# Site\n",
    })
