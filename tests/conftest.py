"""Shared test fixtures for typst-embed tests."""

from __future__ import annotations

import io
import tarfile
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from typst_embed.packages.downloader import PackageDownloader


def make_tar_gz(files: dict[str, bytes | str]) -> bytes:
    """Build a gzip tarball in memory from ``{path: content}``."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as archive:
        for name, content in sorted(files.items()):
            data = content.encode() if isinstance(content, str) else content
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            archive.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def write_tree(root: Path, files: dict[str, bytes | str]) -> Path:
    """Create ``{relative path: content}`` under *root*."""
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_bytes(content)
    return root


class FakeRegistry:
    """In-memory package registry served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.archives: dict[str, bytes] = {}
        self.requests: list[str] = []

    def add(self, namespace: str, name: str, version: str, files: dict[str, bytes | str]) -> None:
        self.archives[f"/{namespace}/{name}-{version}.tar.gz"] = make_tar_gz(files)

    def add_raw(self, namespace: str, name: str, version: str, body: bytes) -> None:
        self.archives[f"/{namespace}/{name}-{version}.tar.gz"] = body

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request.url.path)
        body = self.archives.get(request.url.path)
        if body is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def downloader(self) -> PackageDownloader:
        return PackageDownloader(client=self.client())


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def tree(tmp_path: Path) -> Callable[[str, dict[str, bytes | str]], Path]:
    """Factory writing a file tree into a fresh subdirectory of tmp_path."""

    def _make(name: str, files: dict[str, bytes | str]) -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        return write_tree(root, files)

    return _make
