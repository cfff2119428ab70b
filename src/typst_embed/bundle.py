"""
The embedded result of a bake.

A :class:`Bundle` holds the three embedded trees, the blob store they
point into, and the statistics. Files are decompressed only when read,
which is how a rendering stage consumes them.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

from typst_embed.compression import BlobInfo, decompress
from typst_embed.embed import DirEmbedResult, EmbedDir, EmbedFile, EmbedNode
from typst_embed.errors import EntryNotFoundError, InvalidUtf8Error
from typst_embed.packages.models import PackageSpec, ResolvedPackage
from typst_embed.stats import EmbedStats

UTF8_BOM = b"\xef\xbb\xbf"


def _file_index(entries: tuple[EmbedNode, ...], prefix: str = "") -> dict[str, BlobInfo]:
    index: dict[str, BlobInfo] = {}
    stack: list[tuple[str, EmbedNode]] = [(prefix, e) for e in entries]
    while stack:
        base, node = stack.pop()
        path = f"{base}/{node.name}" if base else node.name
        if isinstance(node, EmbedFile):
            index[path] = node.blob
        else:
            stack.extend((path, child) for child in node.entries)
    return index


def _node_to_dict(node: EmbedNode) -> dict[str, Any]:
    if isinstance(node, EmbedFile):
        return {
            "type": "file",
            "name": node.name,
            "hash": node.blob.hash,
            "original_size": node.blob.original_size,
            "compressed_size": node.blob.compressed_size,
        }
    return {
        "type": "dir",
        "name": node.name,
        "entries": [_node_to_dict(child) for child in node.entries],
    }


class Bundle:
    """Embedded templates, fonts and packages, ready for a compiler."""

    def __init__(
        self,
        entry: str,
        templates: DirEmbedResult,
        fonts: DirEmbedResult,
        packages: DirEmbedResult,
        blobs: Mapping[str, bytes],
        stats: EmbedStats,
        resolved: list[ResolvedPackage] | None = None,
    ) -> None:
        self._entry = entry
        self._templates = templates
        self._fonts = fonts
        self._packages = packages
        self._blobs = MappingProxyType(dict(blobs))
        self._stats = stats
        self._resolved = tuple(resolved or ())
        self._template_index = _file_index(templates.entries)
        self._package_index = _file_index(packages.entries)

    @property
    def entry(self) -> str:
        return self._entry

    @property
    def templates(self) -> DirEmbedResult:
        return self._templates

    @property
    def fonts(self) -> DirEmbedResult:
        return self._fonts

    @property
    def packages(self) -> DirEmbedResult:
        """Packages laid out as ``namespace/name/version/...``."""
        return self._packages

    @property
    def blobs(self) -> Mapping[str, bytes]:
        return self._blobs

    @property
    def stats(self) -> EmbedStats:
        return self._stats

    @property
    def resolved_packages(self) -> tuple[ResolvedPackage, ...]:
        return self._resolved

    def template_paths(self) -> list[str]:
        return sorted(self._template_index)

    def package_paths(self) -> list[str]:
        return sorted(self._package_index)

    def _read(self, blob: BlobInfo) -> bytes:
        return decompress(self._blobs[blob.hash])

    def read_template(self, path: str) -> bytes:
        blob = self._template_index.get(path.replace("\\", "/"))
        if blob is None:
            raise EntryNotFoundError(path)
        return self._read(blob)

    def read_package_file(self, spec: PackageSpec, path: str) -> bytes:
        rel = path.replace("\\", "/")
        full = f"{spec.namespace}/{spec.name}/{spec.version}/{rel}"
        blob = self._package_index.get(full)
        if blob is None:
            raise EntryNotFoundError(f"{spec}/{path}")
        return self._read(blob)

    def read_source(self, path: str, spec: PackageSpec | None = None) -> str:
        """Decode a source file as UTF-8, dropping a leading BOM."""
        data = self.read_package_file(spec, path) if spec else self.read_template(path)
        if data.startswith(UTF8_BOM):
            data = data[len(UTF8_BOM):]
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidUtf8Error(path) from e

    def entry_source(self) -> str:
        return self.read_source(self._entry)

    def iter_fonts(self) -> Iterator[bytes]:
        for font in self._fonts.iter_files():
            yield self._read(font.blob)

    def font_data(self) -> list[bytes]:
        return list(self.iter_fonts())

    def manifest(self) -> dict[str, Any]:
        """JSON-ready description of the trees and statistics."""
        return {
            "entry": self._entry,
            "templates": [_node_to_dict(n) for n in self._templates.entries],
            "fonts": [_node_to_dict(n) for n in self._fonts.entries],
            "packages": [_node_to_dict(n) for n in self._packages.entries],
            "stats": self._stats.to_dict(),
        }

    def write(self, output_dir: Path) -> Path:
        """Write ``manifest.json`` and one ``blobs/<hash>.zst`` per unique blob.

        Returns:
            Path of the written manifest.
        """
        blob_dir = output_dir / "blobs"
        blob_dir.mkdir(parents=True, exist_ok=True)
        for digest in sorted(self._blobs):
            (blob_dir / f"{digest}.zst").write_bytes(self._blobs[digest])

        manifest_path = output_dir / "manifest.json"
        manifest_path.write_text(
            json.dumps(self.manifest(), indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return manifest_path


def package_tree(results: list[tuple[PackageSpec, DirEmbedResult]]) -> DirEmbedResult:
    """Nest per-package results into ``namespace/name/version`` directories.

    Input order does not matter; the tree is sorted at every level.
    """
    by_ns: dict[str, dict[str, dict[str, DirEmbedResult]]] = {}
    for spec, result in results:
        by_ns.setdefault(spec.namespace, {}).setdefault(spec.name, {})[spec.version] = result

    ns_entries: list[EmbedNode] = []
    original = compressed = count = 0
    for ns in sorted(by_ns):
        name_entries: list[EmbedNode] = []
        for name in sorted(by_ns[ns]):
            version_entries: list[EmbedNode] = []
            for version in sorted(by_ns[ns][name]):
                result = by_ns[ns][name][version]
                original += result.original_size
                compressed += result.compressed_size
                count += result.file_count
                version_entries.append(result.as_dir(version, f"{ns}/{name}/{version}"))
            name_entries.append(EmbedDir(name=name, path=f"{ns}/{name}", entries=tuple(version_entries)))
        ns_entries.append(EmbedDir(name=ns, path=ns, entries=tuple(name_entries)))

    return DirEmbedResult(
        entries=tuple(ns_entries),
        original_size=original,
        compressed_size=compressed,
        file_count=count,
    )
