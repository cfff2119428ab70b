"""Tests for Bundle access and package tree layout."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from typst_embed.bundle import Bundle, package_tree
from typst_embed.compression import CompressionCache, decompress
from typst_embed.embed import DirEmbedResult, EmbedDir, embed_dir, embed_fonts_dir
from typst_embed.errors import EntryNotFoundError, InvalidUtf8Error
from typst_embed.packages.models import PackageSpec
from typst_embed.stats import EmbedStats

CETZ = PackageSpec("preview", "cetz", "0.3.2")


@pytest.fixture
def bundle(tree) -> Bundle:
    templates_dir = tree("templates", {
        "main.typ": '\ufeff#import "@preview/cetz:0.3.2"\n= Hello\n',
        "lib/util.typ": "#let x = 1\n",
        "bad.typ": b"\xff\xfe",
    })
    fonts_dir = tree("fonts", {"Inter.ttf": b"font-bytes", "OFL.txt": "license"})
    cetz_dir = tree("cetz", {"src/lib.typ": "#let canvas = none\n"})

    cache = CompressionCache(None, level=3)
    templates = embed_dir(templates_dir, cache)
    fonts = embed_fonts_dir(fonts_dir, cache)
    packages = package_tree([(CETZ, embed_dir(cetz_dir, cache))])
    return Bundle(
        entry="main.typ",
        templates=templates,
        fonts=fonts,
        packages=packages,
        blobs=cache.blobs,
        stats=EmbedStats(templates=templates.to_stats(), fonts=fonts.to_stats()),
    )


class TestBundle:
    """Tests for reading embedded content back."""

    def test_template_paths(self, bundle: Bundle) -> None:
        """Should list every template file with forward slashes."""
        assert bundle.template_paths() == ["bad.typ", "lib/util.typ", "main.typ"]

    def test_read_template(self, bundle: Bundle) -> None:
        """Should decompress the stored bytes."""
        assert bundle.read_template("lib/util.typ") == b"#let x = 1\n"

    def test_read_template_backslashes(self, bundle: Bundle) -> None:
        """Windows separators in the lookup path are accepted."""
        assert bundle.read_template("lib\\util.typ") == b"#let x = 1\n"

    def test_missing_template(self, bundle: Bundle) -> None:
        """A missing path should raise EntryNotFoundError."""
        with pytest.raises(EntryNotFoundError):
            bundle.read_template("nope.typ")

    def test_entry_source_strips_bom(self, bundle: Bundle) -> None:
        """The entry is decoded as UTF-8 without its BOM."""
        source = bundle.entry_source()

        assert source.startswith("#import")
        assert "= Hello" in source

    def test_invalid_utf8(self, bundle: Bundle) -> None:
        """Undecodable sources raise InvalidUtf8Error."""
        with pytest.raises(InvalidUtf8Error):
            bundle.read_source("bad.typ")

    def test_read_package_file(self, bundle: Bundle) -> None:
        """Package files are addressed by spec and package-relative path."""
        assert bundle.read_package_file(CETZ, "src/lib.typ") == b"#let canvas = none\n"
        assert bundle.read_source("src/lib.typ", spec=CETZ).startswith("#let canvas")
        assert bundle.package_paths() == ["preview/cetz/0.3.2/src/lib.typ"]

    def test_missing_package_file(self, bundle: Bundle) -> None:
        """Unknown package files raise EntryNotFoundError."""
        with pytest.raises(EntryNotFoundError):
            bundle.read_package_file(PackageSpec("preview", "cetz", "9.9.9"), "src/lib.typ")

    def test_fonts(self, bundle: Bundle) -> None:
        """Only font files are embedded, and their data is recoverable."""
        assert bundle.font_data() == [b"font-bytes"]

    def test_blobs_read_only(self, bundle: Bundle) -> None:
        """The blob store cannot be mutated through the bundle."""
        with pytest.raises(TypeError):
            bundle.blobs["x"] = b""  # type: ignore[index]

    def test_manifest(self, bundle: Bundle) -> None:
        """The manifest describes trees by name and blob hash."""
        manifest = bundle.manifest()

        assert manifest["entry"] == "main.typ"
        assert [n["name"] for n in manifest["templates"]] == ["bad.typ", "lib", "main.typ"]
        assert manifest["packages"][0]["name"] == "preview"
        assert manifest["fonts"][0]["type"] == "file"

    def test_write(self, bundle: Bundle, tmp_path: Path) -> None:
        """write() stores the manifest and one file per unique blob."""
        out = tmp_path / "out"

        manifest_path = bundle.write(out)

        data = json.loads(manifest_path.read_text())
        assert data["entry"] == "main.typ"
        blob_files = sorted(p.stem for p in (out / "blobs").glob("*.zst"))
        assert blob_files == sorted(bundle.blobs)
        font_hash = data["fonts"][0]["hash"]
        assert decompress((out / "blobs" / f"{font_hash}.zst").read_bytes()) == b"font-bytes"


class TestPackageTree:
    """Tests for namespace/name/version nesting."""

    def test_sorted_nesting(self) -> None:
        """Namespaces, names and versions are nested and sorted."""
        empty = DirEmbedResult(original_size=10, compressed_size=5, file_count=1)
        result = package_tree([
            (PackageSpec("preview", "tablex", "0.0.8"), empty),
            (PackageSpec("local", "mine", "0.1.0"), empty),
            (PackageSpec("preview", "cetz", "0.3.2"), empty),
            (PackageSpec("preview", "cetz", "0.2.0"), empty),
        ])

        assert [n.name for n in result.entries] == ["local", "preview"]
        preview = result.entries[1]
        assert isinstance(preview, EmbedDir)
        assert [n.name for n in preview.entries] == ["cetz", "tablex"]
        cetz = preview.entries[0]
        assert isinstance(cetz, EmbedDir)
        assert [n.name for n in cetz.entries] == ["0.2.0", "0.3.2"]
        assert cetz.entries[1].path == "preview/cetz/0.3.2"
        assert result.file_count == 4
        assert result.original_size == 40

    def test_empty(self) -> None:
        """No packages give an empty tree."""
        assert package_tree([]).entries == ()
