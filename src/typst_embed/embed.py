"""
Directory embedding.

Turns a directory into an ordered tree of :class:`EmbedFile` and
:class:`EmbedDir` nodes whose contents live in a :class:`CompressionCache`.
Entries are sorted by name at every level so the same input produces the
same tree on any filesystem.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from typst_embed.compression import BlobInfo, CompressionCache
from typst_embed.errors import CacheIOError
from typst_embed.logging import get_logger
from typst_embed.stats import CategoryStats

logger = get_logger("embed")

FileFilter = Callable[[Path], bool]

FONT_EXTENSIONS = frozenset({"ttf", "otf", "ttc"})


def is_font_file(path: Path) -> bool:
    """Supported font formats: TTF, OTF, TTC."""
    return path.suffix[1:].lower() in FONT_EXTENSIONS


def is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


@dataclass(frozen=True)
class EmbedFile:
    name: str
    path: str  # POSIX path relative to the directory passed to embed_dir
    blob: BlobInfo


@dataclass(frozen=True)
class EmbedDir:
    name: str
    path: str
    entries: tuple[EmbedNode, ...] = ()

    def iter_files(self) -> Iterator[EmbedFile]:
        yield from _iter_files(self.entries)


EmbedNode = Union[EmbedFile, EmbedDir]


def _iter_files(entries: tuple[EmbedNode, ...]) -> Iterator[EmbedFile]:
    for entry in entries:
        if isinstance(entry, EmbedFile):
            yield entry
        else:
            yield from _iter_files(entry.entries)


@dataclass(frozen=True)
class DirEmbedResult:
    """Embedded tree of one directory plus its size totals."""

    entries: tuple[EmbedNode, ...] = ()
    original_size: int = 0
    compressed_size: int = 0
    file_count: int = 0

    def iter_files(self) -> Iterator[EmbedFile]:
        """Every file node, depth first, in tree order."""
        yield from _iter_files(self.entries)

    def to_stats(self) -> CategoryStats:
        return CategoryStats(
            original_size=self.original_size,
            compressed_size=self.compressed_size,
            file_count=self.file_count,
        )

    def as_dir(self, name: str, path: str) -> EmbedDir:
        """Wrap the entries in a directory node named *name*."""
        return EmbedDir(name=name, path=path, entries=self.entries)


class _Totals:
    def __init__(self) -> None:
        self.original_size = 0
        self.compressed_size = 0
        self.file_count = 0


def embed_dir(
    directory: Path,
    cache: CompressionCache,
    file_filter: FileFilter | None = None,
) -> DirEmbedResult:
    """Embed every visible file under *directory*.

    Args:
        directory: Root to embed. A missing root gives an empty result.
        cache: Compression cache that receives every file's bytes.
        file_filter: Optional predicate on file paths.

    Subdirectories that end up with no entries are omitted.
    """
    if not directory.is_dir():
        logger.debug("Nothing to embed at %s", directory)
        return DirEmbedResult()

    totals = _Totals()
    entries = _scan(directory, "", cache, file_filter, totals)
    return DirEmbedResult(
        entries=entries,
        original_size=totals.original_size,
        compressed_size=totals.compressed_size,
        file_count=totals.file_count,
    )


def embed_fonts_dir(directory: Path, cache: CompressionCache) -> DirEmbedResult:
    """Embed only the font files under *directory*."""
    return embed_dir(directory, cache, file_filter=is_font_file)


def _scan(
    current: Path,
    rel_dir: str,
    cache: CompressionCache,
    file_filter: FileFilter | None,
    totals: _Totals,
) -> tuple[EmbedNode, ...]:
    try:
        children = sorted(current.iterdir(), key=lambda p: p.name)
    except OSError as e:
        raise CacheIOError(f"Failed to list {current}: {e}") from e

    entries: list[EmbedNode] = []
    for child in children:
        if is_hidden(child) or child.is_symlink():
            continue

        rel = f"{rel_dir}/{child.name}" if rel_dir else child.name

        if child.is_file():
            if file_filter is not None and not file_filter(child):
                continue
            try:
                data = child.read_bytes()
            except OSError as e:
                raise CacheIOError(f"Failed to read {child}: {e}") from e
            blob = cache.compress(data)
            totals.original_size += len(data)
            totals.compressed_size += blob.compressed_size
            totals.file_count += 1
            entries.append(EmbedFile(name=child.name, path=rel, blob=blob))
        elif child.is_dir():
            sub_entries = _scan(child, rel, cache, file_filter, totals)
            if not sub_entries:
                continue
            entries.append(EmbedDir(name=child.name, path=rel, entries=sub_entries))

    return tuple(entries)
