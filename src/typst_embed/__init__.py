"""
typst-embed - bake Typst templates, fonts and packages into a build artifact.

Scans templates for ``#import "@namespace/name:version"``, resolves the full
package graph (local directory, on-disk cache, or the registry), and
compresses every file through a content-addressed zstd cache.

Example:
    from pathlib import Path
    from typst_embed import BakeConfig, bake

    config = BakeConfig(template_dir=Path("templates"), fonts_dir=Path("fonts"))
    bundle = bake(config, "main.typ")

    print(bundle.stats.format_report())
    source = bundle.entry_source()
"""

from typst_embed.bundle import Bundle
from typst_embed.compression import (
    DEFAULT_LEVEL,
    BlobInfo,
    CacheSummary,
    CompressionCache,
    clamp_level,
    decompress,
)
from typst_embed.config import BakeConfig
from typst_embed.embed import (
    DirEmbedResult,
    EmbedDir,
    EmbedFile,
    embed_dir,
    embed_fonts_dir,
    is_font_file,
)
from typst_embed.errors import (
    BakeError,
    CacheIOError,
    ConfigurationError,
    DecompressionError,
    DownloadError,
    EntryNotFoundError,
    ExtractionError,
    InvalidUtf8Error,
    NotFoundError,
    PackageFailure,
    PackageResolutionError,
)
from typst_embed.packages import (
    PackageDownloader,
    PackageOrigin,
    PackageResolver,
    PackageSpec,
    ResolvedPackage,
    extract_packages,
)
from typst_embed.pipeline import bake, resolve_packages
from typst_embed.stats import (
    CategoryStats,
    DedupStats,
    EmbedStats,
    PackageInfo,
    PackageStats,
    format_size,
)

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "bake",
    "resolve_packages",
    "Bundle",
    "BakeConfig",
    # Packages
    "PackageSpec",
    "ResolvedPackage",
    "PackageOrigin",
    "PackageResolver",
    "PackageDownloader",
    "extract_packages",
    # Compression / embedding
    "CompressionCache",
    "CacheSummary",
    "BlobInfo",
    "DEFAULT_LEVEL",
    "clamp_level",
    "decompress",
    "DirEmbedResult",
    "EmbedDir",
    "EmbedFile",
    "embed_dir",
    "embed_fonts_dir",
    "is_font_file",
    # Stats
    "CategoryStats",
    "DedupStats",
    "EmbedStats",
    "PackageInfo",
    "PackageStats",
    "format_size",
    # Errors
    "BakeError",
    "CacheIOError",
    "ConfigurationError",
    "DecompressionError",
    "DownloadError",
    "EntryNotFoundError",
    "ExtractionError",
    "InvalidUtf8Error",
    "NotFoundError",
    "PackageFailure",
    "PackageResolutionError",
]
