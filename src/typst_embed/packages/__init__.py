"""Package discovery, download, and resolution."""
from __future__ import annotations

from typst_embed.packages.downloader import (
    DEFAULT_REGISTRY,
    PackageDownloader,
    extract_tar_gz,
    package_url,
)
from typst_embed.packages.lock import exclusive_lock, lock_path_for
from typst_embed.packages.manifest import load_dependencies
from typst_embed.packages.models import (
    DOWNLOADABLE_NAMESPACE,
    PackageOrigin,
    PackageSpec,
    ResolvedPackage,
)
from typst_embed.packages.resolver import (
    PackageResolver,
    ResolutionQueue,
)
from typst_embed.packages.scanner import extract_packages, parse_packages_from_source

__all__ = [
    "DEFAULT_REGISTRY",
    "DOWNLOADABLE_NAMESPACE",
    "PackageDownloader",
    "PackageOrigin",
    "PackageResolver",
    "PackageSpec",
    "ResolutionQueue",
    "ResolvedPackage",
    "exclusive_lock",
    "extract_packages",
    "extract_tar_gz",
    "load_dependencies",
    "lock_path_for",
    "package_url",
    "parse_packages_from_source",
]
