"""
The bake pipeline.

``bake()`` is what a build step calls: it scans the templates for package
imports, resolves and downloads the packages, compresses everything
through one shared cache and returns a :class:`Bundle`.
"""

from __future__ import annotations

from typst_embed.bundle import Bundle, package_tree
from typst_embed.compression import CompressionCache
from typst_embed.config import BakeConfig
from typst_embed.embed import DirEmbedResult, embed_dir, embed_fonts_dir
from typst_embed.errors import ConfigurationError
from typst_embed.logging import get_logger
from typst_embed.packages.downloader import PackageDownloader
from typst_embed.packages.models import PackageSpec, ResolvedPackage
from typst_embed.packages.resolver import PackageResolver
from typst_embed.packages.scanner import extract_packages
from typst_embed.stats import EmbedStats, PackageInfo, PackageStats

logger = get_logger("pipeline")


def resolve_packages(
    config: BakeConfig,
    downloader: PackageDownloader | None = None,
) -> list[ResolvedPackage]:
    """Find the packages imported by the templates and resolve them."""
    logger.info("Scanning for package imports...")
    specs = extract_packages(config.template_dir)
    if not specs:
        logger.info("No packages found")
        return []

    logger.info("Found %d package(s) to bundle", len(specs))
    try:
        config.package_cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(f"Failed to create cache directory: {e}") from e

    resolver = PackageResolver(
        cache_dir=config.package_cache_dir,
        local_dir=config.local_packages_dir,
        refresh=config.refresh,
        downloader=downloader,
        registry_url=config.registry_url,
    )
    return resolver.resolve(sorted(specs))


def bake(
    config: BakeConfig,
    entry: str,
    downloader: PackageDownloader | None = None,
) -> Bundle:
    """Embed templates, fonts and packages for *entry*.

    Raises:
        ConfigurationError: if the template directory or entry file is missing.
        PackageResolutionError: if any package could not be resolved.
    """
    template_dir = config.template_dir
    if not template_dir.is_dir():
        raise ConfigurationError(f"Template directory does not exist: {template_dir}")
    entry_path = template_dir / entry
    if not entry_path.is_file():
        raise ConfigurationError(f"Entry file not found: {entry_path}")
    if config.fonts_dir is not None and not config.fonts_dir.is_dir():
        raise ConfigurationError(f"Fonts directory does not exist: {config.fonts_dir}")

    resolved = resolve_packages(config, downloader=downloader)

    cache = CompressionCache(
        config.compression_cache_dir,
        config.compression_level,
        refresh=config.refresh,
    )

    templates = embed_dir(template_dir, cache)
    fonts = (
        embed_fonts_dir(config.fonts_dir, cache)
        if config.fonts_dir is not None
        else DirEmbedResult()
    )

    package_results: list[tuple[PackageSpec, DirEmbedResult]] = []
    package_infos: list[PackageInfo] = []
    for package in sorted(resolved, key=lambda p: p.spec):
        result = embed_dir(package.path, cache)
        package_results.append((package.spec, result))
        package_infos.append(
            PackageInfo(
                name=str(package.spec),
                original_size=result.original_size,
                compressed_size=result.compressed_size,
                file_count=result.file_count,
            )
        )
    packages = package_tree(package_results)

    cache.log_summary()
    cache.cleanup()

    stats = EmbedStats(
        templates=templates.to_stats(),
        fonts=fonts.to_stats(),
        packages=PackageStats.from_packages(package_infos),
        dedup=cache.dedup_stats(),
    )

    return Bundle(
        entry=entry,
        templates=templates,
        fonts=fonts,
        packages=packages,
        blobs=cache.blobs,
        stats=stats,
        resolved=sorted(resolved, key=lambda p: p.spec),
    )
