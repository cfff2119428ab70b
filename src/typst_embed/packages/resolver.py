"""Package resolver: walks the dependency graph and fills the package cache."""
from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from pathlib import Path

from typst_embed.errors import (
    BakeError,
    NotFoundError,
    PackageFailure,
    PackageResolutionError,
)
from typst_embed.logging import get_logger
from typst_embed.packages.downloader import (
    DEFAULT_REGISTRY,
    PackageDownloader,
    package_url,
)
from typst_embed.packages.manifest import load_dependencies
from typst_embed.packages.models import PackageOrigin, PackageSpec, ResolvedPackage
from typst_embed.packages.scanner import extract_packages

logger = get_logger("resolver")


class ResolutionQueue:
    """FIFO of pending specs plus the set of specs already taken."""

    def __init__(self, specs: Iterable[PackageSpec] = ()) -> None:
        self._pending: deque[PackageSpec] = deque(specs)
        self._visited: set[PackageSpec] = set()

    def extend(self, specs: Iterable[PackageSpec]) -> None:
        self._pending.extend(specs)

    def mark_visited(self, spec: PackageSpec) -> bool:
        """Record *spec*; returns ``False`` if it was already visited."""
        if spec in self._visited:
            return False
        self._visited.add(spec)
        return True

    def pop(self) -> PackageSpec | None:
        """Next spec not visited yet, or ``None`` when drained."""
        while self._pending:
            spec = self._pending.popleft()
            if self.mark_visited(spec):
                return spec
        return None


class PackageResolver:
    """Resolves packages from a local directory, the cache, or the registry.

    Lookup order per package:

    1. ``local_dir/<namespace>/<name>/<version>`` when *local_dir* is set
    2. ``cache_dir/<namespace>/<name>/<version>`` unless *refresh*
    3. download from the registry (``preview`` namespace only)

    Dependencies of every resolved package, both those listed in
    ``typst.toml`` and those imported by its sources, are resolved too.
    """

    def __init__(
        self,
        cache_dir: Path,
        local_dir: Path | None = None,
        refresh: bool = False,
        downloader: PackageDownloader | None = None,
        registry_url: str = DEFAULT_REGISTRY,
    ) -> None:
        self.cache_dir = cache_dir
        self.local_dir = local_dir
        self.refresh = refresh
        self.registry_url = registry_url
        self._downloader = downloader or PackageDownloader()

    def resolve(self, direct_specs: Iterable[PackageSpec]) -> list[ResolvedPackage]:
        """Resolve *direct_specs* and everything they depend on.

        Raises:
            PackageResolutionError: listing every package that could not
                be resolved. Independent packages are still attempted.
        """
        queue = ResolutionQueue(direct_specs)
        resolved: list[ResolvedPackage] = []
        failures: list[PackageFailure] = []

        while (spec := queue.pop()) is not None:
            try:
                package = self._resolve_one(spec)
            except NotFoundError as e:
                logger.error("  Not found: %s", spec)
                failures.append(PackageFailure(spec=spec, reason="not found", searched=e.searched))
                continue
            except BakeError as e:
                logger.error("  Failed: %s: %s", spec, e)
                failures.append(PackageFailure(spec=spec, reason=str(e)))
                continue
            except OSError as e:
                logger.error("  Failed: %s: %s", spec, e)
                failures.append(PackageFailure(spec=spec, reason=f"I/O error: {e}"))
                continue

            resolved.append(package)
            queue.extend(self.dependencies_of(package.path))

        if failures:
            raise PackageResolutionError(failures)
        return resolved

    def _resolve_one(self, spec: PackageSpec) -> ResolvedPackage:
        searched: list[Path] = []

        if self.local_dir is not None:
            local_path = self.local_dir / spec.relative_path
            searched.append(local_path)
            if local_path.is_dir():
                logger.info("  Local: %s", spec)
                return ResolvedPackage(spec=spec, path=local_path, origin=PackageOrigin.LOCAL)

        cache_path = self.cache_dir / spec.relative_path
        searched.append(cache_path)
        if cache_path.is_dir() and not self.refresh:
            logger.info("  Cached: %s", spec)
            return ResolvedPackage(spec=spec, path=cache_path, origin=PackageOrigin.CACHE)

        if not spec.is_downloadable:
            raise NotFoundError(spec, searched)

        logger.info("  Downloading: %s", spec)
        self._downloader.fetch(
            package_url(spec, self.registry_url),
            cache_path,
            replace=self.refresh,
        )
        logger.info("  Downloaded: %s", spec)
        return ResolvedPackage(spec=spec, path=cache_path, origin=PackageOrigin.DOWNLOAD)

    @staticmethod
    def dependencies_of(package_dir: Path) -> list[PackageSpec]:
        """Explicit manifest dependencies followed by source imports."""
        deps = load_dependencies(package_dir)
        deps.extend(sorted(extract_packages(package_dir)))
        return deps
