"""Compression statistics for embedded content."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

KB = 1024
MB = KB * 1024


def format_size(size: int) -> str:
    """Human-readable byte count."""
    if size >= MB:
        return f"{size / MB:.2f} MB"
    if size >= KB:
        return f"{size / KB:.1f} KB"
    return f"{size} B"


def reduction_ratio(original: int, compressed: int) -> float:
    """``1 - compressed / original``; 0.0 when nothing was embedded."""
    if original == 0:
        return 0.0
    return 1.0 - compressed / original


@dataclass(frozen=True)
class CategoryStats:
    """Sizes for one category of files (templates, fonts)."""

    original_size: int = 0
    compressed_size: int = 0
    file_count: int = 0

    def compression_ratio(self) -> float:
        return reduction_ratio(self.original_size, self.compressed_size)


@dataclass(frozen=True)
class PackageInfo:
    """Sizes for a single package, named like ``@preview/cetz:0.3.2``."""

    name: str
    original_size: int = 0
    compressed_size: int = 0
    file_count: int = 0

    def compression_ratio(self) -> float:
        return reduction_ratio(self.original_size, self.compressed_size)


@dataclass(frozen=True)
class PackageStats:
    packages: tuple[PackageInfo, ...] = ()
    total_original: int = 0
    total_compressed: int = 0

    @classmethod
    def from_packages(cls, packages: list[PackageInfo]) -> PackageStats:
        return cls(
            packages=tuple(packages),
            total_original=sum(p.original_size for p in packages),
            total_compressed=sum(p.compressed_size for p in packages),
        )

    @property
    def file_count(self) -> int:
        return sum(p.file_count for p in self.packages)

    def compression_ratio(self) -> float:
        return reduction_ratio(self.total_original, self.total_compressed)


@dataclass(frozen=True)
class DedupStats:
    """How much content-addressing saved in one run."""

    total_files: int = 0
    unique_blobs: int = 0
    duplicate_count: int = 0
    saved_bytes: int = 0


@dataclass(frozen=True)
class EmbedStats:
    """Compression statistics for everything embedded by one bake."""

    templates: CategoryStats = field(default_factory=CategoryStats)
    fonts: CategoryStats = field(default_factory=CategoryStats)
    packages: PackageStats = field(default_factory=PackageStats)
    dedup: DedupStats = field(default_factory=DedupStats)

    def total_original(self) -> int:
        return (
            self.templates.original_size
            + self.packages.total_original
            + self.fonts.original_size
        )

    def total_compressed(self) -> int:
        return (
            self.templates.compressed_size
            + self.packages.total_compressed
            + self.fonts.compressed_size
        )

    def total_deduplicated(self) -> int:
        """Compressed bytes actually stored once duplicates share a blob."""
        return self.total_compressed() - self.dedup.saved_bytes

    def compression_ratio(self) -> float:
        return reduction_ratio(self.total_original(), self.total_compressed())

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["packages"]["packages"] = [asdict(p) for p in self.packages.packages]
        data["total_original"] = self.total_original()
        data["total_compressed"] = self.total_compressed()
        data["total_deduplicated"] = self.total_deduplicated()
        data["compression_ratio"] = self.compression_ratio()
        return data

    def format_report(self) -> str:
        """Render the statistics as an aligned plain-text table."""
        lines = ["Compression Statistics:", "=" * 24]

        if self.templates.file_count > 0:
            lines.append(_category_line("Templates:", self.templates))
        if self.fonts.file_count > 0:
            lines.append(_category_line("Fonts:", self.fonts))

        pkgs = self.packages.packages
        if pkgs:
            lines.append("Packages:")
            name_w = max(len(p.name) for p in pkgs)
            orig_w = max(len(format_size(p.original_size)) for p in pkgs)
            comp_w = max(len(format_size(p.compressed_size)) for p in pkgs)
            for p in pkgs:
                lines.append(
                    f"  {p.name:<{name_w}}  {format_size(p.original_size):>{orig_w}}"
                    f" -> {format_size(p.compressed_size):>{comp_w}}"
                    f"  ({p.compression_ratio() * 100:>5.1f}%)"
                )

        if self.dedup.duplicate_count > 0:
            lines.append(
                f"Dedup:      {self.dedup.duplicate_count} duplicate(s),"
                f" {self.dedup.unique_blobs} unique blob(s),"
                f" {format_size(self.dedup.saved_bytes)} saved"
            )

        lines.append("-" * 24)
        lines.append(
            f"Total: {format_size(self.total_original())} -> "
            f"{format_size(self.total_compressed())} "
            f"({self.compression_ratio() * 100:.1f}% reduced)"
        )
        if self.dedup.saved_bytes > 0:
            lines.append(f"After dedup: {format_size(self.total_deduplicated())}")
        return "\n".join(lines)


def _category_line(label: str, stats: CategoryStats) -> str:
    return (
        f"{label:<12}{format_size(stats.original_size):>9} -> "
        f"{format_size(stats.compressed_size):>9} "
        f"({stats.compression_ratio() * 100:>5.1f}% reduced, {stats.file_count} files)"
    )
