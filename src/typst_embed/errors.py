"""
Error types for typst-embed.

Every failure the pipeline surfaces derives from :class:`BakeError` so a
host build step can catch one type and print the message verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typst_embed.packages.models import PackageSpec


class BakeError(Exception):
    """Base class for all typst-embed errors."""


class ConfigurationError(BakeError):
    """A required directory or setting is missing or unusable."""


class NotFoundError(BakeError):
    """A package is absent from every searched location."""

    def __init__(self, spec: PackageSpec, searched: list[Path]) -> None:
        self.spec = spec
        self.searched = list(searched)
        paths = ", ".join(str(p) for p in self.searched)
        super().__init__(f"package {spec} not found (searched: {paths})")


class DownloadError(BakeError):
    """Network or HTTP failure while fetching a package archive."""

    def __init__(self, url: str, message: str, status_code: int | None = None) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(f"{message} ({url})")


class ExtractionError(BakeError):
    """The downloaded archive could not be unpacked."""


class DecompressionError(BakeError):
    """An embedded or cached blob is not valid zstd data."""


class CacheIOError(BakeError):
    """Generic filesystem failure while reading or writing a cache."""


class EntryNotFoundError(BakeError):
    """A requested file is not part of the embedded trees."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"entry file not found: {path}")


class InvalidUtf8Error(BakeError):
    """An embedded source file is not valid UTF-8."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"{path} is not valid UTF-8")


@dataclass(frozen=True)
class PackageFailure:
    """Why a single package could not be resolved."""

    spec: PackageSpec
    reason: str
    searched: list[Path] = field(default_factory=list)

    def format_human(self) -> str:
        line = f"{self.spec}: {self.reason}"
        if self.searched:
            line += "".join(f"\n      searched: {p}" for p in self.searched)
        return line


class PackageResolutionError(BakeError):
    """One or more packages failed to resolve.

    Failures are collected over the whole traversal so the message lists
    every problem at once.
    """

    def __init__(self, failures: list[PackageFailure]) -> None:
        self.failures = list(failures)
        super().__init__(self.format_human())

    def format_human(self) -> str:
        lines = [f"Failed to resolve {len(self.failures)} package(s):"]
        for failure in self.failures:
            lines.append(f"  - {failure.format_human()}")
        if any(not f.searched for f in self.failures):
            lines.append("")
            lines.append("Please check your internet connection.")
        return "\n".join(lines)
