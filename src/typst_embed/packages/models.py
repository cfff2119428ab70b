"""Package data models."""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

# Namespace served by the public package registry.
DOWNLOADABLE_NAMESPACE = "preview"

_IDENTIFIER = re.compile(r"[\w-]+")
_VERSION = re.compile(r"[0-9.]+")


def is_valid_identifier(value: str) -> bool:
    """Non-empty, alphanumeric plus ``-`` and ``_``."""
    return bool(_IDENTIFIER.fullmatch(value))


def is_valid_version(value: str) -> bool:
    """Non-empty, digits and dots only."""
    return bool(_VERSION.fullmatch(value))


class PackageOrigin(str, Enum):
    """Where a resolved package was found."""

    LOCAL = "local"
    CACHE = "cache"
    DOWNLOAD = "download"


@dataclass(frozen=True, order=True)
class PackageSpec:
    """Identifies a package by namespace, name and exact version."""

    namespace: str
    name: str
    version: str

    def __str__(self) -> str:
        return f"@{self.namespace}/{self.name}:{self.version}"

    @classmethod
    def parse(cls, specifier: str) -> PackageSpec | None:
        """Parse ``@namespace/name:version``.

        Returns ``None`` for anything that is not a well formed package
        specifier, such as relative file imports.
        """
        if not specifier.startswith("@"):
            return None

        parts = specifier[1:].split("/")
        if len(parts) != 2:
            return None
        namespace, name_version = parts

        nv_parts = name_version.split(":")
        if len(nv_parts) != 2:
            return None
        name, version = nv_parts

        if not (
            is_valid_identifier(namespace)
            and is_valid_identifier(name)
            and is_valid_version(version)
        ):
            return None
        return cls(namespace=namespace, name=name, version=version)

    @classmethod
    def from_manifest_entry(cls, name: str, value: str) -> PackageSpec | None:
        """Build a spec from a manifest dependency ``name = "namespace:version"``.

        Entries whose parts would not survive ``parse`` are rejected, which
        also keeps ``relative_path`` inside the package store.
        """
        namespace, sep, version = value.partition(":")
        if not (
            sep
            and is_valid_identifier(namespace)
            and is_valid_identifier(name)
            and is_valid_version(version)
        ):
            return None
        return cls(namespace=namespace, name=name, version=version)

    @property
    def relative_path(self) -> Path:
        """``namespace/name/version`` as used by every package store."""
        return Path(self.namespace) / self.name / self.version

    @property
    def is_downloadable(self) -> bool:
        return self.namespace == DOWNLOADABLE_NAMESPACE


@dataclass(frozen=True)
class ResolvedPackage:
    """A package spec paired with the directory it was found in."""

    spec: PackageSpec
    path: Path
    origin: PackageOrigin = PackageOrigin.CACHE

    @property
    def display_name(self) -> str:
        return str(self.spec)
