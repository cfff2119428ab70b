"""
Configuration for the bake pipeline.

Can be loaded from YAML, built from a dictionary, or constructed
programmatically; environment variables override file values.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from typst_embed.compression import DEFAULT_LEVEL, clamp_level
from typst_embed.packages.downloader import DEFAULT_REGISTRY

ENV_TEMPLATE_DIR = "TYPST_TEMPLATE_DIR"
ENV_FONTS_DIR = "TYPST_FONTS_DIR"
ENV_REFRESH = "TYPST_BAKE_REFRESH"
ENV_COMPRESSION_LEVEL = "TYPST_BAKE_COMPRESSION_LEVEL"
ENV_CACHE_DIR = "TYPST_BAKE_CACHE_DIR"
ENV_NO_CACHE = "TYPST_BAKE_NO_CACHE"


def user_cache_root() -> Path:
    """Platform cache root (``~/.cache``, ``~/Library/Caches``, ``%LOCALAPPDATA%``)."""
    if os.name == "nt":
        base = os.environ.get("LOCALAPPDATA")
        if base:
            return Path(base)
        return Path.home() / "AppData" / "Local"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches"
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".cache"


def default_cache_root() -> Path:
    return user_cache_root() / "typst-embed"


def _resolve(path: str | Path | None, base_dir: Path | None) -> Path | None:
    if path is None or path == "":
        return None
    p = Path(path).expanduser()
    if base_dir is not None and not p.is_absolute():
        p = base_dir / p
    return p


@dataclass
class BakeConfig:
    """
    Settings for one bake.

    Example YAML:
        template_dir: ./templates
        fonts_dir: ./fonts
        compression_level: 19
        local_packages_dir: ./vendor/typst-packages
        refresh: false
    """

    template_dir: Path = field(default_factory=lambda: Path("templates"))
    fonts_dir: Path | None = None

    # Package resolution
    package_cache_dir: Path = field(default_factory=lambda: default_cache_root() / "packages")
    local_packages_dir: Path | None = None
    registry_url: str = DEFAULT_REGISTRY
    refresh: bool = False  # Re-download even when cached

    # Compression
    compression_level: int = DEFAULT_LEVEL
    compression_cache_dir: Path | None = field(
        default_factory=lambda: default_cache_root() / "compression"
    )

    def __post_init__(self) -> None:
        self.compression_level = clamp_level(self.compression_level)

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: Path | None = None) -> BakeConfig:
        """Create config from a dictionary; relative paths resolve against *base_dir*."""
        defaults = cls()
        template_dir = _resolve(data.get("template_dir"), base_dir)
        package_cache_dir = _resolve(data.get("package_cache_dir"), base_dir)

        if "compression_cache_dir" in data:
            compression_cache_dir = _resolve(data["compression_cache_dir"], base_dir)
        else:
            compression_cache_dir = defaults.compression_cache_dir

        return cls(
            template_dir=template_dir or defaults.template_dir,
            fonts_dir=_resolve(data.get("fonts_dir"), base_dir),
            package_cache_dir=package_cache_dir or defaults.package_cache_dir,
            local_packages_dir=_resolve(data.get("local_packages_dir"), base_dir),
            registry_url=data.get("registry_url", DEFAULT_REGISTRY),
            refresh=bool(data.get("refresh", False)),
            compression_level=int(data.get("compression_level", DEFAULT_LEVEL)),
            compression_cache_dir=compression_cache_dir,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> BakeConfig:
        """Load config from a YAML file; paths are relative to the file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {}, base_dir=path.parent)

    @classmethod
    def from_yaml_string(cls, content: str, base_dir: Path | None = None) -> BakeConfig:
        """Load config from a YAML string."""
        data = yaml.safe_load(content)
        return cls.from_dict(data or {}, base_dir=base_dir)

    def with_env_overrides(
        self,
        environ: Mapping[str, str] | None = None,
        base_dir: Path | None = None,
    ) -> BakeConfig:
        """Return a copy with ``TYPST_*`` environment variables applied."""
        env = os.environ if environ is None else environ
        changes: dict[str, Any] = {}

        if env.get(ENV_TEMPLATE_DIR):
            changes["template_dir"] = _resolve(env[ENV_TEMPLATE_DIR], base_dir)
        if env.get(ENV_FONTS_DIR):
            changes["fonts_dir"] = _resolve(env[ENV_FONTS_DIR], base_dir)
        if ENV_REFRESH in env:
            changes["refresh"] = True
        if env.get(ENV_COMPRESSION_LEVEL):
            try:
                changes["compression_level"] = int(env[ENV_COMPRESSION_LEVEL])
            except ValueError:
                pass
        if env.get(ENV_CACHE_DIR):
            root = _resolve(env[ENV_CACHE_DIR], base_dir) or default_cache_root()
            changes["package_cache_dir"] = root / "packages"
            changes["compression_cache_dir"] = root / "compression"
        if ENV_NO_CACHE in env:
            changes["compression_cache_dir"] = None

        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary."""
        return {
            "template_dir": str(self.template_dir),
            "fonts_dir": str(self.fonts_dir) if self.fonts_dir else None,
            "package_cache_dir": str(self.package_cache_dir),
            "local_packages_dir": (
                str(self.local_packages_dir) if self.local_packages_dir else None
            ),
            "registry_url": self.registry_url,
            "refresh": self.refresh,
            "compression_level": self.compression_level,
            "compression_cache_dir": (
                str(self.compression_cache_dir) if self.compression_cache_dir else None
            ),
        }
