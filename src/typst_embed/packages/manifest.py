"""Explicit dependencies declared in a package's ``typst.toml``."""
from __future__ import annotations

import tomllib
from pathlib import Path

from typst_embed.logging import get_logger
from typst_embed.packages.models import PackageSpec

logger = get_logger("manifest")

MANIFEST_NAME = "typst.toml"


def load_dependencies(package_dir: Path) -> list[PackageSpec]:
    """Read ``[package.dependencies]`` from the manifest in *package_dir*.

    Each entry has the form ``name = "namespace:version"``. A missing or
    unparsable manifest means no explicit dependencies.
    """
    manifest_path = package_dir / MANIFEST_NAME
    if not manifest_path.is_file():
        return []

    try:
        with open(manifest_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Ignoring unreadable manifest %s: %s", manifest_path, e)
        return []

    deps = data.get("package", {}).get("dependencies", {})
    if not isinstance(deps, dict):
        return []

    specs: list[PackageSpec] = []
    for name, value in deps.items():
        spec = PackageSpec.from_manifest_entry(name, value) if isinstance(value, str) else None
        if spec is None:
            logger.warning("Skipping malformed dependency %s = %r in %s", name, value, manifest_path)
            continue
        specs.append(spec)
    return specs
