"""
Command-line interface for typst-embed.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from typst_embed.compression import clamp_level
from typst_embed.config import BakeConfig
from typst_embed.errors import BakeError
from typst_embed.logging import setup_logging
from typst_embed.packages.scanner import extract_packages
from typst_embed.pipeline import bake, resolve_packages
from typst_embed.stats import EmbedStats, format_size

console = Console()


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Embed Typst templates, fonts and packages",
        prog="typst-embed",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output (debug logging)",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log warnings and errors",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="YAML config file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    scan_parser = subparsers.add_parser("scan", help="List package imports in a directory")
    scan_parser.add_argument("dir", type=Path, help="Directory to scan")
    scan_parser.add_argument("--json", action="store_true", help="Output as JSON")

    resolve_parser = subparsers.add_parser(
        "resolve", help="Resolve and download the packages a template directory uses"
    )
    _add_common_options(resolve_parser)
    resolve_parser.add_argument("--json", action="store_true", help="Output as JSON")

    bake_parser = subparsers.add_parser("bake", help="Embed everything for an entry file")
    bake_parser.add_argument("entry", help="Entry file, relative to the template directory")
    _add_common_options(bake_parser)
    bake_parser.add_argument(
        "-l", "--level", type=int, help="zstd compression level (1-22)"
    )
    bake_parser.add_argument(
        "--no-cache", action="store_true", help="Disable the compression cache"
    )
    bake_parser.add_argument(
        "-o", "--output", type=Path, help="Write manifest.json and blobs/ here"
    )
    bake_parser.add_argument("--json", action="store_true", help="Print stats as JSON")

    subparsers.add_parser("config", help="Show the effective configuration")

    args = parser.parse_args(argv)

    if args.verbose:
        setup_logging("DEBUG")
    elif args.quiet:
        setup_logging("WARNING")
    else:
        setup_logging("INFO")
    load_dotenv()

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "scan": cmd_scan,
        "resolve": cmd_resolve,
        "bake": cmd_bake,
        "config": cmd_config,
    }
    try:
        return commands[args.command](args)
    except BakeError as e:
        console.print(f"[red]error:[/red] {e}", highlight=False, soft_wrap=True)
        return 1


def _add_common_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("-t", "--template-dir", type=Path, help="Template directory")
    p.add_argument("-f", "--fonts-dir", type=Path, help="Fonts directory")
    p.add_argument(
        "--local-packages", type=Path, help="Directory searched before the cache"
    )
    p.add_argument(
        "--refresh", action="store_true", help="Re-download packages even when cached"
    )


def load_config(args: argparse.Namespace) -> BakeConfig:
    """Config file, then environment, then command-line flags."""
    if args.config:
        config = BakeConfig.from_yaml(args.config)
    else:
        config = BakeConfig()
    config = config.with_env_overrides(base_dir=Path.cwd())

    if getattr(args, "template_dir", None):
        config.template_dir = args.template_dir
    if getattr(args, "fonts_dir", None):
        config.fonts_dir = args.fonts_dir
    if getattr(args, "local_packages", None):
        config.local_packages_dir = args.local_packages
    if getattr(args, "refresh", False):
        config.refresh = True
    if getattr(args, "level", None) is not None:
        config.compression_level = clamp_level(args.level)
    if getattr(args, "no_cache", False):
        config.compression_cache_dir = None
    return config


def cmd_scan(args: argparse.Namespace) -> int:
    specs = sorted(extract_packages(args.dir))
    if args.json:
        print(json.dumps([str(s) for s in specs], indent=2))
        return 0
    if not specs:
        console.print("[dim]No package imports found[/dim]")
        return 0
    for spec in specs:
        console.print(str(spec), highlight=False)
    return 0


def cmd_resolve(args: argparse.Namespace) -> int:
    config = load_config(args)
    resolved = sorted(resolve_packages(config), key=lambda p: p.spec)

    if args.json:
        print(json.dumps(
            [
                {"spec": str(p.spec), "path": str(p.path), "origin": p.origin.value}
                for p in resolved
            ],
            indent=2,
        ))
        return 0

    table = Table(title="Resolved Packages")
    table.add_column("Package", style="cyan")
    table.add_column("Origin")
    table.add_column("Path", style="dim")
    for p in resolved:
        table.add_row(str(p.spec), p.origin.value, str(p.path))
    console.print(table)
    return 0


def cmd_bake(args: argparse.Namespace) -> int:
    config = load_config(args)
    bundle = bake(config, args.entry)

    if args.output:
        manifest = bundle.write(args.output)
        console.print(f"[green]Wrote[/green] {manifest}")

    if args.json:
        print(json.dumps(bundle.stats.to_dict(), indent=2))
    else:
        print_stats(bundle.stats)
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    config = load_config(args)
    for key, value in config.to_dict().items():
        console.print(f"[bold]{key}[/bold]: {value}", highlight=False, soft_wrap=True)
    return 0


def print_stats(stats: EmbedStats) -> None:
    """Render *stats* as a rich table."""
    table = Table(title="Compression Statistics")
    table.add_column("Category", style="cyan")
    table.add_column("Files", justify="right")
    table.add_column("Original", justify="right")
    table.add_column("Compressed", justify="right")
    table.add_column("Reduced", justify="right", style="green")

    def row(label: str, count: int, original: int, compressed: int, ratio: float) -> None:
        table.add_row(
            label,
            str(count),
            format_size(original),
            format_size(compressed),
            f"{ratio * 100:.1f}%",
        )

    t, f = stats.templates, stats.fonts
    row("Templates", t.file_count, t.original_size, t.compressed_size, t.compression_ratio())
    row("Fonts", f.file_count, f.original_size, f.compressed_size, f.compression_ratio())
    for p in stats.packages.packages:
        row(f"  {p.name}", p.file_count, p.original_size, p.compressed_size, p.compression_ratio())
    table.add_section()
    row(
        "Total",
        t.file_count + f.file_count + stats.packages.file_count,
        stats.total_original(),
        stats.total_compressed(),
        stats.compression_ratio(),
    )
    console.print(table)

    if stats.dedup.duplicate_count:
        console.print(
            f"Dedup: {stats.dedup.duplicate_count} duplicate file(s) share "
            f"{stats.dedup.unique_blobs} blob(s), {format_size(stats.dedup.saved_bytes)} saved "
            f"({format_size(stats.total_deduplicated())} stored)"
        )


if __name__ == "__main__":
    sys.exit(main())
