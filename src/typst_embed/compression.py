"""
Content-addressed zstd compression cache.

Blobs are keyed by the SHA-256 of their uncompressed content. Within one
run identical content is compressed once and shared by every file that
carries it. Across runs compressed output is kept on disk as
``<hash>_<level>.zst`` so unchanged files are never recompressed.
"""

from __future__ import annotations

import hashlib
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

import zstandard

from typst_embed.errors import CacheIOError, DecompressionError
from typst_embed.logging import get_logger
from typst_embed.stats import DedupStats

logger = get_logger("compression")

MIN_LEVEL = 1
MAX_LEVEL = 22
DEFAULT_LEVEL = 19

CACHE_SUFFIX = ".zst"


def clamp_level(level: int) -> int:
    """Bound *level* to the range zstd supports."""
    return max(MIN_LEVEL, min(MAX_LEVEL, level))


def content_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def compress_bytes(data: bytes, level: int = DEFAULT_LEVEL) -> bytes:
    """Compress *data* into a single zstd frame that records its size."""
    return zstandard.ZstdCompressor(level=level, write_content_size=True).compress(data)


def decompress(data: bytes) -> bytes:
    """Decompress a zstd frame produced by :func:`compress_bytes`."""
    try:
        return zstandard.ZstdDecompressor().decompress(data)
    except zstandard.ZstdError as e:
        raise DecompressionError(f"decompression failed: {e}") from e


@dataclass(frozen=True)
class BlobInfo:
    """Handle to a stored blob."""

    hash: str
    compressed_size: int
    original_size: int


@dataclass(frozen=True)
class CacheSummary:
    """Counters for one run of the cache."""

    level: int
    enabled: bool
    hits: int
    misses: int
    dedup_hits: int
    unique_blobs: int
    saved_bytes: int

    @property
    def total(self) -> int:
        return self.hits + self.misses + self.dedup_hits


class CompressionCache:
    """Compresses file contents, deduplicating and caching the results.

    Args:
        cache_dir: Directory for persisted blobs. ``None`` disables the
            disk cache; in-memory deduplication still applies.
        level: zstd level, clamped to 1..22.
        refresh: Ignore existing disk entries and recompress everything,
            overwriting them.
    """

    def __init__(
        self,
        cache_dir: Path | None = None,
        level: int = DEFAULT_LEVEL,
        refresh: bool = False,
    ) -> None:
        self.cache_dir = cache_dir
        self.level = clamp_level(level)
        self.refresh = refresh
        if cache_dir is not None:
            try:
                cache_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning("Compression cache disabled: %s", e)
                self.cache_dir = None

        self._blobs: dict[str, bytes] = {}
        self._used_files: set[str] = set()
        self.hits = 0
        self.misses = 0
        self.dedup_hits = 0
        self.saved_bytes = 0

    @property
    def enabled(self) -> bool:
        return self.cache_dir is not None

    @property
    def blobs(self) -> Mapping[str, bytes]:
        """Read-only view of every blob produced this run, by hash."""
        return MappingProxyType(self._blobs)

    def blob(self, digest: str) -> bytes:
        return self._blobs[digest]

    def cache_filename(self, digest: str) -> str:
        return f"{digest}_{self.level}{CACHE_SUFFIX}"

    def compress(self, data: bytes) -> BlobInfo:
        """Compress *data*, reusing earlier results where possible."""
        digest = content_hash(data)
        filename = self.cache_filename(digest)
        if self.cache_dir is not None:
            self._used_files.add(filename)

        existing = self._blobs.get(digest)
        if existing is not None:
            self.dedup_hits += 1
            self.saved_bytes += len(existing)
            return BlobInfo(hash=digest, compressed_size=len(existing), original_size=len(data))

        compressed = None
        if self.cache_dir is not None and not self.refresh:
            compressed = self._read_cached(self.cache_dir / filename, len(data))

        if compressed is not None:
            self.hits += 1
        else:
            self.misses += 1
            compressed = compress_bytes(data, self.level)
            if self.cache_dir is not None:
                self._write_cached(self.cache_dir / filename, compressed)

        self._blobs[digest] = compressed
        return BlobInfo(hash=digest, compressed_size=len(compressed), original_size=len(data))

    def _read_cached(self, path: Path, expected_size: int) -> bytes | None:
        try:
            cached = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Ignoring unreadable cache entry %s: %s", path.name, e)
            return None

        try:
            size = zstandard.frame_content_size(cached)
        except zstandard.ZstdError:
            size = None
        if size != expected_size:
            logger.warning("Ignoring corrupt cache entry %s", path.name)
            return None
        return cached

    def _write_cached(self, path: Path, compressed: bytes) -> None:
        tmp_path = path.with_name(f".tmp_{os.getpid()}")
        try:
            tmp_path.write_bytes(compressed)
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise CacheIOError(f"Failed to write cache entry {path}: {e}") from e

    def cleanup(self) -> int:
        """Delete cache entries not used by this run.

        Returns:
            Number of files removed.
        """
        if self.cache_dir is None:
            return 0

        try:
            entries = list(self.cache_dir.iterdir())
        except OSError as e:
            logger.warning("Skipping cache cleanup: %s", e)
            return 0

        removed = 0
        for path in entries:
            if path.suffix != CACHE_SUFFIX or path.name in self._used_files:
                continue
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Failed to remove stale cache entry %s: %s", path.name, e)
        if removed:
            logger.debug("Removed %d stale cache entries", removed)
        return removed

    def summary(self) -> CacheSummary:
        return CacheSummary(
            level=self.level,
            enabled=self.enabled,
            hits=self.hits,
            misses=self.misses,
            dedup_hits=self.dedup_hits,
            unique_blobs=len(self._blobs),
            saved_bytes=self.saved_bytes,
        )

    def dedup_stats(self) -> DedupStats:
        return DedupStats(
            total_files=self.hits + self.misses + self.dedup_hits,
            unique_blobs=len(self._blobs),
            duplicate_count=self.dedup_hits,
            saved_bytes=self.saved_bytes,
        )

    def log_summary(self) -> None:
        s = self.summary()
        if s.enabled:
            logger.info(
                "Compression level %d, %d files (%d cached, %d compressed, %d deduplicated)",
                s.level, s.total, s.hits, s.misses, s.dedup_hits,
            )
        else:
            logger.info(
                "Compression level %d, %d files (cache disabled, %d deduplicated)",
                s.level, s.total, s.dedup_hits,
            )
