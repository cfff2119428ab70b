"""
Package archive download and atomic extraction.

A download is serialized per package with a file lock next to the
destination. The archive is unpacked into a process-stamped temporary
directory in the same parent and renamed into place, so other processes
see either no package directory or a complete one.
"""

from __future__ import annotations

import io
import os
import shutil
import tarfile
import zlib
from pathlib import Path

import httpx

from typst_embed.errors import DownloadError, ExtractionError
from typst_embed.logging import get_logger
from typst_embed.packages.lock import exclusive_lock, lock_path_for
from typst_embed.packages.models import PackageSpec

logger = get_logger("downloader")

DEFAULT_REGISTRY = "https://packages.typst.org"
DEFAULT_TIMEOUT = 60.0


def package_url(spec: PackageSpec, registry_url: str = DEFAULT_REGISTRY) -> str:
    """``<registry>/<namespace>/<name>-<version>.tar.gz``"""
    return f"{registry_url.rstrip('/')}/{spec.namespace}/{spec.name}-{spec.version}.tar.gz"


def temp_dir_for(destination: Path) -> Path:
    return destination.with_name(f".tmp_{destination.name}_{os.getpid()}")


def extract_tar_gz(data: bytes, destination: Path) -> None:
    """Unpack a gzip tarball onto *destination* atomically.

    Any previous contents of *destination* are replaced only once the
    new tree is fully written.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    tmp_dir = temp_dir_for(destination)
    if tmp_dir.exists():
        # Left behind by an interrupted run of a process with our pid.
        shutil.rmtree(tmp_dir)
    tmp_dir.mkdir()

    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as archive:
            archive.extractall(tmp_dir, filter="data")
    except (tarfile.TarError, EOFError, zlib.error, OSError) as e:
        shutil.rmtree(tmp_dir, ignore_errors=True)
        raise ExtractionError(f"Failed to extract archive into {destination}: {e}") from e

    try:
        if destination.exists():
            shutil.rmtree(destination)
        os.replace(tmp_dir, destination)
    except OSError as e:
        shutil.rmtree(tmp_dir, ignore_errors=True)
        raise ExtractionError(f"Failed to move package into {destination}: {e}") from e


class PackageDownloader:
    """Fetches package archives over HTTP and unpacks them.

    Args:
        client: Optional ``httpx.Client``; one is created per fetch when
            omitted.
        timeout: Request timeout in seconds for the internal client.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._client = client
        self._timeout = timeout
        self.requests = 0

    def fetch(self, url: str, destination: Path, replace: bool = False) -> None:
        """Download *url* and extract it to *destination*.

        Holds the per-destination lock for the whole download. When the
        destination already exists after the lock is acquired, another
        process finished the same work and nothing is fetched, unless
        *replace* asks for a fresh copy.
        """
        with exclusive_lock(lock_path_for(destination)):
            if destination.exists() and not replace:
                logger.debug("%s was completed by another process", destination)
                return
            data = self._get(url)
            extract_tar_gz(data, destination)

    def _get(self, url: str) -> bytes:
        self.requests += 1
        client = self._client or httpx.Client(
            timeout=httpx.Timeout(self._timeout, connect=30.0),
            follow_redirects=True,
        )
        try:
            response = client.get(url)
            response.raise_for_status()
            return response.content
        except httpx.HTTPStatusError as e:
            raise DownloadError(
                url,
                f"HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise DownloadError(url, f"request failed: {e}") from e
        finally:
            if self._client is None:
                client.close()
