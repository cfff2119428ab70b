"""
Cross-process advisory file locks.

The lock guards a package download so two builds running at the same
time never extract into the same cache directory concurrently. It is
held on a separate ``.lock`` file, never on the package directory itself.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from typst_embed.logging import get_logger

logger = get_logger("lock")

if os.name == "nt":
    import msvcrt

    def _acquire(fd: int) -> None:
        # LK_LOCK retries for ~10s then raises; loop until we own the byte.
        while True:
            try:
                msvcrt.locking(fd, msvcrt.LK_LOCK, 1)
                return
            except OSError:
                continue

    def _release(fd: int) -> None:
        os.lseek(fd, 0, os.SEEK_SET)
        msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)

else:
    import fcntl

    def _acquire(fd: int) -> None:
        fcntl.flock(fd, fcntl.LOCK_EX)

    def _release(fd: int) -> None:
        fcntl.flock(fd, fcntl.LOCK_UN)


def lock_path_for(destination: Path) -> Path:
    """Sibling lock file for *destination* (``<version>.lock``)."""
    return destination.with_name(destination.name + ".lock")


@contextmanager
def exclusive_lock(path: Path) -> Iterator[Path]:
    """Hold an exclusive lock on *path* for the duration of the block.

    Blocks until the lock is available. The lock file is created when
    missing and left in place afterwards.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
    try:
        logger.debug("Waiting for lock %s", path)
        _acquire(fd)
        try:
            yield path
        finally:
            _release(fd)
    finally:
        os.close(fd)
