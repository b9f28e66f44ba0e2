"""
Cross-platform advisory file locks.

- Unix/Linux/macOS: fcntl.flock
- Windows: msvcrt.locking

Locks are advisory: they serialize cooperating memorylink processes only,
and are scoped to a single target path. The lock file for ``dir/name``
lives at ``dir/.locks/name.lock``. Kernel-held locks disappear with the
process that held them, so a crashed holder never leaves a stale lock.

Usage:
    from memorylink.storage.filelock import file_lock

    with file_lock(path, timeout_ms=5000):
        ...  # critical section
"""

import logging
import os
import platform
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from memorylink.protocols import LockTimeoutError
from memorylink.storage.resilience import classify_os_error

logger = logging.getLogger(__name__)

LOCKS_DIR = ".locks"
DEFAULT_LOCK_TIMEOUT_MS = 5000
DEFAULT_POLL_INTERVAL_MS = 50


class _LockHeld(Exception):
    """The lock is currently held by someone else."""


def lock_path_for(target: Path) -> Path:
    """Lock file guarding ``target``."""
    target = Path(target)
    return target.parent / LOCKS_DIR / f"{target.name}.lock"


@contextmanager
def file_lock(
    target: Path,
    timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
) -> Iterator[Path]:
    """Hold an exclusive advisory lock on ``target`` for the duration of the block.

    Args:
        target: The file being protected (not the lock file itself).
        timeout_ms: How long to wait for the lock before giving up.
        poll_interval_ms: Delay between non-blocking attempts.

    Yields:
        Path of the lock file.

    Raises:
        LockTimeoutError: If the lock was not acquired within ``timeout_ms``.
        StorageError: If the lock file cannot be created.
    """
    lock_file = lock_path_for(target)
    try:
        lock_file.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(lock_file), os.O_CREAT | os.O_RDWR, 0o600)
    except OSError as e:
        raise classify_os_error(e, lock_file, "lock") from e

    deadline = time.monotonic() + max(timeout_ms, 0) / 1000.0
    acquired = False
    try:
        while True:
            try:
                _acquire(fd)
                acquired = True
                break
            except _LockHeld:
                if time.monotonic() >= deadline:
                    raise LockTimeoutError(
                        f"Timed out after {timeout_ms}ms waiting for lock on {target}",
                        path=str(target),
                    )
                time.sleep(poll_interval_ms / 1000.0)
        logger.debug(f"Acquired lock on {target}")
        yield lock_file
    finally:
        if acquired:
            try:
                _release(fd)
                logger.debug(f"Released lock on {target}")
            except OSError as e:
                logger.warning(f"Failed to release lock on {target}: {e}")
        os.close(fd)


def _acquire(fd: int) -> None:
    if platform.system() == "Windows":
        _acquire_windows(fd)
    else:
        _acquire_unix(fd)


def _release(fd: int) -> None:
    if platform.system() == "Windows":
        _release_windows(fd)
    else:
        _release_unix(fd)


# ============================================
# Unix/Linux/macOS
# ============================================


def _acquire_unix(fd: int) -> None:
    import fcntl

    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError as e:
        raise _LockHeld() from e


def _release_unix(fd: int) -> None:
    import fcntl

    fcntl.flock(fd, fcntl.LOCK_UN)


# ============================================
# Windows
# ============================================


def _acquire_windows(fd: int) -> None:
    import msvcrt

    try:
        os.lseek(fd, 0, os.SEEK_SET)
        msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
    except OSError as e:
        # 13 (EACCES) and 36 (EDEADLOCK) mean another process holds it
        if e.errno in (13, 36):
            raise _LockHeld() from e
        raise


def _release_windows(fd: int) -> None:
    import msvcrt

    os.lseek(fd, 0, os.SEEK_SET)
    msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
