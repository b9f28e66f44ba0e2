"""Crash-safe file writes.

Every write goes to a temp file in the target's directory, is flushed
and fsynced, and then renamed over the target in one ``os.replace``.
Readers see either the old content or the new content, never a partial
file. A failed write leaves the temp file renamed aside as
``<temp>.broken`` for inspection; the target is untouched.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

from memorylink.storage.filelock import DEFAULT_LOCK_TIMEOUT_MS, file_lock
from memorylink.storage.resilience import classify_os_error, ensure_directory

logger = logging.getLogger(__name__)

BROKEN_SUFFIX = ".broken"


def atomic_write(path: Path, data: Union[str, bytes]) -> Path:
    """Write ``data`` to ``path`` atomically.

    Args:
        path: Target file. Parent directories are created as needed.
        data: Text (written as UTF-8) or bytes.

    Returns:
        The target path.

    Raises:
        StorageError: Classified subclass on any filesystem failure.
    """
    path = Path(path)
    payload = data.encode("utf-8") if isinstance(data, str) else data
    ensure_directory(path.parent)

    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f"{path.name}.", suffix=".tmp", dir=str(path.parent))
    except OSError as e:
        raise classify_os_error(e, path, "write") from e

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        _set_aside(tmp_path)
        raise classify_os_error(e, path, "write") from e
    except BaseException:
        _set_aside(tmp_path)
        raise

    logger.debug(f"Wrote {len(payload)} bytes to {path}")
    return path


def atomic_write_locked(
    path: Path, data: Union[str, bytes], timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS
) -> Path:
    """Atomic write while holding the advisory lock for ``path``.

    Raises:
        LockTimeoutError: If the lock is busy for longer than ``timeout_ms``.
        StorageError: Classified subclass on any filesystem failure.
    """
    path = Path(path)
    ensure_directory(path.parent)
    with file_lock(path, timeout_ms=timeout_ms):
        return atomic_write(path, data)


def dumps_json(data: Any) -> str:
    """Serialize the way every memorylink JSON file is stored."""
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def atomic_write_json(path: Path, data: Any) -> Path:
    return atomic_write(path, dumps_json(data))


def atomic_write_json_locked(
    path: Path, data: Any, timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS
) -> Path:
    return atomic_write_locked(path, dumps_json(data), timeout_ms=timeout_ms)


def _set_aside(tmp_path: Path) -> Optional[Path]:
    """Rename a failed temp file to ``<temp>.broken``. Best effort."""
    if not tmp_path.exists():
        return None
    broken = tmp_path.with_name(tmp_path.name + BROKEN_SUFFIX)
    try:
        os.rename(tmp_path, broken)
        logger.debug(f"Left partial write at {broken}")
        return broken
    except OSError as e:
        logger.debug(f"Could not set aside temp file {tmp_path}: {e}")
        return None

