"""Filesystem error classification and defensive file helpers.

Raw ``OSError`` values never leave the storage layer: they are mapped to
the StorageError subclasses in :mod:`memorylink.protocols`, and the CLI
shows the matching friendly message instead of system text.
"""

import errno
import logging
from pathlib import Path
from typing import Optional

from memorylink.protocols import (
    DiskFullError,
    MemoryLinkError,
    NotFoundError,
    PermissionDeniedError,
    ResourceBusyError,
    StorageError,
)

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB read guard

TRANSIENT_ERRNOS = frozenset(
    code
    for code in (
        errno.EBUSY,
        errno.EAGAIN,
        errno.EWOULDBLOCK,
        errno.EMFILE,
        errno.ENFILE,
        errno.ETIMEDOUT,
        errno.EINTR,
    )
)

_FRIENDLY_MESSAGES = {
    errno.ENOSPC: "Disk is full. Free up some space and try again.",
    errno.EACCES: "Permission denied. Check the permissions of the .memorylink directory.",
    errno.EPERM: "Permission denied. Check the permissions of the .memorylink directory.",
    errno.EBUSY: "File is busy. Another memorylink process may be running; try again.",
    errno.EAGAIN: "File is busy. Another memorylink process may be running; try again.",
    errno.ENOENT: "File not found. Run 'memorylink init' if the store does not exist yet.",
}

if hasattr(errno, "EDQUOT"):
    _FRIENDLY_MESSAGES[errno.EDQUOT] = _FRIENDLY_MESSAGES[errno.ENOSPC]


def classify_os_error(exc: OSError, path: Optional[Path] = None, operation: str = "io") -> StorageError:
    """Map an OSError to the matching StorageError subclass.

    Args:
        exc: The error raised by the filesystem call.
        path: The file involved, for the message.
        operation: What was being attempted ("write", "read", ...).

    Returns:
        A StorageError subclass instance (not raised).
    """
    where = str(path) if path is not None else (exc.filename or "")
    detail = f"{operation} failed for {where}" if where else f"{operation} failed"
    code = exc.errno

    if isinstance(exc, FileNotFoundError) or code == errno.ENOENT:
        return NotFoundError(f"{detail}: not found", operation=operation, path=where)
    if isinstance(exc, PermissionError) or code in (errno.EACCES, errno.EPERM):
        return PermissionDeniedError(f"{detail}: permission denied", operation=operation, path=where)
    if code == errno.ENOSPC or code == getattr(errno, "EDQUOT", None):
        return DiskFullError(f"{detail}: no space left on device", operation=operation, path=where)
    if code in (errno.EBUSY, errno.EAGAIN, errno.EWOULDBLOCK):
        return ResourceBusyError(f"{detail}: resource busy", operation=operation, path=where)
    return StorageError(
        f"{detail}: {errno.errorcode.get(code, 'unknown error')}",
        operation=operation,
        path=where,
        retryable=code in TRANSIENT_ERRNOS,
    )


def friendly_message(exc: BaseException) -> str:
    """Human readable message for an error, without raw system text."""
    code = getattr(exc, "errno", None)
    if code in _FRIENDLY_MESSAGES:
        return _FRIENDLY_MESSAGES[code]

    if isinstance(exc, DiskFullError):
        return _FRIENDLY_MESSAGES[errno.ENOSPC]
    if isinstance(exc, PermissionDeniedError):
        return _FRIENDLY_MESSAGES[errno.EACCES]
    if isinstance(exc, ResourceBusyError):
        return _FRIENDLY_MESSAGES[errno.EBUSY]
    if isinstance(exc, NotFoundError):
        return _FRIENDLY_MESSAGES[errno.ENOENT]
    if isinstance(exc, MemoryLinkError):
        return exc.message
    return "An unexpected filesystem error occurred."


def ensure_directory(path: Path) -> Path:
    """Create ``path`` and its parents. An existing directory is success.

    Raises:
        StorageError: If the directory cannot be created.
    """
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except FileExistsError:
        # Lost a race with another process creating the same directory
        if not path.is_dir():
            raise StorageError(
                f"mkdir failed for {path}: a file is in the way", operation="mkdir", path=str(path)
            )
    except OSError as e:
        raise classify_os_error(e, path, "mkdir") from e
    return path


def read_text_guarded(path: Path, max_size: int = MAX_FILE_SIZE) -> str:
    """Read a UTF-8 text file, refusing files larger than ``max_size``.

    Raises:
        StorageError: On any OS error, or when the file is too large.
    """
    path = Path(path)
    try:
        size = path.stat().st_size
        if size > max_size:
            raise StorageError(
                f"Refusing to read {path}: {size} bytes exceeds limit of {max_size}",
                operation="read",
                path=str(path),
            )
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise classify_os_error(e, path, "read") from e
