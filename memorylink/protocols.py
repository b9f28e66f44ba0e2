"""
memorylink Protocol Definitions
===============================

Interface contracts and the error taxonomy shared by every memorylink
component.

Components and their roles:
- Path resolver:   Maps scope identifiers and record ids to file paths. Pure.
- Record store:    Crash-safe JSON files under an advisory lock, with retry.
- Secret gate:     Detectors that inspect content before anything is written.
- Lifecycle:       Validators and the promotion state machine. Pure.
- Resolver:        Picks one canonical record per topic. Read-only.
- Audit logger:    Append-only, hash-chained NDJSON trail.

Error handling philosophy:
- Invalid input raises ValidationError before any disk access
- Storage failures raise a classified StorageError subclass
- Transient storage errors are retried by the store, never by callers
- Blocking secrets raise SecurityError (QuarantineError once quarantined)
- Audit failures never fail the operation; they become warnings
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, runtime_checkable

# =============================================================================
# EXIT CODES
# =============================================================================

EXIT_SUCCESS = 0
EXIT_FAILURE = 1  # blocking security finding, validation or storage error
EXIT_ERROR = 2  # bad configuration or unexpected error


# =============================================================================
# ERRORS
# =============================================================================


class MemoryLinkError(Exception):
    """Base for all memorylink errors."""

    code = "MEMORYLINK_ERROR"
    exit_code = EXIT_FAILURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def kind(self) -> str:
        return type(self).__name__


class ValidationError(MemoryLinkError):
    """Raised when input fails validation. Always raised before disk access."""

    code = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


class InvalidTransitionError(ValidationError):
    """Raised when a lifecycle transition is not allowed from the current status."""

    code = "INVALID_TRANSITION"


class EvidenceLevelError(ValidationError):
    """Raised when an evidence level is unknown or the requested change is illegal."""

    code = "EVIDENCE_LEVEL_ERROR"


class StorageError(MemoryLinkError):
    """Raised on storage failures.

    Attributes:
        operation: What was being done ("write", "read", "lock", ...)
        path: The file involved, if any
        retryable: Whether the failure is transient
    """

    code = "STORAGE_ERROR"

    def __init__(
        self,
        message: str,
        operation: str = "unknown",
        path: Optional[str] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.operation = operation
        self.path = path
        self.retryable = retryable


class NotFoundError(StorageError):
    """Raised when a record or file does not exist."""

    code = "NOT_FOUND"


class PermissionDeniedError(StorageError):
    """Raised when the filesystem refuses access."""

    code = "PERMISSION_DENIED"


class DiskFullError(StorageError):
    """Raised when there is no space left on the device."""

    code = "DISK_FULL"


class ResourceBusyError(StorageError):
    """Raised when a file or lock is held by another process."""

    code = "RESOURCE_BUSY"

    def __init__(self, message: str, operation: str = "lock", path: Optional[str] = None):
        super().__init__(message, operation=operation, path=path, retryable=True)


class LockTimeoutError(ResourceBusyError):
    """Raised when an advisory lock is not acquired within its timeout."""

    code = "LOCK_TIMEOUT"


class CorruptedRecordError(StorageError):
    """Raised when a record file cannot be parsed or fails the schema."""

    code = "CORRUPTED_RECORD"


class SecurityError(MemoryLinkError):
    """Raised when content contains a blocking secret.

    Never carries the secret itself, only the pattern that matched.
    """

    code = "SECURITY_ERROR"

    def __init__(
        self,
        message: str,
        pattern_id: Optional[str] = None,
        pattern_name: Optional[str] = None,
    ):
        super().__init__(message)
        self.pattern_id = pattern_id
        self.pattern_name = pattern_name


class QuarantineError(SecurityError):
    """Raised after a capture was quarantined instead of stored."""

    code = "QUARANTINED"

    def __init__(
        self,
        message: str,
        record_id: str,
        quarantine_ref: str,
        pattern_id: Optional[str] = None,
        pattern_name: Optional[str] = None,
    ):
        super().__init__(message, pattern_id=pattern_id, pattern_name=pattern_name)
        self.record_id = record_id
        self.quarantine_ref = quarantine_ref


class GovernanceError(SecurityError):
    """Raised when a governed (constitution) source needs explicit approval."""

    code = "GOVERNANCE_ERROR"


class ConflictResolutionError(MemoryLinkError):
    """Raised when a candidate set handed to the resolver is malformed."""

    code = "CONFLICT_RESOLUTION_ERROR"


class ConfigError(MemoryLinkError):
    """Raised when config.json is malformed or holds invalid values."""

    code = "CONFIG_ERROR"
    exit_code = EXIT_ERROR


class EncryptionError(MemoryLinkError):
    """Raised when quarantined content cannot be encrypted or decrypted."""

    code = "ENCRYPTION_ERROR"


# =============================================================================
# DETECTORS
# =============================================================================


@dataclass
class DetectorMatch:
    """A single detector hit.

    ``value`` holds the raw matched text and is excluded from repr so it
    never ends up in logs or tracebacks.
    """

    pattern_id: str
    pattern_name: str
    severity: str
    start: int
    end: int
    value: str = ""

    def __repr__(self) -> str:
        return (
            f"DetectorMatch(pattern_id={self.pattern_id!r}, severity={self.severity!r}, "
            f"start={self.start}, end={self.end})"
        )


@runtime_checkable
class Detector(Protocol):
    """Inspects content for one kind of secret.

    Detectors are ordered; the scanner stops at the first one that
    matches. Implementations must be side-effect free.
    """

    @property
    def id(self) -> str:
        """Stable identifier, used by disabled_patterns in config."""
        ...

    @property
    def name(self) -> str:
        """Human readable name printed in findings."""
        ...

    @property
    def severity(self) -> str:
        """'error' (blocking) or 'warn'."""
        ...

    def test(self, content: str) -> Optional[DetectorMatch]:
        """Return the first match in content, or None."""
        ...

    def find_all(self, content: str) -> List[DetectorMatch]:
        """Return every match in content, in position order."""
        ...
