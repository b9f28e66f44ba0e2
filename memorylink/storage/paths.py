"""Path and scope resolution for the .memorylink layout.

Layout under the project root::

    .memorylink/
        config.json
        records/<scope-type>/<scope-id>/<record-id>.json
        quarantined/<record-id>.original
        audit/events.ndjson

Everything here is pure: no network, no filesystem access, nothing cached.
"""

import hashlib
import re
from pathlib import Path
from typing import Union

from memorylink.protocols import ValidationError
from memorylink.types import VALID_SCOPE_TYPES, Scope

MEMORYLINK_DIR = ".memorylink"
RECORDS_DIR = "records"
QUARANTINE_DIR = "quarantined"
AUDIT_DIR = "audit"
AUDIT_FILE = "events.ndjson"
CONFIG_FILE = "config.json"
QUARANTINE_SUFFIX = ".original"
RECORD_SUFFIX = ".json"

_SCHEME_RE = re.compile(r"^(?:https?|ssh|git)://", re.IGNORECASE)
_SCP_RE = re.compile(r"^[\w.-]+@([\w.-]+):")
_USERINFO_RE = re.compile(r"^[^/@]+@")

PathLike = Union[str, Path]


def normalize_identifier(identifier: str) -> str:
    """Normalize a repository URL or project identifier.

    ``https://GitHub.com/Org/Repo.git/`` and ``github.com/org/repo`` both
    normalize to ``github.com/org/repo``.

    Args:
        identifier: URL, scp-style git remote, or plain path/identifier.

    Returns:
        Normalized identifier string.

    Raises:
        ValidationError: If the identifier is empty.
    """
    if not isinstance(identifier, str) or not identifier.strip():
        raise ValidationError("identifier", "cannot be empty")

    value = identifier.strip()
    value = _SCP_RE.sub(lambda m: m.group(1) + "/", value)
    value = _SCHEME_RE.sub("", value)
    value = _USERINFO_RE.sub("", value)
    value = value.rstrip("/")
    if value.lower().endswith(".git"):
        value = value[:-4]
    return value.lower().rstrip("/")


def scope_id(identifier: str) -> str:
    """sha256 hex digest of the normalized identifier."""
    return hashlib.sha256(normalize_identifier(identifier).encode("utf-8")).hexdigest()


def make_scope(scope_type: str, identifier: str) -> Scope:
    """Build a Scope for a scope type and raw identifier."""
    if scope_type not in VALID_SCOPE_TYPES:
        raise ValidationError(
            "scope_type", f"must be one of {sorted(VALID_SCOPE_TYPES)}, got {scope_type!r}"
        )
    return Scope(type=scope_type, id=scope_id(identifier))


def memorylink_root(root: PathLike) -> Path:
    return Path(root) / MEMORYLINK_DIR


def records_root(root: PathLike) -> Path:
    return memorylink_root(root) / RECORDS_DIR


def records_dir(root: PathLike, scope: Scope) -> Path:
    """Directory holding every record file of one scope."""
    return records_root(root) / scope.type / scope.id


def record_path(root: PathLike, scope: Scope, record_id: str) -> Path:
    return records_dir(root, scope) / f"{record_id}{RECORD_SUFFIX}"


def quarantine_dir(root: PathLike) -> Path:
    return memorylink_root(root) / QUARANTINE_DIR


def quarantine_ref(record_id: str) -> str:
    """Relative reference stored on a quarantined record."""
    return f"{QUARANTINE_DIR}/{record_id}{QUARANTINE_SUFFIX}"


def quarantine_path(root: PathLike, record_id: str) -> Path:
    return quarantine_dir(root) / f"{record_id}{QUARANTINE_SUFFIX}"


def audit_events_path(root: PathLike) -> Path:
    return memorylink_root(root) / AUDIT_DIR / AUDIT_FILE


def config_path(root: PathLike) -> Path:
    return memorylink_root(root) / CONFIG_FILE


def project_hash(root: PathLike) -> str:
    """Short stable hash of the resolved project root, used to name key files."""
    resolved = str(Path(root).expanduser().resolve())
    return hashlib.sha256(resolved.encode("utf-8")).hexdigest()[:16]
